from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Analytics(Base):
    """Rollup snapshot written at the end of each successful run. Latest by date is current."""

    __tablename__ = "analytics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
    total_prompts: Mapped[int] = mapped_column(Integer, default=0)
    brand_mention_rate: Mapped[float] = mapped_column(Float, default=0.0)  # percent, 0..100
    top_competitor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_sources: Mapped[int] = mapped_column(Integer, default=0)
    total_domains: Mapped[int] = mapped_column(Integer, default=0)
