from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Competitor(Base):
    """A direct market rival seen in LLM responses.

    Names are matched exactly (case-sensitive); ``mention_count`` only grows.
    """

    __tablename__ = "competitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mention_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_mentioned: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
