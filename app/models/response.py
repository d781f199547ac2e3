from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Response(Base):
    """The LLM's answer to one prompt, with the signals extracted from it. Never mutated."""

    __tablename__ = "responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prompt_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    brand_mentioned: Mapped[bool] = mapped_column(Boolean, default=False)
    competitors_mentioned: Mapped[list | None] = mapped_column(JSON, nullable=True)  # ["Vercel", "Netlify"]
    sources: Mapped[list | None] = mapped_column(JSON, nullable=True)  # ["https://vercel.com/docs", ...]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    prompt: Mapped["Prompt"] = relationship("Prompt", back_populates="responses")  # noqa: F821
