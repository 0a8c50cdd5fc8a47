from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, Integer, String, Text

from .base import Base


class Problem(Base):
    """Solved problem kept in a PRO user's history."""

    __tablename__ = "problems"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    kind = Column(Enum("photo", "calculator", name="problem_kind"), nullable=False)
    problem_text = Column(Text, nullable=False)
    topic = Column(String(128))
    difficulty = Column(String(16))
    solution = Column(JSON, nullable=False)
    image_url = Column(Text)
    is_favorite = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


__all__ = ["Problem"]
