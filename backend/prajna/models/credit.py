"""
Credit model - per-user quota consumed by AI-driven features.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, DateTime, String
from prajna.database import Base


class Credit(Base):
    """One row per user; credit is the remaining balance."""
    __tablename__ = "credits"

    user_id = Column(String(64), primary_key=True)
    credit = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Credit(user={self.user_id}, credit={self.credit})>"
