"""
Login session: a persisted JWT so logout can revoke it server-side.
"""

from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from labbook.db.base import Base, TimestampMixin, new_id


class AuthSession(Base, TimestampMixin):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(Text, unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="sessions", lazy="selectin")

    def __repr__(self) -> str:
        return f"<AuthSession(user={self.user_id}, expires_at={self.expires_at})>"
