"""
Booking model representing a user's reservation of a server for a date range.

Key design decisions:
- Dates are calendar dates; the range [start_date, end_date] is inclusive
- Status field keeps cancelled/completed rows as history instead of deleting
- days_booked is stored for display and recomputed on every date change
- Composite index on (server_id, status) backs the conflict query
"""

from sqlalchemy import Column, Integer, String, Date, Boolean, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from labbook.db.base import Base, TimestampMixin, new_id


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    server_id = Column(String(36), ForeignKey("servers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    purpose = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="active")
    days_booked = Column(Integer, nullable=False, default=0)
    renewal_notification_sent = Column(Boolean, nullable=False, default=False)

    # Relationships
    server = relationship("Server", back_populates="bookings", lazy="selectin")
    user = relationship("User", back_populates="bookings", lazy="selectin")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="check_booking_date_order"),
        CheckConstraint(
            "status IN ('active', 'pending_renewal', 'completed', 'cancelled')",
            name="check_booking_status",
        ),
        Index("ix_bookings_server_status", "server_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, server={self.server_id}, user={self.user_id}, "
            f"{self.start_date}..{self.end_date}, status={self.status})>"
        )
