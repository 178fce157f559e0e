"""
Server model: one physical machine in the lab inventory.

Key design decisions:
- `status` only ever holds the administrative value (available, maintenance,
  offline). "booked" is derived from bookings on every read.
- `version` column enables optimistic locking: booking writes bump it so two
  transactions cannot both claim overlapping time on the same server.
"""

from sqlalchemy import Column, Integer, String, CheckConstraint
from sqlalchemy.orm import relationship

from labbook.db.base import Base, TimestampMixin, new_id


class Server(Base, TimestampMixin):
    __tablename__ = "servers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    cpu_spec = Column(String(255), nullable=False)
    memory_spec = Column(String(255), nullable=False)
    storage_spec = Column(String(255), nullable=False)
    gpu_spec = Column(String(255), nullable=True)
    location = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="available")

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    bookings = relationship(
        "Booking",
        back_populates="server",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'maintenance', 'offline')",
            name="check_server_admin_status",
        ),
    )

    @property
    def specifications(self) -> dict:
        return {
            "cpu": self.cpu_spec,
            "memory": self.memory_spec,
            "storage": self.storage_spec,
            "gpu": self.gpu_spec,
        }

    def __repr__(self) -> str:
        return f"<Server(id={self.id}, name={self.name}, status={self.status})>"
