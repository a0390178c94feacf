"""
Serial Reservation model

Short-lived soft-lock on one serial number, held by one requester while a
sales-order line is being edited. Lives in the application database only.
"""
from datetime import datetime, timedelta, timezone
from sqlalchemy import Column, String, DateTime, Index

from gpdash.core.database import Base


def utcnow() -> datetime:
    """Naive UTC now, matching how expires_at is stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SerialReservation(Base):
    """
    At most one row per physical unit (item_number, serial_number).

    Lifecycle:
    1. Created on first successful reservation of the unit
    2. Owner and expiry refreshed on re-reservation (same owner, or anyone once expired)
    3. Deleted on release, release-all, or by the expiry sweep
    """
    __tablename__ = "serial_reservations"

    item_number = Column(String(31), primary_key=True, doc="GP item number")
    serial_number = Column(String(21), primary_key=True, doc="Serial number")
    reserved_by = Column(String(255), nullable=False, doc="Requester id (email, user id or guest id)")
    user_name = Column(String(255), doc="Requester display name")
    expires_at = Column(DateTime, nullable=False, doc="Expiry (naive UTC)")
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_serial_reservations_reserved_by', 'reserved_by'),
        Index('ix_serial_reservations_expires_at', 'expires_at'),
    )

    def is_expired(self, now: datetime = None) -> bool:
        return (now or utcnow()) > self.expires_at

    @classmethod
    def create_expiry(cls, ttl_minutes: int, now: datetime = None) -> datetime:
        """Calculate expiry timestamp from now"""
        return (now or utcnow()) + timedelta(minutes=ttl_minutes)

    def __repr__(self):
        return f"<SerialReservation(item={self.item_number}, sn={self.serial_number}, by={self.reserved_by})>"
