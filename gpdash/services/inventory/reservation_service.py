"""
Serial Reservation Service
Exclusive, time-boxed holds on individual serial numbers across users and sessions
"""
from typing import List, Optional
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, delete, insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from gpdash.core.config import settings
from gpdash.core.exceptions import ReservationStoreError
from gpdash.core.security import Requester
from gpdash.models.reservation import SerialReservation, utcnow
from gpdash.schemas.inventory import ReservationResult, ReleaseResult, ReservationStats

logger = logging.getLogger(__name__)

ALREADY_RESERVED = "Already reserved"
DATABASE_ERROR = "Database error"


class SerialReservationService:
    """
    Reservation Service

    Public methods never raise on storage errors: failures are logged and
    returned as unsuccessful results, because callers are interactive flows.
    """

    def __init__(self, db: Session, timeout_minutes: Optional[int] = None):
        self.db = db
        self.timeout_minutes = timeout_minutes or settings.RESERVATION_TIMEOUT_MINUTES

    def reserve(self, item_number: str, serial_number: str, requester: Requester) -> ReservationResult:
        """
        Reserve a serial number for the requester

        Succeeds when the unit is free, expired, or already held by the requester
        (refreshing the expiry). Fails without any write when another requester
        holds a live reservation.
        """
        item_number, serial_number = item_number.strip(), serial_number.strip()
        now = utcnow()
        expires_at = SerialReservation.create_expiry(self.timeout_minutes, now)

        try:
            # Take over only a row that is ours or has expired
            result = self.db.execute(
                update(SerialReservation)
                .where(
                    and_(
                        SerialReservation.item_number == item_number,
                        SerialReservation.serial_number == serial_number,
                        or_(
                            SerialReservation.reserved_by == requester.id,
                            SerialReservation.expires_at < now
                        )
                    )
                )
                .values(reserved_by=requester.id, user_name=requester.name, expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                # Primary key conflict here means a live row belongs to someone else
                self.db.execute(
                    insert(SerialReservation).values(
                        item_number=item_number,
                        serial_number=serial_number,
                        reserved_by=requester.id,
                        user_name=requester.name,
                        expires_at=expires_at,
                        created_at=now
                    )
                )

            self.db.commit()
            logger.debug(f"Reserved {item_number}/{serial_number} for {requester.id} until {expires_at}")
            return ReservationResult(success=True)

        except IntegrityError:
            self.db.rollback()
            holder_name = None
            try:
                holder = self._get_reservation(item_number, serial_number)
                holder_name = (holder.user_name or holder.reserved_by) if holder else None
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Holder lookup for {item_number}/{serial_number} failed: {e}")
            logger.warning(f"SN {serial_number} is already held by {holder_name or 'another user'}")
            return ReservationResult(
                success=False,
                error=ALREADY_RESERVED,
                reserved_by=holder_name or "another user"
            )

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to reserve SN {item_number}/{serial_number}: {e}")
            return ReservationResult(success=False, error=DATABASE_ERROR)

    def release(self, item_number: str, serial_number: str, requester: Requester) -> ReleaseResult:
        """
        Release a reservation held by the requester

        Idempotent: a missing row or a row owned by someone else is a no-op.
        """
        item_number, serial_number = item_number.strip(), serial_number.strip()
        try:
            result = self.db.execute(
                delete(SerialReservation)
                .where(
                    and_(
                        SerialReservation.item_number == item_number,
                        SerialReservation.serial_number == serial_number,
                        SerialReservation.reserved_by == requester.id
                    )
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            if result.rowcount:
                logger.debug(f"Released {item_number}/{serial_number} for {requester.id}")
            return ReleaseResult(success=True)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to release SN {item_number}/{serial_number}: {e}")
            return ReleaseResult(success=False)

    def release_all(self, requester: Requester) -> ReleaseResult:
        """Release every reservation held by the requester"""
        try:
            result = self.db.execute(
                delete(SerialReservation)
                .where(SerialReservation.reserved_by == requester.id)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            logger.info(f"Released {result.rowcount} reservations for {requester.id}")
            return ReleaseResult(success=True)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to release all reservations for {requester.id}: {e}")
            return ReleaseResult(success=False)

    def sweep_expired(self) -> int:
        """
        Delete all expired reservations

        Best-effort hygiene. Correctness never depends on it, because reserve()
        treats expired rows as free. Returns the number of rows removed.
        """
        try:
            result = self.db.execute(
                delete(SerialReservation)
                .where(SerialReservation.expires_at < utcnow())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            if result.rowcount:
                logger.info(f"Swept {result.rowcount} expired reservations")
            return result.rowcount or 0

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed cleanup of expired reservations: {e}")
            return 0

    def get_active_reservations(self, item_number: str) -> List[SerialReservation]:
        """
        Live reservations for an item

        Raises ReservationStoreError so readers can decide how to degrade.
        """
        try:
            return self.db.query(SerialReservation).filter(
                and_(
                    SerialReservation.item_number == item_number,
                    SerialReservation.expires_at >= utcnow()
                )
            ).order_by(SerialReservation.serial_number).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ReservationStoreError(f"Could not read reservations for {item_number}") from e

    def get_reservation_stats(self, now: Optional[datetime] = None) -> ReservationStats:
        """Current reservation statistics for monitoring"""
        now = now or utcnow()
        try:
            reservations = self.db.query(SerialReservation).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ReservationStoreError("Could not read reservation statistics") from e

        expired = sum(1 for r in reservations if r.is_expired(now))
        expiring_soon = sum(
            1 for r in reservations
            if not r.is_expired(now) and r.expires_at - now < timedelta(minutes=5)
        )

        return ReservationStats(
            total_reservations=len(reservations),
            active_reservations=len(reservations) - expired,
            expired_reservations=expired,
            expiring_within_5min=expiring_soon
        )

    def _get_reservation(self, item_number: str, serial_number: str) -> Optional[SerialReservation]:
        return self.db.query(SerialReservation).filter(
            and_(
                SerialReservation.item_number == item_number,
                SerialReservation.serial_number == serial_number
            )
        ).first()
