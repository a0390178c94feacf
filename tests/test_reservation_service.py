"""
Tests for the Serial Reservation Service
Mutual exclusion, expiry and ownership rules for serial holds
"""

import pytest
from datetime import timedelta
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from gpdash.core.exceptions import ReservationStoreError
from gpdash.core.security import Requester
from gpdash.models.reservation import SerialReservation, utcnow
from gpdash.services.inventory.reservation_service import (
    SerialReservationService, ALREADY_RESERVED, DATABASE_ERROR
)


def _row(db: Session, item_number: str, serial_number: str):
    return db.query(SerialReservation).filter(
        SerialReservation.item_number == item_number,
        SerialReservation.serial_number == serial_number
    ).first()


class TestReserve:
    """Test suite for SerialReservationService.reserve"""

    def test_reserve_free_serial(self, db_session: Session, alice: Requester):
        """Test reserving a serial nobody holds"""
        service = SerialReservationService(db_session)

        result = service.reserve("ITM-100", "SN1", alice)

        assert result.success is True
        assert result.error is None
        row = _row(db_session, "ITM-100", "SN1")
        assert row.reserved_by == "alice@example.com"
        assert row.user_name == "Alice Smith"
        assert row.expires_at > utcnow() + timedelta(minutes=9)

    def test_reserve_held_by_other_is_rejected(self, db_session: Session, alice, bob, add_reservation):
        """Test mutual exclusion: a live hold by someone else blocks the reserve"""
        add_reservation("ITM-100", "SN1", bob)
        service = SerialReservationService(db_session)

        result = service.reserve("ITM-100", "SN1", alice)

        assert result.success is False
        assert result.error == ALREADY_RESERVED
        assert result.reserved_by == "Bob Jones"
        # The holder's row is untouched
        assert _row(db_session, "ITM-100", "SN1").reserved_by == "bob@example.com"

    def test_holder_lookup_failure_reports_another_user(
        self, db_session: Session, alice, bob, add_reservation, monkeypatch
    ):
        """Test contention is still reported when the holder cannot be read"""
        add_reservation("ITM-100", "SN1", bob)
        service = SerialReservationService(db_session)

        def failing_lookup(item_number, serial_number):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(service, "_get_reservation", failing_lookup)

        result = service.reserve("ITM-100", "SN1", alice)

        assert result.success is False
        assert result.error == ALREADY_RESERVED
        assert result.reserved_by == "another user"

    def test_holder_without_display_name_reported_by_id(self, db_session: Session, alice):
        """Test the holder is reported by id when no display name was stored"""
        db_session.add(SerialReservation(
            item_number="ITM-100", serial_number="SN1", reserved_by="guest-42",
            user_name=None, expires_at=utcnow() + timedelta(minutes=5)
        ))
        db_session.commit()

        result = SerialReservationService(db_session).reserve("ITM-100", "SN1", alice)

        assert result.success is False
        assert result.reserved_by == "guest-42"

    def test_reserve_twice_refreshes_expiry(self, db_session: Session, alice, add_reservation):
        """Test self-reservation is idempotent and extends the hold"""
        add_reservation("ITM-100", "SN1", alice, expires_in_minutes=2)
        service = SerialReservationService(db_session)

        first = service.reserve("ITM-100", "SN1", alice)
        second = service.reserve("ITM-100", "SN1", alice)

        assert first.success is True
        assert second.success is True
        assert db_session.query(SerialReservation).count() == 1
        assert _row(db_session, "ITM-100", "SN1").expires_at > utcnow() + timedelta(minutes=9)

    def test_expired_hold_is_taken_over(self, db_session: Session, alice, bob, add_reservation):
        """Test an expired reservation counts as free"""
        add_reservation("ITM-100", "SN1", bob, expires_in_minutes=-1)
        service = SerialReservationService(db_session)

        result = service.reserve("ITM-100", "SN1", alice)

        assert result.success is True
        row = _row(db_session, "ITM-100", "SN1")
        assert row.reserved_by == "alice@example.com"
        assert row.user_name == "Alice Smith"
        assert not row.is_expired()

    def test_same_serial_different_items_are_independent(self, db_session: Session, alice, bob):
        """Test the hold is keyed by item and serial together"""
        service = SerialReservationService(db_session)

        assert service.reserve("ITM-100", "SN1", bob).success is True
        assert service.reserve("ITM-200", "SN1", alice).success is True

    def test_inputs_are_trimmed(self, db_session: Session, alice, bob):
        """Test padded GP values map to the same hold"""
        service = SerialReservationService(db_session)

        service.reserve("ITM-100   ", "SN1  ", alice)
        result = service.reserve("ITM-100", "SN1", bob)

        assert result.success is False
        assert _row(db_session, "ITM-100", "SN1") is not None

    def test_custom_timeout(self, db_session: Session, alice):
        """Test the timeout can be set per service"""
        service = SerialReservationService(db_session, timeout_minutes=1)

        service.reserve("ITM-100", "SN1", alice)

        assert _row(db_session, "ITM-100", "SN1").expires_at < utcnow() + timedelta(minutes=2)

    def test_storage_failure_returns_database_error(self, db_session: Session, alice, break_app_store):
        """Test storage errors surface as an unsuccessful result"""
        break_app_store()

        result = SerialReservationService(db_session).reserve("ITM-100", "SN1", alice)

        assert result.success is False
        assert result.error == DATABASE_ERROR


class TestRelease:
    """Test suite for release and release_all"""

    def test_release_own_hold(self, db_session: Session, alice, add_reservation):
        add_reservation("ITM-100", "SN1", alice)
        service = SerialReservationService(db_session)

        result = service.release("ITM-100", "SN1", alice)

        assert result.success is True
        assert _row(db_session, "ITM-100", "SN1") is None

    def test_release_other_users_hold_is_noop(self, db_session: Session, alice, bob, add_reservation):
        """Test owner-gated release: someone else's hold survives"""
        add_reservation("ITM-100", "SN1", bob)
        service = SerialReservationService(db_session)

        result = service.release("ITM-100", "SN1", alice)

        assert result.success is True
        assert _row(db_session, "ITM-100", "SN1").reserved_by == "bob@example.com"

    def test_release_missing_hold_is_noop(self, db_session: Session, alice):
        result = SerialReservationService(db_session).release("ITM-100", "SN9", alice)

        assert result.success is True

    def test_release_all_only_touches_own_holds(self, db_session: Session, alice, bob, add_reservation):
        """Test release_all removes every hold of the requester and nothing else"""
        add_reservation("ITM-100", "SN1", alice)
        add_reservation("ITM-100", "SN2", alice)
        add_reservation("ITM-200", "SN7", alice)
        add_reservation("ITM-100", "SN3", bob)
        service = SerialReservationService(db_session)

        result = service.release_all(alice)

        assert result.success is True
        remaining = db_session.query(SerialReservation).all()
        assert [(r.item_number, r.serial_number) for r in remaining] == [("ITM-100", "SN3")]

    def test_release_storage_failure(self, db_session: Session, alice, break_app_store):
        break_app_store()

        service = SerialReservationService(db_session)

        assert service.release("ITM-100", "SN1", alice).success is False
        assert service.release_all(alice).success is False


class TestMaintenance:
    """Test suite for sweep, listing and statistics"""

    def test_sweep_removes_only_expired(self, db_session: Session, alice, bob, add_reservation):
        add_reservation("ITM-100", "SN1", alice, expires_in_minutes=-5)
        add_reservation("ITM-100", "SN2", bob, expires_in_minutes=-1)
        add_reservation("ITM-100", "SN3", bob, expires_in_minutes=5)
        service = SerialReservationService(db_session)

        removed = service.sweep_expired()

        assert removed == 2
        assert [r.serial_number for r in db_session.query(SerialReservation).all()] == ["SN3"]

    def test_sweep_storage_failure_returns_zero(self, db_session: Session, break_app_store):
        break_app_store()

        assert SerialReservationService(db_session).sweep_expired() == 0

    def test_active_reservations_exclude_expired(self, db_session: Session, alice, bob, add_reservation):
        add_reservation("ITM-100", "SN2", alice)
        add_reservation("ITM-100", "SN1", bob)
        add_reservation("ITM-100", "SN3", bob, expires_in_minutes=-1)
        add_reservation("ITM-200", "SN1", bob)

        active = SerialReservationService(db_session).get_active_reservations("ITM-100")

        assert [r.serial_number for r in active] == ["SN1", "SN2"]

    def test_active_reservations_storage_failure_raises(self, db_session: Session, break_app_store):
        break_app_store()

        with pytest.raises(ReservationStoreError):
            SerialReservationService(db_session).get_active_reservations("ITM-100")

    def test_reservation_stats(self, db_session: Session, alice, bob, add_reservation):
        add_reservation("ITM-100", "SN1", alice, expires_in_minutes=9)
        add_reservation("ITM-100", "SN2", alice, expires_in_minutes=3)
        add_reservation("ITM-100", "SN3", bob, expires_in_minutes=-2)

        stats = SerialReservationService(db_session).get_reservation_stats()

        assert stats.total_reservations == 3
        assert stats.active_reservations == 2
        assert stats.expired_reservations == 1
        assert stats.expiring_within_5min == 1

    def test_reservation_stats_storage_failure_raises(self, db_session: Session, break_app_store):
        break_app_store()

        with pytest.raises(ReservationStoreError):
            SerialReservationService(db_session).get_reservation_stats()

    def test_model_expiry_helpers(self):
        now = utcnow()
        reservation = SerialReservation(
            item_number="ITM-100", serial_number="SN1", reserved_by="x",
            expires_at=SerialReservation.create_expiry(10, now)
        )

        assert reservation.expires_at == now + timedelta(minutes=10)
        assert reservation.is_expired(now) is False
        assert reservation.is_expired(now + timedelta(minutes=11)) is True
