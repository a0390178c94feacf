#!/usr/bin/env python3
"""
Serial Reservation Sweep Script
Deletes expired serial reservations and prints reservation statistics
"""
import sys
from pathlib import Path

# Add parent directory to path to import gpdash modules
sys.path.append(str(Path(__file__).parent.parent))

from gpdash.core.database import SessionLocal, init_db
from gpdash.core.logging import setup_logging, get_logger
from gpdash.services.inventory.reservation_service import SerialReservationService

logger = get_logger("scripts.sweep_reservations")


def main() -> int:
    setup_logging()
    init_db()

    db = SessionLocal()
    try:
        service = SerialReservationService(db)

        logger.info("Running serial reservation sweep...")
        removed = service.sweep_expired()
        print(f"Sweep complete: {removed} expired reservations removed")

        stats = service.get_reservation_stats()
        print("\nCurrent reservation stats:")
        print(f"  Total: {stats.total_reservations}")
        print(f"  Active: {stats.active_reservations}")
        print(f"  Expired: {stats.expired_reservations}")
        print(f"  Expiring soon: {stats.expiring_within_5min}")
        return 0

    except Exception as e:
        logger.error(f"Reservation sweep failed: {e}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
