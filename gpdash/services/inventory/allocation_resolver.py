"""
Allocation Resolver
Reconciles GP stock, GP serial allocations and serial reservations into one
answer to "what can this user select for this item at this site right now"
"""
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy.orm import Session
import logging

from gpdash.core.exceptions import ReservationStoreError
from gpdash.core.security import Requester
from gpdash.models.erp import TRACKING_NONE, TRACKING_SERIAL
from gpdash.schemas.inventory import AllocationSnapshot, SerialAllocation
from gpdash.services.inventory.erp_inventory import ErpInventoryRepository
from gpdash.services.inventory.reservation_service import SerialReservationService

logger = logging.getLogger(__name__)


def aging_days(received: Optional[datetime], today: Optional[date] = None) -> Optional[int]:
    """Days since receipt"""
    if received is None:
        return None
    received_date = received.date() if isinstance(received, datetime) else received
    return ((today or date.today()) - received_date).days


class AllocationResolver:
    """
    Allocation Resolver

    Later steps override earlier ones: physical serial records outrank the
    item master flag and the cached quantity columns, and GP's own sales order
    allocation outranks the advisory reservation layer.
    """

    def __init__(self, erp_db: Session, app_db: Session):
        self.erp = ErpInventoryRepository(erp_db)
        self.reservations = SerialReservationService(app_db)

    def get_allocation_data(
        self,
        item_number: str,
        site_id: str,
        requester: Requester,
        current_order_number: Optional[str] = None,
        current_order_type: Optional[int] = None,
        today: Optional[date] = None
    ) -> AllocationSnapshot:
        """
        Build the allocation snapshot for one item at one site

        Raises ErpReadError when GP cannot be read. A failing reservation
        store only drops the reservation fields.
        """
        item_number = item_number.strip()
        site_id = site_id.strip()

        # Hygiene only; never fails the read
        self.reservations.sweep_expired()

        # 1. Item master flag is the starting point, not the answer
        master_option = self.erp.get_tracking_option(item_number)
        tracking_option = master_option if master_option is not None else TRACKING_NONE

        # 2. Serial records at this site are stronger evidence than the flag
        serial_rows = self.erp.list_unsold_serials(item_number, site_id)
        if serial_rows and tracking_option != TRACKING_SERIAL:
            logger.warning(
                f"Item {item_number} is flagged tracking option {tracking_option} "
                f"but has {len(serial_rows)} unsold serials at {site_id}; treating as serialized"
            )
            tracking_option = TRACKING_SERIAL

        # 3. Serial records anywhere still mean the item is serial tracked
        if not serial_rows and tracking_option != TRACKING_SERIAL:
            if self.erp.has_unsold_serials(item_number):
                logger.warning(
                    f"Item {item_number} is flagged tracking option {tracking_option} "
                    f"but has unsold serials at other sites; treating as serialized"
                )
                tracking_option = TRACKING_SERIAL

        is_serialized = tracking_option == TRACKING_SERIAL
        serials = [
            SerialAllocation(
                serial_number=row.serial_number.strip(),
                receipt_date=row.date_received.date() if row.date_received else None,
                aging_days=aging_days(row.date_received, today),
                bin=(row.bin or '').strip() or None
            )
            for row in serial_rows
        ]

        # 4. Reservation join
        reservations_available = self._join_reservations(item_number, serials, requester)

        # 5. GP allocation join
        allocations = self.erp.get_serial_allocations(
            item_number, [serial.serial_number for serial in serials]
        )
        current_order = current_order_number.strip() if current_order_number else None
        for serial in serials:
            allocation = allocations.get(serial.serial_number)
            if not allocation:
                continue
            serial.allocated_to_sop_number = allocation["sop_number"]
            serial.allocated_to_sop_type = allocation["sop_type"]
            serial.is_allocated_by_other_order = not self._is_current_order(
                allocation, current_order, current_order_type
            )

        # 6. Available quantity
        quantities = self.erp.get_site_quantities(item_number, site_id)
        qty_on_hand = quantities["qty_on_hand"]
        qty_allocated = quantities["qty_allocated"]

        if is_serialized:
            # Serial count is authoritative over the cached columns, which drift
            selectable = [
                serial for serial in serials
                if not serial.is_allocated_by_other_order and not serial.is_reserved_by_other
            ]
            available_qty = Decimal(len(selectable))
            qty_on_hand = Decimal(len(serials))
        else:
            available_qty = max(Decimal("0"), qty_on_hand - qty_allocated)

        return AllocationSnapshot(
            item_number=item_number,
            site_id=site_id,
            tracking_option=tracking_option,
            is_serialized=is_serialized,
            available_qty=available_qty,
            qty_on_hand=qty_on_hand,
            qty_allocated=qty_allocated,
            serials=serials,
            reservations_available=reservations_available
        )

    def _join_reservations(self, item_number: str, serials, requester: Requester) -> bool:
        if not serials:
            return True
        try:
            active = {
                reservation.serial_number: reservation
                for reservation in self.reservations.get_active_reservations(item_number)
            }
        except ReservationStoreError as e:
            logger.error(f"{e}; returning allocation data without reservations: {e.__cause__}")
            return False

        for serial in serials:
            reservation = active.get(serial.serial_number)
            if reservation:
                serial.reserved_by = reservation.reserved_by
                serial.reserved_by_name = reservation.user_name
                serial.is_reserved_by_me = reservation.reserved_by == requester.id
        return True

    @staticmethod
    def _is_current_order(allocation: dict, current_order: Optional[str], current_order_type: Optional[int]) -> bool:
        if not current_order:
            return False
        if allocation["sop_number"] != current_order:
            return False
        return current_order_type is None or allocation["sop_type"] == current_order_type
