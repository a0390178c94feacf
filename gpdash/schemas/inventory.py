"""Inventory allocation and serial reservation schemas"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal


# Reservation Schemas
class ReserveRequest(BaseModel):
    item_number: str = Field(..., min_length=1, max_length=31)
    serial_number: str = Field(..., min_length=1, max_length=21)
    guest_id: Optional[str] = Field(None, max_length=255)


class ReleaseRequest(ReserveRequest):
    pass


class ReleaseAllRequest(BaseModel):
    guest_id: Optional[str] = Field(None, max_length=255)


class ReservationResult(BaseModel):
    """Outcome of a reserve call; contention is a normal, non-exceptional result"""
    success: bool
    error: Optional[str] = None
    reserved_by: Optional[str] = Field(None, description="Display name of the current holder")


class ReleaseResult(BaseModel):
    success: bool


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_number: str
    serial_number: str
    reserved_by: str
    user_name: Optional[str] = None
    expires_at: datetime


class ReservationStats(BaseModel):
    total_reservations: int
    active_reservations: int
    expired_reservations: int
    expiring_within_5min: int


# Allocation Schemas
class SerialAllocation(BaseModel):
    serial_number: str
    receipt_date: Optional[date] = None
    aging_days: Optional[int] = None
    bin: Optional[str] = None
    # From the reservation table; None when nobody holds it or the lookup failed
    reserved_by: Optional[str] = None
    reserved_by_name: Optional[str] = None
    is_reserved_by_me: bool = False
    # From GP sales order lines, independent of reservations
    allocated_to_sop_number: Optional[str] = None
    allocated_to_sop_type: Optional[int] = None
    is_allocated_by_other_order: bool = False

    @property
    def is_reserved_by_other(self) -> bool:
        return self.reserved_by is not None and not self.is_reserved_by_me


class AllocationSnapshot(BaseModel):
    item_number: str
    site_id: str
    tracking_option: int = Field(..., description="1=None, 2=Serial, 3=Lot")
    is_serialized: bool
    available_qty: Decimal = Decimal("0")
    qty_on_hand: Decimal = Decimal("0")
    qty_allocated: Decimal = Decimal("0")
    serials: List[SerialAllocation] = []
    reservations_available: bool = True

    def find_serial(self, serial_number: str) -> Optional[SerialAllocation]:
        for serial in self.serials:
            if serial.serial_number == serial_number:
                return serial
        return None


# Inventory Detail Schemas
class SerialDetail(BaseModel):
    serial_number: str
    receipt_number: Optional[str] = None
    date_received: Optional[date] = None
    days_old: Optional[int] = None
    bin: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    document_number: Optional[str] = None
    customer_name: Optional[str] = None


class ReceiptLayerDetail(BaseModel):
    receipt_number: str
    date_received: Optional[date] = None
    days_old: Optional[int] = None
    qty_available: Decimal
    location_code: str


class SalesAllocationDetail(BaseModel):
    sop_number: str
    customer_name: Optional[str] = None
    qty_allocated: Decimal
    quantity: Decimal
    document_date: Optional[date] = None


class InventoryDetail(BaseModel):
    item_number: str
    site_id: str
    tracking_option: int
    serials: List[SerialDetail] = []
    receipt_layers: List[ReceiptLayerDetail] = []
    allocations: List[SalesAllocationDetail] = []
