"""
GP Sales Dashboard Pydantic Schemas
Request/Response models for the inventory API
"""

from .inventory import (
    ReserveRequest, ReleaseRequest, ReleaseAllRequest,
    ReservationResult, ReleaseResult, ReservationResponse, ReservationStats,
    SerialAllocation, AllocationSnapshot,
    SerialDetail, ReceiptLayerDetail, SalesAllocationDetail, InventoryDetail
)

__all__ = [
    # Reservations
    "ReserveRequest",
    "ReleaseRequest",
    "ReleaseAllRequest",
    "ReservationResult",
    "ReleaseResult",
    "ReservationResponse",
    "ReservationStats",

    # Allocation
    "SerialAllocation",
    "AllocationSnapshot",

    # Inventory detail
    "SerialDetail",
    "ReceiptLayerDetail",
    "SalesAllocationDetail",
    "InventoryDetail",
]
