"""
GP Sales Dashboard Services
Business logic for serial allocation and reservations
"""

from .inventory import (
    SerialReservationService,
    AllocationResolver,
    InventoryDetailService,
    SelectionController,
)

__all__ = [
    "SerialReservationService",
    "AllocationResolver",
    "InventoryDetailService",
    "SelectionController",
]
