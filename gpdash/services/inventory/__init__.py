"""Serial allocation, reservation and inventory detail services"""

from .reservation_service import SerialReservationService
from .erp_inventory import ErpInventoryRepository
from .allocation_resolver import AllocationResolver
from .inventory_detail import InventoryDetailService
from .selection import SelectionController, SelectionMode, LineAllocation
from .gateways import HttpReservationGateway, ServiceReservationGateway

__all__ = [
    "SerialReservationService",
    "ErpInventoryRepository",
    "AllocationResolver",
    "InventoryDetailService",
    "SelectionController",
    "SelectionMode",
    "LineAllocation",
    "HttpReservationGateway",
    "ServiceReservationGateway",
]
