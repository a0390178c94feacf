"""
GP Dashboard SQLAlchemy Models
Application tables plus read-only Dynamics GP mappings
"""

# Import all models to ensure they are registered with SQLAlchemy
from .reservation import SerialReservation
from .erp import (
    ItemMaster, ItemSiteQuantity, SerialMaster, ReceiptLayer,
    SopHeader, SopLine, SopSerial
)

__all__ = [
    "SerialReservation",
    # GP Models
    "ItemMaster",
    "ItemSiteQuantity",
    "SerialMaster",
    "ReceiptLayer",
    "SopHeader",
    "SopLine",
    "SopSerial",
]
