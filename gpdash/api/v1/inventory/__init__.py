"""Inventory allocation and serial reservation API endpoints"""

from . import allocation, reservations, detail

__all__ = ["allocation", "reservations", "detail"]
