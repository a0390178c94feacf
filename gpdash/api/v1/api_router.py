"""
Main API Router - Consolidates all module routes
"""

from fastapi import APIRouter
from gpdash.api.v1 import inventory

api_router = APIRouter()

# Inventory allocation routes
api_router.include_router(inventory.allocation.router, prefix="/inventory", tags=["inventory-allocation"])
api_router.include_router(inventory.detail.router, prefix="/inventory", tags=["inventory-detail"])

# Serial reservation routes
api_router.include_router(inventory.reservations.router, prefix="/inventory/reservations", tags=["serial-reservations"])
