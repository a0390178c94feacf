"""Inventory Detail API endpoints"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from gpdash.api import deps
from gpdash.core.exceptions import ErpReadError
from gpdash.schemas.inventory import InventoryDetail
from gpdash.services.inventory.inventory_detail import InventoryDetailService

router = APIRouter()


@router.get("/detail", response_model=InventoryDetail)
def get_inventory_detail(
    item_number: str = Query(..., min_length=1, max_length=31),
    site_id: str = Query(..., min_length=1, max_length=11),
    erp_db: Session = Depends(deps.get_erp_db)
):
    """Aging and allocation breakdown for an item at a site"""
    try:
        return InventoryDetailService(erp_db).get_inventory_detail(item_number, site_id)
    except ErpReadError as e:
        raise HTTPException(status_code=502, detail=str(e))
