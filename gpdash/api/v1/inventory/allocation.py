"""
Allocation API endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from gpdash.api import deps
from gpdash.core.exceptions import ErpReadError
from gpdash.core.security import Requester
from gpdash.schemas.inventory import AllocationSnapshot
from gpdash.services.inventory.allocation_resolver import AllocationResolver

router = APIRouter()


@router.get("/allocation", response_model=AllocationSnapshot)
def get_allocation_data(
    item_number: str = Query(..., min_length=1, max_length=31),
    site_id: str = Query(..., min_length=1, max_length=11),
    current_order_number: Optional[str] = Query(None, max_length=21),
    current_order_type: Optional[int] = Query(None),
    db: Session = Depends(deps.get_db),
    erp_db: Session = Depends(deps.get_erp_db),
    requester: Requester = Depends(deps.get_requester)
):
    """
    Stock, serial and reservation state for one item at one site.

    Serials on the current order are not reported as allocated elsewhere.
    """
    resolver = AllocationResolver(erp_db, db)
    try:
        return resolver.get_allocation_data(
            item_number,
            site_id,
            requester,
            current_order_number=current_order_number,
            current_order_type=current_order_type
        )
    except ErpReadError as e:
        raise HTTPException(status_code=502, detail=str(e))
