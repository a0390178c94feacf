"""
Serial Reservation API endpoints
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from gpdash.api import deps
from gpdash.core.exceptions import ReservationStoreError
from gpdash.core.security import resolve_requester
from gpdash.schemas.inventory import (
    ReserveRequest, ReleaseRequest, ReleaseAllRequest,
    ReservationResult, ReleaseResult, ReservationResponse, ReservationStats
)
from gpdash.services.inventory.reservation_service import SerialReservationService

router = APIRouter()


@router.post("/reserve", response_model=ReservationResult)
def reserve_serial(
    request: ReserveRequest,
    db: Session = Depends(deps.get_db),
    claims: Optional[dict] = Depends(deps.get_session_claims)
):
    """
    Reserve a serial number for the caller.

    Contention is returned as success=false with the holder's name.
    """
    requester = resolve_requester(claims, request.guest_id)
    service = SerialReservationService(db)
    return service.reserve(request.item_number, request.serial_number, requester)


@router.post("/release", response_model=ReleaseResult)
def release_serial(
    request: ReleaseRequest,
    db: Session = Depends(deps.get_db),
    claims: Optional[dict] = Depends(deps.get_session_claims)
):
    """
    Release the caller's reservation on a serial number.
    """
    requester = resolve_requester(claims, request.guest_id)
    return SerialReservationService(db).release(request.item_number, request.serial_number, requester)


@router.post("/release-all", response_model=ReleaseResult)
def release_all_reservations(
    request: ReleaseAllRequest,
    db: Session = Depends(deps.get_db),
    claims: Optional[dict] = Depends(deps.get_session_claims)
):
    requester = resolve_requester(claims, request.guest_id)
    return SerialReservationService(db).release_all(requester)


@router.get("/stats", response_model=ReservationStats)
def get_reservation_stats(db: Session = Depends(deps.get_db)):
    """Reservation counts for monitoring"""
    try:
        return SerialReservationService(db).get_reservation_stats()
    except ReservationStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("", response_model=List[ReservationResponse])
def list_reservations(
    item_number: str = Query(..., min_length=1, max_length=31),
    db: Session = Depends(deps.get_db)
):
    """
    Active reservations for an item.
    """
    try:
        return SerialReservationService(db).get_active_reservations(item_number.strip())
    except ReservationStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
