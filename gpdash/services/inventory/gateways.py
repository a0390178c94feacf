"""
Reservation gateways for the Selection Controller
HTTP access to the dashboard API, or direct in-process service calls
"""
from typing import Any, Callable, Dict, Optional
import asyncio
import logging

import httpx
from sqlalchemy.orm import Session

from gpdash.core.config import settings
from gpdash.core.exceptions import ErpReadError, IntegrationError
from gpdash.core.security import Requester
from gpdash.schemas.inventory import AllocationSnapshot, ReservationResult, ReleaseResult
from gpdash.services.inventory.allocation_resolver import AllocationResolver
from gpdash.services.inventory.reservation_service import SerialReservationService

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response, default: str) -> str:
    """FastAPI error detail, or the default when a proxy sent its own page"""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and isinstance(body.get("detail"), str):
        return body["detail"]
    return default


class HttpReservationGateway:
    """
    Talks to the /inventory endpoints the way the order modal does

    Identity comes from the bearer token when given, else from guest_id.
    """

    def __init__(
        self,
        base_url: str,
        guest_id: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.guest_id = guest_id
        self.prefix = f"{settings.API_V1_STR}/inventory"
        if client is None:
            client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        else:
            client.headers.update(headers)
        self._client = client

    async def reserve(self, item_number: str, serial_number: str) -> ReservationResult:
        data = await self._request(
            "POST", "/reservations/reserve",
            json={"item_number": item_number, "serial_number": serial_number, "guest_id": self.guest_id}
        )
        return ReservationResult.model_validate(data)

    async def release(self, item_number: str, serial_number: str) -> ReleaseResult:
        data = await self._request(
            "POST", "/reservations/release",
            json={"item_number": item_number, "serial_number": serial_number, "guest_id": self.guest_id}
        )
        return ReleaseResult.model_validate(data)

    async def release_all(self) -> ReleaseResult:
        data = await self._request("POST", "/reservations/release-all", json={"guest_id": self.guest_id})
        return ReleaseResult.model_validate(data)

    async def get_allocation_data(
        self,
        item_number: str,
        site_id: str,
        current_order_number: Optional[str] = None,
        current_order_type: Optional[int] = None
    ) -> AllocationSnapshot:
        params: Dict[str, Any] = {"item_number": item_number, "site_id": site_id}
        if current_order_number:
            params["current_order_number"] = current_order_number
        if current_order_type is not None:
            params["current_order_type"] = current_order_type
        if self.guest_id:
            params["guest_id"] = self.guest_id

        data = await self._request("GET", "/allocation", params=params)
        return AllocationSnapshot.model_validate(data)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, f"{self.prefix}{path}", **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"{method} {path} returned {status}")
            if status == 502:
                raise ErpReadError(_error_detail(e.response, "GP read failed")) from e
            raise IntegrationError(f"Reservation API error {status} on {path}") from e
        except httpx.RequestError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise IntegrationError(f"Reservation API unreachable: {e}") from e


class ServiceReservationGateway:
    """
    Calls the services directly with a fresh session per call

    The services are synchronous, so calls run in a worker thread.
    """

    def __init__(
        self,
        app_session_factory: Callable[[], Session],
        erp_session_factory: Callable[[], Session],
        requester: Requester
    ):
        self.app_session_factory = app_session_factory
        self.erp_session_factory = erp_session_factory
        self.requester = requester

    async def reserve(self, item_number: str, serial_number: str) -> ReservationResult:
        return await asyncio.to_thread(self._reserve, item_number, serial_number)

    async def release(self, item_number: str, serial_number: str) -> ReleaseResult:
        return await asyncio.to_thread(self._release, item_number, serial_number)

    async def get_allocation_data(
        self,
        item_number: str,
        site_id: str,
        current_order_number: Optional[str] = None,
        current_order_type: Optional[int] = None
    ) -> AllocationSnapshot:
        return await asyncio.to_thread(
            self._get_allocation_data, item_number, site_id, current_order_number, current_order_type
        )

    def _reserve(self, item_number: str, serial_number: str) -> ReservationResult:
        db = self.app_session_factory()
        try:
            return SerialReservationService(db).reserve(item_number, serial_number, self.requester)
        finally:
            db.close()

    def _release(self, item_number: str, serial_number: str) -> ReleaseResult:
        db = self.app_session_factory()
        try:
            return SerialReservationService(db).release(item_number, serial_number, self.requester)
        finally:
            db.close()

    def _get_allocation_data(self, item_number, site_id, current_order_number, current_order_type):
        app_db = self.app_session_factory()
        erp_db = self.erp_session_factory()
        try:
            return AllocationResolver(erp_db, app_db).get_allocation_data(
                item_number, site_id, self.requester,
                current_order_number=current_order_number,
                current_order_type=current_order_type
            )
        finally:
            erp_db.close()
            app_db.close()
