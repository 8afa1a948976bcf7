"""
Async Square REST v2 client.

Covers the merchant, location, catalog, bookings and customers endpoints
the onboarding flow and the booking agent need. The base URL follows the
configured environment (sandbox or production); the access token is the
merchant's OAuth token obtained through Nango.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, AsyncIterator, Optional

import httpx

from voice_onboarding.config import SquareConfig
from voice_onboarding.errors import BookingConflictError, SquareAPIError

logger = logging.getLogger(__name__)

CATALOG_TYPES = "ITEM,ITEM_VARIATION,CATEGORY"
CONFLICT_CODES = {"VERSION_MISMATCH", "CONFLICT"}


def idempotency_key() -> str:
    return str(uuid.uuid4())


class SquareClient:
    def __init__(
        self,
        access_token: str,
        config: SquareConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_sec,
            transport=transport,
            headers={
                "Square-Version": config.api_version,
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> "SquareClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise SquareAPIError(f"Square request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            errors = body.get("errors") or []
            detail = "; ".join(e.get("detail") or e.get("code", "") for e in errors)
            message = detail or f"HTTP {response.status_code}"
            logger.error("Square %s %s failed (%s): %s", method, path, response.status_code, message)
            codes = {e.get("code") for e in errors}
            if response.status_code == 409 or codes & CONFLICT_CODES:
                raise BookingConflictError(message, status=response.status_code, errors=errors)
            raise SquareAPIError(message, status=response.status_code, errors=errors)
        return body

    # ------------------------------------------------------------------ #
    # Merchant, locations, catalog
    # ------------------------------------------------------------------ #

    async def list_merchants(self) -> list[dict[str, Any]]:
        body = await self._request("GET", "/merchants")
        return body.get("merchant") or body.get("merchants") or []

    async def list_locations(self) -> list[dict[str, Any]]:
        body = await self._request("GET", "/locations")
        return body.get("locations", [])

    async def list_catalog(self, types: str = CATALOG_TYPES) -> list[dict[str, Any]]:
        """Every catalog object of the given types, following cursors."""
        objects: list[dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            params = {"types": types}
            if cursor:
                params["cursor"] = cursor
            body = await self._request("GET", "/catalog/list", params=params)
            objects.extend(body.get("objects", []))
            cursor = body.get("cursor")
            if not cursor:
                return objects

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    async def search_availability(
        self,
        start_at_min: str,
        start_at_max: str,
        location_id: Optional[str] = None,
        segment_filters: Optional[list[dict[str, Any]]] = None,
    ) -> list[dict[str, Any]]:
        query_filter: dict[str, Any] = {
            "start_at_range": {"start_at": start_at_min, "end_at": start_at_max},
        }
        if location_id:
            query_filter["location_id"] = location_id
        if segment_filters:
            query_filter["segment_filters"] = segment_filters
        body = await self._request(
            "POST",
            "/bookings/availability/search",
            json={"query": {"filter": query_filter}},
        )
        return body.get("availabilities") or []

    async def create_booking(self, booking: dict[str, Any]) -> dict[str, Any]:
        body = await self._request(
            "POST",
            "/bookings",
            json={"idempotency_key": idempotency_key(), "booking": booking},
        )
        return body["booking"]

    async def get_booking(self, booking_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/bookings/{booking_id}")
        return body["booking"]

    async def update_booking(
        self, booking_id: str, booking: dict[str, Any], version: int
    ) -> dict[str, Any]:
        body = await self._request(
            "PUT",
            f"/bookings/{booking_id}",
            json={
                "idempotency_key": idempotency_key(),
                "booking": {**booking, "version": version},
            },
        )
        return body["booking"]

    async def cancel_booking(self, booking_id: str, version: int) -> dict[str, Any]:
        body = await self._request(
            "POST",
            f"/bookings/{booking_id}/cancel",
            json={"idempotency_key": idempotency_key(), "booking_version": version},
        )
        return body["booking"]

    async def list_bookings(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        location_id: Optional[str] = None,
        team_member_id: Optional[str] = None,
        start_at_min: Optional[str] = None,
        start_at_max: Optional[str] = None,
    ) -> dict[str, Any]:
        """One page: ``{"bookings": [...], "cursor": ...}``."""
        params = {
            "limit": limit,
            "cursor": cursor,
            "location_id": location_id,
            "team_member_id": team_member_id,
            "start_at_min": start_at_min,
            "start_at_max": start_at_max,
        }
        body = await self._request(
            "GET",
            "/bookings",
            params={k: v for k, v in params.items() if v is not None},
        )
        return {"bookings": body.get("bookings", []), "cursor": body.get("cursor")}

    async def iter_bookings(self, **filters: Any) -> AsyncIterator[dict[str, Any]]:
        cursor = None
        while True:
            page = await self.list_bookings(cursor=cursor, **filters)
            for booking in page["bookings"]:
                yield booking
            cursor = page["cursor"]
            if not cursor:
                return

    # ------------------------------------------------------------------ #
    # Customers
    # ------------------------------------------------------------------ #

    async def search_customers_by_phone(self, phone: str) -> list[dict[str, Any]]:
        body = await self._request(
            "POST",
            "/customers/search",
            json={"query": {"filter": {"phone_number": {"exact": phone}}}, "limit": 1},
        )
        return body.get("customers", [])
