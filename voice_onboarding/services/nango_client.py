"""Async client for the Nango REST API (connect sessions and credentials)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from voice_onboarding.config import NangoConfig
from voice_onboarding.errors import ConfigurationError, NangoAPIError

logger = logging.getLogger(__name__)


class NangoClient:
    def __init__(
        self,
        config: NangoConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not config.secret_key:
            raise ConfigurationError(
                "Missing required environment variables", details=["NANGO_SECRET_KEY"]
            )
        self._config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.host.rstrip("/"),
            timeout=self._config.timeout_sec,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._config.secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise NangoAPIError(f"Nango request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if response.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict):
                error = error.get("message") or error.get("code")
            message = error or f"HTTP {response.status_code}"
            logger.error("Nango %s %s failed: %s", method, path, message)
            raise NangoAPIError(str(message), status=response.status_code, body=body)
        return body

    async def create_connect_session(
        self,
        end_user_id: str,
        email: Optional[str],
        display_name: Optional[str],
        allowed_integrations: list[str],
    ) -> dict[str, Any]:
        """Short-lived token for the Nango connect UI. Returns ``{token, expires_at}``."""
        body = await self._request(
            "POST",
            "/connect/sessions",
            json={
                "end_user": {
                    "id": end_user_id,
                    "email": email,
                    "display_name": display_name,
                },
                "allowed_integrations": allowed_integrations,
            },
        )
        data = body.get("data") or {}
        if not data.get("token"):
            raise NangoAPIError("Nango returned no session token", body=body)
        return data

    async def get_connection(self, connection_id: str, provider_config_key: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/connection/{connection_id}",
            params={"provider_config_key": provider_config_key},
        )

    async def get_access_token(self, connection_id: str, provider_config_key: str) -> str:
        connection = await self.get_connection(connection_id, provider_config_key)
        token = (connection.get("credentials") or {}).get("access_token")
        if not token:
            raise NangoAPIError(
                f"No access token on connection {connection_id}", body=connection
            )
        return token
