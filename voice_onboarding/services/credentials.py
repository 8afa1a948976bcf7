"""Maps a user (or an explicit Nango connection) to an authenticated Square client."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from voice_onboarding.config import SQUARE_PROVIDER_KEYS, SquareConfig
from voice_onboarding.errors import NotFoundError
from voice_onboarding.services.nango_client import NangoClient
from voice_onboarding.services.square_client import SquareClient
from voice_onboarding.services.supabase_store import SupabaseStore

logger = logging.getLogger(__name__)

SquareFactory = Callable[[str], SquareClient]


class CredentialResolver:
    def __init__(
        self,
        store: SupabaseStore,
        nango: NangoClient,
        square_config: SquareConfig,
        square_factory: Optional[SquareFactory] = None,
    ) -> None:
        self.store = store
        self.nango = nango
        self.square_config = square_config
        self._square_factory = square_factory or (
            lambda token: SquareClient(token, square_config)
        )

    def resolve_connection_id(self, user_id: str, connection_id: Optional[str] = None) -> str:
        """Explicit id, else the user's active Square connection.

        Raises NotFoundError without touching Square or Nango when the user
        has no active connection.
        """
        if connection_id:
            return connection_id
        connection = self.store.get_active_connection(user_id, SQUARE_PROVIDER_KEYS)
        if connection is None:
            raise NotFoundError("No active Square connection found for user")
        return connection.connection_id

    async def square_for_connection(self, connection_id: str) -> SquareClient:
        token = await self.nango.get_access_token(
            connection_id, self.square_config.provider_config_key
        )
        logger.debug("Resolved Square token for connection %s", connection_id)
        return self._square_factory(token)

    async def square_for_user(
        self, user_id: str, connection_id: Optional[str] = None
    ) -> SquareClient:
        resolved = await asyncio.to_thread(self.resolve_connection_id, user_id, connection_id)
        return await self.square_for_connection(resolved)
