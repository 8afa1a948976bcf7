"""
OAuth bridge between the frontend, Nango and the connections table.

``create_session`` hands the frontend a short-lived Nango connect token.
``handle_webhook`` records the outcome of the connect flow: one connection
row per (user, integration), a note in the onboarding chat, and for Square
a background import job.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from voice_onboarding.config import SQUARE_PROVIDER_KEYS
from voice_onboarding.errors import (
    InvalidRequestError,
    NangoAPIError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
)
from voice_onboarding.integrations.import_processor import ImportProcessor
from voice_onboarding.integrations.webhook_signature import verify_nango_signature
from voice_onboarding.schemas.connection_schema import (
    Connection,
    ConnectionStatus,
    NangoWebhook,
)
from voice_onboarding.services.nango_client import NangoClient
from voice_onboarding.services.supabase_store import SupabaseStore
from voice_onboarding.utils import utc_now_iso

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "Your {name} account is now connected. I'm importing your business "
    "details in the background and will use them to set up your booking agent."
)
FAILURE_MESSAGE = "Connecting your {name} account didn't work{reason}. Please try again."


class OAuthBridge:
    def __init__(
        self,
        store: SupabaseStore,
        nango: NangoClient,
        importer: Optional[ImportProcessor] = None,
        webhook_secret: str = "",
    ) -> None:
        self.store = store
        self.nango = nango
        self.importer = importer
        self.webhook_secret = webhook_secret
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Connect session
    # ------------------------------------------------------------------ #

    async def create_session(self, user_id: str, integration_id: str) -> dict[str, Any]:
        if not user_id or not integration_id:
            raise InvalidRequestError("Missing required fields: integrationId, userId")

        user = await asyncio.to_thread(self.store.get_user, user_id)
        if user is None:
            raise NotFoundError("User not found")
        integration = await asyncio.to_thread(self.store.get_integration, integration_id)
        if integration is None:
            raise NotFoundError("Integration not found")

        try:
            session = await self.nango.create_connect_session(
                end_user_id=user_id,
                email=user.get("email"),
                display_name=user.get("full_name") or user.get("email"),
                allowed_integrations=[integration.ext_integration_id],
            )
        except NangoAPIError as exc:
            raise UpstreamError(
                f"Failed to create session token: {exc.message}", details=exc.details
            ) from exc

        logger.info(
            "Created Nango session for user %s (%s)", user_id, integration.ext_integration_id
        )
        return {"sessionToken": session["token"], "integration": integration.public()}

    # ------------------------------------------------------------------ #
    # Webhook
    # ------------------------------------------------------------------ #

    async def handle_webhook(
        self, raw_body: bytes, payload: Any, headers: Mapping[str, str]
    ) -> dict[str, Any]:
        if not verify_nango_signature(self.webhook_secret, raw_body, headers):
            raise UnauthorizedError("Invalid webhook signature")

        try:
            webhook = NangoWebhook.model_validate(payload)
        except ValidationError as exc:
            raise InvalidRequestError("Malformed webhook payload", details=exc.errors()) from exc

        if webhook.type != "auth":
            logger.info("Ignoring Nango webhook of type %s", webhook.type)
            return {"received": True}

        user_id = webhook.user_id
        if not user_id:
            logger.warning(
                "Webhook for connection %s has no end user, skipping", webhook.connection_id
            )
            return {"received": True}

        if webhook.success:
            await self._on_auth_success(user_id, webhook)
        else:
            await asyncio.to_thread(self._on_auth_failure, user_id, webhook)
        return {"received": True}

    async def _on_auth_success(self, user_id: str, webhook: NangoWebhook) -> None:
        if not webhook.connection_id or not webhook.provider_config_key:
            raise InvalidRequestError("Webhook is missing connectionId or providerConfigKey")

        integration = await asyncio.to_thread(
            self.store.get_integration_by_key, webhook.provider_config_key
        )
        if integration is None:
            raise NotFoundError(f"Integration {webhook.provider_config_key} not found")

        connection = Connection(
            user_id=user_id,
            integration_id=integration.id,
            connection_id=webhook.connection_id,
            status=ConnectionStatus.ACTIVE,
            metadata={
                "provider": webhook.provider or webhook.provider_config_key,
                "connected_at": utc_now_iso(),
            },
        )
        await asyncio.to_thread(self.store.upsert_connection, connection)
        logger.info(
            "Connection %s stored for user %s (%s)",
            webhook.connection_id, user_id, integration.ext_integration_id,
        )
        await asyncio.to_thread(
            self.notify, user_id, SUCCESS_MESSAGE.format(name=integration.name)
        )

        if webhook.provider_config_key in SQUARE_PROVIDER_KEYS and self.importer:
            self._schedule_import(user_id, webhook.connection_id)

    def _on_auth_failure(self, user_id: str, webhook: NangoWebhook) -> None:
        description = webhook.error.description if webhook.error else None
        logger.error(
            "Nango auth failed for user %s (%s): %s",
            user_id, webhook.provider_config_key, description,
        )
        integration = (
            self.store.get_integration_by_key(webhook.provider_config_key)
            if webhook.provider_config_key
            else None
        )
        name = integration.name if integration else "Square"
        reason = f": {description}" if description else ""
        self.notify(user_id, FAILURE_MESSAGE.format(name=name, reason=reason))

    # ------------------------------------------------------------------ #
    # Side effects
    # ------------------------------------------------------------------ #

    def notify(self, user_id: str, content: str) -> None:
        """Post an assistant message to the onboarding chat. Errors are logged only."""
        try:
            conversation_id = self.store.get_onboarding_conversation(user_id)
            if conversation_id is None:
                logger.warning("No onboarding conversation for user %s", user_id)
                return
            self.store.append_message(conversation_id, "assistant", content)
        except Exception:
            logger.exception("Failed to post onboarding message for user %s", user_id)

    def _schedule_import(self, user_id: str, connection_id: str) -> None:
        task = asyncio.create_task(self._run_import(user_id, connection_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_import(self, user_id: str, connection_id: str) -> None:
        try:
            await asyncio.to_thread(self.importer.queue_import, user_id, connection_id)
            summary = await self.importer.process_all_pending(user_id)
            logger.info("Import for user %s finished: %s", user_id, summary)
        except Exception:
            logger.exception("Background import failed for user %s", user_id)

    async def drain(self) -> None:
        """Wait for scheduled imports; used on shutdown and in tests."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
