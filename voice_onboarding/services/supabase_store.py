"""Supabase persistence for users, connections, profiles, chat and import tasks.

All reads use the ``.limit(1)`` + ``resp.data or []`` pattern; writes that
must be idempotent go through ``upsert`` with an explicit conflict target.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Iterable, Optional

from supabase import AuthError, Client, PostgrestAPIError, create_client

from voice_onboarding.config import AppConfig, settings
from voice_onboarding.errors import ConfigurationError, UpstreamError
from voice_onboarding.schemas.connection_schema import (
    Connection,
    ConnectionStatus,
    ImportTask,
    Integration,
    TaskStatus,
    TASK_ORDER,
)
from voice_onboarding.utils import utc_now_iso

logger = logging.getLogger(__name__)


def _first(resp: Any) -> Optional[dict[str, Any]]:
    data = resp.data or []
    return data[0] if data else None


def _user_dict(user: Any) -> dict[str, Any]:
    metadata = getattr(user, "user_metadata", None) or {}
    return {
        "id": user.id,
        "email": getattr(user, "email", None),
        "full_name": metadata.get("full_name"),
    }


class SupabaseStore:
    """Thin wrapper over the Supabase client using the service role key."""

    def __init__(self, client: Client):
        self.client = client

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #

    def get_user(self, user_id: str) -> Optional[dict[str, Any]]:
        """Admin lookup by id. Unknown users come back as None."""
        try:
            resp = self.client.auth.admin.get_user_by_id(user_id)
        except AuthError as exc:
            logger.warning("User lookup failed for %s: %s", user_id, exc)
            return None
        if not resp or not resp.user:
            return None
        return _user_dict(resp.user)

    def get_user_from_token(self, token: str) -> Optional[dict[str, Any]]:
        try:
            resp = self.client.auth.get_user(token)
        except AuthError as exc:
            logger.info("Rejected bearer token: %s", exc)
            return None
        if not resp or not resp.user:
            return None
        return _user_dict(resp.user)

    # ------------------------------------------------------------------ #
    # Integrations and connections
    # ------------------------------------------------------------------ #

    def get_integration(self, integration_id: str) -> Optional[Integration]:
        row = _first(
            self.client.table("integrations")
            .select("*")
            .eq("id", integration_id)
            .limit(1)
            .execute()
        )
        return Integration(**row) if row else None

    def get_integration_by_key(self, provider_config_key: str) -> Optional[Integration]:
        row = _first(
            self.client.table("integrations")
            .select("*")
            .eq("ext_integration_id", provider_config_key)
            .limit(1)
            .execute()
        )
        return Integration(**row) if row else None

    def upsert_connection(self, connection: Connection) -> Connection:
        """Insert or replace the single row for (user_id, integration_id)."""
        row = connection.model_dump(exclude_none=True, mode="json")
        try:
            resp = (
                self.client.table("connections")
                .upsert(row, on_conflict="user_id,integration_id")
                .execute()
            )
        except PostgrestAPIError as exc:
            raise UpstreamError("Failed to store connection", details=str(exc)) from exc
        stored = _first(resp)
        return Connection(**stored) if stored else connection

    def get_active_connection(
        self, user_id: str, provider_config_keys: Iterable[str]
    ) -> Optional[Connection]:
        """Most recent active connection of the user for any of the given keys."""
        resp = (
            self.client.table("integrations")
            .select("id")
            .in_("ext_integration_id", list(provider_config_keys))
            .execute()
        )
        integration_ids = [row["id"] for row in (resp.data or [])]
        if not integration_ids:
            return None
        row = _first(
            self.client.table("connections")
            .select("*")
            .eq("user_id", user_id)
            .eq("status", ConnectionStatus.ACTIVE.value)
            .in_("integration_id", integration_ids)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return Connection(**row) if row else None

    def touch_connection_sync(self, user_id: str, connection_id: str) -> None:
        (
            self.client.table("connections")
            .update({"last_sync_at": utc_now_iso()})
            .eq("user_id", user_id)
            .eq("connection_id", connection_id)
            .execute()
        )

    # ------------------------------------------------------------------ #
    # Business data
    # ------------------------------------------------------------------ #

    def update_business_data(self, user_id: str, business_data: dict[str, Any]) -> None:
        try:
            (
                self.client.table("user_profiles")
                .update({"business_data": business_data})
                .eq("id", user_id)
                .execute()
            )
        except PostgrestAPIError as exc:
            raise UpstreamError("Failed to store business data", details=str(exc)) from exc

    def get_business_data(self, user_id: str) -> Optional[dict[str, Any]]:
        row = _first(
            self.client.table("user_profiles")
            .select("business_data")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        return (row or {}).get("business_data")

    # ------------------------------------------------------------------ #
    # Onboarding chat
    # ------------------------------------------------------------------ #

    def get_onboarding_conversation(self, user_id: str) -> Optional[str]:
        row = _first(
            self.client.table("conversations")
            .select("id")
            .eq("user_id", user_id)
            .eq("type", "onboarding")
            .limit(1)
            .execute()
        )
        return row["id"] if row else None

    def append_message(self, conversation_id: str, role: str, content: str) -> int:
        """Append a message after the last one and return its order."""
        last = _first(
            self.client.table("messages")
            .select("message_order")
            .eq("conversation_id", conversation_id)
            .order("message_order", desc=True)
            .limit(1)
            .execute()
        )
        order = (last["message_order"] if last else 0) + 1
        (
            self.client.table("messages")
            .insert({
                "conversation_id": conversation_id,
                "role": role,
                "content": content,
                "message_order": order,
            })
            .execute()
        )
        return order

    # ------------------------------------------------------------------ #
    # Import tasks
    # ------------------------------------------------------------------ #

    def create_import_tasks(
        self, user_id: str, connection_id: str, max_retries: int = 3
    ) -> list[ImportTask]:
        """(Re)queue one task per type; re-linking an account restarts the import."""
        rows = [
            {
                "user_id": user_id,
                "connection_id": connection_id,
                "task_type": task_type.value,
                "status": TaskStatus.PENDING.value,
                "retry_count": 0,
                "max_retries": max_retries,
                "progress_message": "Queued",
                "error_message": None,
            }
            for task_type in TASK_ORDER
        ]
        resp = (
            self.client.table("import_tasks")
            .upsert(rows, on_conflict="user_id,connection_id,task_type")
            .execute()
        )
        return [ImportTask(**row) for row in (resp.data or [])]

    def get_task(self, task_id: str) -> Optional[ImportTask]:
        row = _first(
            self.client.table("import_tasks").select("*").eq("id", task_id).limit(1).execute()
        )
        return ImportTask(**row) if row else None

    def list_pending_tasks(self, user_id: Optional[str] = None) -> list[ImportTask]:
        query = (
            self.client.table("import_tasks")
            .select("*")
            .in_("status", [TaskStatus.PENDING.value, TaskStatus.RETRYING.value])
        )
        if user_id:
            query = query.eq("user_id", user_id)
        resp = query.order("created_at").execute()
        return [ImportTask(**row) for row in (resp.data or [])]

    def update_task(self, task_id: str, **fields: Any) -> None:
        values = {
            k: (v.value if isinstance(v, TaskStatus) else v) for k, v in fields.items()
        }
        self.client.table("import_tasks").update(values).eq("id", task_id).execute()

    def get_onboarding(self, user_id: str) -> Optional[dict[str, Any]]:
        return _first(
            self.client.table("onboarding").select("*").eq("user_id", user_id).limit(1).execute()
        )

    def upsert_onboarding(self, user_id: str, fields: dict[str, Any]) -> None:
        row = {"user_id": user_id, **fields}
        self.client.table("onboarding").upsert(row, on_conflict="user_id").execute()


@lru_cache(maxsize=1)
def get_store(config: AppConfig = settings) -> SupabaseStore:
    """Shared store built from configuration."""
    if not config.supabase.is_configured:
        raise ConfigurationError(
            "Missing required environment variables",
            details=["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"],
        )
    return SupabaseStore(create_client(config.supabase.url, config.supabase.service_role_key))
