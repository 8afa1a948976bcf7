"""FastAPI dependencies shared across the API."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, Header

from voice_onboarding.config import settings
from voice_onboarding.errors import UnauthorizedError
from voice_onboarding.services.container import Services, build_services


@lru_cache(maxsize=1)
def _shared_services() -> Services:
    return build_services(settings)


def get_services() -> Services:
    """Return the shared service container. Overridden in tests."""

    return _shared_services()


def get_current_user(
    authorization: str = Header(None),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Resolve the Supabase user behind the ``Authorization: Bearer`` header."""

    if not authorization:
        raise UnauthorizedError("Missing authorization header")
    if not authorization.startswith("Bearer "):
        raise UnauthorizedError("Invalid authorization header")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise UnauthorizedError("Invalid authorization token")

    user = services.store.get_user_from_token(token)
    if not user or not user.get("id"):
        raise UnauthorizedError("Invalid or expired token")
    return user
