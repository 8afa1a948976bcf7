"""Nango connect-session and webhook endpoints."""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from voice_onboarding.api.dependencies import get_services
from voice_onboarding.errors import InvalidRequestError
from voice_onboarding.services.container import Services

router = APIRouter(prefix="/nango-oauth")


class NangoOAuthRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    integration_id: Optional[str] = Field(default=None, alias="integrationId")
    user_id: Optional[str] = Field(default=None, alias="userId")


@router.post("")
async def nango_oauth(
    payload: NangoOAuthRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Create a Nango connect session for the frontend."""

    if payload.action != "create_session":
        raise InvalidRequestError(f"Invalid action: {payload.action}")
    return await services.bridge.create_session(payload.user_id, payload.integration_id)


@router.post("/webhook")
async def nango_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Receive Nango auth webhooks."""

    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError as exc:
        raise InvalidRequestError("Webhook body is not valid JSON") from exc
    return await services.bridge.handle_webhook(raw_body, payload, request.headers)
