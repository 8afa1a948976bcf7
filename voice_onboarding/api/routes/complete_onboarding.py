"""Onboarding completion endpoint."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from voice_onboarding.api.dependencies import get_services
from voice_onboarding.services.container import Services

router = APIRouter(prefix="/complete-onboarding")


class CompleteOnboardingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")


@router.post("")
def complete_onboarding(
    payload: CompleteOnboardingRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Copy the onboarding answers into the business snapshot and close onboarding.

    Runs in FastAPI's threadpool; the store is synchronous.
    """
    return services.onboarding.complete_onboarding(payload.user_id)
