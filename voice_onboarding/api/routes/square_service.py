"""Square business-data sync endpoint."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from voice_onboarding.api.dependencies import get_services
from voice_onboarding.errors import InvalidRequestError
from voice_onboarding.services.container import Services

router = APIRouter(prefix="/square-service")


class SquareServiceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    connection_id: Optional[str] = Field(default=None, alias="connectionId")


@router.post("")
async def square_service(
    payload: SquareServiceRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    if payload.action == "test_data":
        return services.fetcher.test_data()
    if payload.action != "fetch_business_data":
        raise InvalidRequestError(f"Invalid action: {payload.action}")
    if not payload.user_id:
        raise InvalidRequestError("Missing required field: userId")
    return await services.fetcher.fetch_and_store(payload.user_id, payload.connection_id)
