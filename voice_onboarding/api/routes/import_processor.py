"""Import job endpoint."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from voice_onboarding.api.dependencies import get_services
from voice_onboarding.errors import InvalidRequestError
from voice_onboarding.services.container import Services

router = APIRouter(prefix="/import-processor")


class ImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    task_id: Optional[str] = Field(default=None, alias="taskId")
    user_id: Optional[str] = Field(default=None, alias="userId")


@router.post("")
async def import_processor(
    payload: ImportRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    if payload.action == "process_task":
        if not payload.task_id:
            raise InvalidRequestError("Missing required field: taskId")
        task = await services.importer.process_task(payload.task_id)
        return {
            "message": f"Task {task.id} {task.status.value}",
            "task": task.model_dump(mode="json"),
        }
    if payload.action == "process_all_pending":
        summary = await services.importer.process_all_pending(payload.user_id)
        return {"message": "Pending tasks processed", **summary}
    raise InvalidRequestError(f"Invalid action: {payload.action}")
