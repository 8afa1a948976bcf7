"""Integration, connection, webhook and import task models."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    ERROR = "error"
    PENDING = "pending"
    REVOKED = "revoked"


class TaskType(str, Enum):
    MERCHANT = "merchant"
    LOCATIONS = "locations"
    CATALOG = "catalog"


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


# Import tasks for one user always run in this order.
TASK_ORDER = (TaskType.MERCHANT, TaskType.LOCATIONS, TaskType.CATALOG)


class Integration(BaseModel):
    id: str
    ext_integration_id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    enabled: bool = True

    def public(self) -> dict:
        return self.model_dump(include={"id", "name", "description", "ext_integration_id"})


class Connection(BaseModel):
    id: Optional[str] = None
    user_id: str
    integration_id: str
    connection_id: str
    status: ConnectionStatus = ConnectionStatus.PENDING
    metadata: dict[str, Any] = Field(default_factory=dict)
    last_sync_at: Optional[str] = None


class WebhookEndUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    end_user_id: Optional[str] = Field(default=None, alias="endUserId")
    organization_id: Optional[str] = Field(default=None, alias="organizationId")


class WebhookError(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    description: Optional[str] = None


class NangoWebhook(BaseModel):
    """Nango webhook delivery. Only ``type == "auth"`` is acted on."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Optional[str] = None
    operation: Optional[str] = None
    success: bool = False
    connection_id: Optional[str] = Field(default=None, alias="connectionId")
    provider_config_key: Optional[str] = Field(default=None, alias="providerConfigKey")
    provider: Optional[str] = None
    environment: Optional[str] = None
    end_user: Optional[WebhookEndUser] = Field(default=None, alias="endUser")
    error: Optional[WebhookError] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.end_user.end_user_id if self.end_user else None


class ImportTask(BaseModel):
    id: str
    user_id: str
    connection_id: str
    task_type: TaskType
    status: TaskStatus = TaskStatus.PENDING
    progress_message: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 3
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: Optional[str] = None
