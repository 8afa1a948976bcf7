"""Voice transcript message models."""

import time
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ChatRole(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """A single entry in the in-memory voice session log."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: ChatRole
    text: str
    timestamp: float = Field(default_factory=time.time)
    source: Optional[str] = None
    raw: Optional[Any] = None
