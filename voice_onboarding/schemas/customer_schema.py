"""Customer data models and per-session state."""

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Customer(BaseModel):
    """Square customer record."""

    model_config = ConfigDict(extra="allow")

    id: str
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    phone_number: Optional[str] = None
    email_address: Optional[str] = None

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.given_name, self.family_name) if p)


@dataclass
class SessionData:
    """
    Per-session structured data for the booking agent.

    Persists on `session.userdata` throughout the call. Tools read and write
    this instead of parsing chat history.
    """
    owner_user_id: str = ""
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    service_name: Optional[str] = None
    booking_id: Optional[str] = None
    error_count: int = 0
    offered_slots: list = field(default_factory=list)
