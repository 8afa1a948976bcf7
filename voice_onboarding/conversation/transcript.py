"""In-memory message log for a live voice session.

Connection events, transcribed speech, agent replies, tool activity and
errors all land here as ``ChatMessage`` entries in arrival order.
"""

import logging
from typing import Any, Optional

from voice_onboarding.schemas.conversation_schema import ChatMessage, ChatRole

logger = logging.getLogger(__name__)

# Where a message came from decides who it is attributed to.
_ROLE_BY_SOURCE = {
    "user": ChatRole.USER,
    "human": ChatRole.USER,
    "ai": ChatRole.AGENT,
    "agent": ChatRole.AGENT,
    "assistant": ChatRole.AGENT,
}


class MessageLog:
    def __init__(self) -> None:
        self._entries: list[ChatMessage] = []

    @property
    def entries(self) -> list[ChatMessage]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        role: ChatRole,
        text: str,
        source: Optional[str] = None,
        raw: Optional[Any] = None,
    ) -> ChatMessage:
        entry = ChatMessage(role=role, text=text, source=source, raw=raw)
        self._entries.append(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def on_connect(self) -> ChatMessage:
        logger.info("Voice session connected")
        return self.add(ChatRole.SYSTEM, "Connected to voice agent", source="system")

    def on_disconnect(self) -> ChatMessage:
        logger.info("Voice session disconnected")
        return self.add(ChatRole.SYSTEM, "Disconnected from voice agent", source="system")

    def on_message(self, source: str, text: str, raw: Optional[Any] = None) -> ChatMessage:
        role = _ROLE_BY_SOURCE.get((source or "").lower(), ChatRole.SYSTEM)
        return self.add(role, text, source=source, raw=raw)

    def on_error(self, error: Any) -> ChatMessage:
        logger.error("Voice session error: %s", error)
        return self.add(ChatRole.SYSTEM, f"Error: {error}", source="error", raw=error)

    def on_tool_call(self, name: str, arguments: dict[str, Any], result: str) -> ChatMessage:
        return self.add(
            ChatRole.SYSTEM,
            f"Tool {name} called",
            source="tool",
            raw={"arguments": arguments, "result": result},
        )
