"""Conversation history records."""

from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class StoredMessage:
    """One message in a contact's history. `timestamp` is unix seconds."""
    id: str
    role: str  # "user" (the contact) or "assistant" (us)
    content: str
    timestamp: float
    type: str = "incoming"

    @property
    def speaker(self) -> str:
        return "Contact" if self.role == "user" else "You"

    def with_content(self, content: str) -> "StoredMessage":
        return replace(self, content=content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "StoredMessage | None":
        """Parse a stored record; returns None for malformed entries."""
        if not isinstance(data, dict):
            return None
        role = data.get("role")
        content = data.get("content")
        timestamp = data.get("timestamp")
        if role not in ("user", "assistant") or not isinstance(content, str):
            return None
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return None
        return cls(
            id=str(data.get("id", "")),
            role=role,
            content=content,
            timestamp=float(timestamp),
            type=str(data.get("type", "incoming")),
        )
