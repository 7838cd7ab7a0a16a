"""
Per-contact conversation history in the TTL store.

Each contact's history is a JSON list under `HISTORY:<contactId>`, oldest
first, deduplicated by message id and trimmed to the newest max_messages.
The whole list's TTL is refreshed on every write.
"""

from loguru import logger

from replygate.history.models import StoredMessage
from replygate.store.base import TTLStore
from replygate.store.keys import StoreKeys

DEFAULT_MAX_MESSAGES = 100
DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60


class HistoryStore:
    """Read/append access to conversation history."""

    def __init__(
        self,
        store: TTLStore,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        ttl_seconds: float | None = DEFAULT_TTL_SECONDS,
    ):
        self.store = store
        self.max_messages = max_messages
        self.ttl_seconds = ttl_seconds

    async def add_message(self, contact_id: str, message: StoredMessage) -> bool:
        """
        Append a message.

        Returns:
            False if a message with the same id is already stored.
        """
        messages = await self.get_messages(contact_id)
        if message.id and any(m.id == message.id for m in messages):
            logger.debug(f"Duplicate history message {message.id} for {contact_id}, skipped")
            return False

        messages.append(message)
        messages.sort(key=lambda m: m.timestamp)
        messages = messages[-self.max_messages:]

        await self.store.set(
            StoreKeys.history(contact_id),
            [m.to_dict() for m in messages],
            ttl_seconds=self.ttl_seconds,
        )
        return True

    async def get_messages(self, contact_id: str, limit: int | None = None) -> list[StoredMessage]:
        """Stored messages, oldest first; `limit` keeps the newest N."""
        raw = await self.store.get(StoreKeys.history(contact_id))
        if not isinstance(raw, list):
            return []

        messages = []
        for item in raw:
            message = StoredMessage.from_dict(item)
            if message is None:
                logger.warning(f"Skipping malformed history entry for {contact_id}")
                continue
            messages.append(message)

        messages.sort(key=lambda m: m.timestamp)
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages

    async def count(self, contact_id: str) -> int:
        return len(await self.get_messages(contact_id))

    async def clear(self, contact_id: str) -> bool:
        return await self.store.delete(StoreKeys.history(contact_id))
