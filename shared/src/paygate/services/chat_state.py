"""Short-lived per-chat waiting state.

The purchase flow keeps its state in callback data and never writes here.
Items come from the older price-entry flow, where a chat waited for the user
to type a reply. The router only reads them to ignore commands from a user
who still has such an item, and /cancel deletes it. ``set_waiting`` remains
for seeding that state.
"""

import logging
import time
from typing import Any

from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60


class ChatStateStore:
    """Waiting state per (integration, chat), expired by DynamoDB TTL.

    Table layout (``<prefix>-chat-states``):
        chat_key      partition key, ``<integration_id>#<chat_id>``
        user_id       user the state belongs to
        state         state name
        expires_at    TTL attribute
    """

    TABLE = "chat-states"

    def __init__(self, db: DynamoDBService, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._db = db
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def _key(integration_id: str, chat_id: int | str) -> dict[str, str]:
        return {"chat_key": f"{integration_id}#{chat_id}"}

    def set_waiting(self, integration_id: str, chat_id: int | str, user_id: int, state: str) -> None:
        item: dict[str, Any] = {
            **self._key(integration_id, chat_id),
            "user_id": str(user_id),
            "state": state,
            "expires_at": int(time.time()) + self._ttl_seconds,
        }
        self._db.put_item(self.TABLE, item)

    def get(self, integration_id: str, chat_id: int | str) -> dict[str, Any] | None:
        """Waiting state for a chat, ignoring items past their TTL."""
        item = self._db.get_item(self.TABLE, self._key(integration_id, chat_id))
        # TTL deletion is lazy, so expired items can still be read
        if item is None or int(item.get("expires_at", 0)) <= int(time.time()):
            return None
        return item

    def clear(self, integration_id: str, chat_id: int | str) -> None:
        self._db.delete_item(self.TABLE, self._key(integration_id, chat_id))
        logger.debug("Cleared chat state for %s#%s", integration_id, chat_id)
