"""Bot integration registry backed by DynamoDB.

Every inbound Telegram update and every Stripe event is routed to a tenant
through this module: by routing secret (Telegram) or by price ID (Stripe).
Lookups are side-effect free.
"""

import logging
from datetime import datetime
from typing import Any

from boto3.dynamodb.conditions import Attr

from paygate.models.tenant import BotIntegration

from .dynamodb import DynamoDBService
from .secret_cipher import SecretCipher

logger = logging.getLogger(__name__)


class BotIntegrationRegistry:
    """Lookup and persistence of BotIntegration records.

    Table layout (``<prefix>-bot-integrations``):
        integration_id              partition key
        routing_secret_digest       GSI ``routing_secret_digest-index``
        bot_token_digest            GSI ``bot_token_digest-index``
        routing_secret_ciphertext / bot_token_ciphertext   KMS blobs
    """

    TABLE = "bot-integrations"
    ROUTING_INDEX = "routing_secret_digest-index"
    TOKEN_INDEX = "bot_token_digest-index"

    def __init__(self, db: DynamoDBService, cipher: SecretCipher) -> None:
        self._db = db
        self._cipher = cipher

    # Lookups

    def resolve_by_routing_secret(self, secret: str | None) -> BotIntegration | None:
        """Find the active integration owning a webhook secret token."""
        if not secret:
            return None
        items = self._db.query_by_gsi(
            self.TABLE,
            self.ROUTING_INDEX,
            "routing_secret_digest",
            self._cipher.digest(secret),
        )
        for item in items:
            if item.get("active"):
                return self._to_model(item)
        return None

    def resolve_by_price(self, price_id: str) -> BotIntegration | None:
        """First active integration (by creation order) selling the price."""
        for integration in self.list_active():
            if integration.sells(price_id):
                return integration
        logger.info("No active bot integration sells price %s", price_id)
        return None

    def list_active(self) -> list[BotIntegration]:
        """All active integrations ordered by creation time, then ID."""
        items = self._db.scan(self.TABLE, filter_expression=Attr("active").eq(True))
        items.sort(key=lambda item: (item["created_at"], item["integration_id"]))
        return [self._to_model(item) for item in items]

    def get(self, integration_id: str) -> BotIntegration | None:
        item = self._db.get_item(self.TABLE, {"integration_id": integration_id})
        return self._to_model(item) if item else None

    def routing_secret_exists(self, secret: str) -> bool:
        return bool(
            self._db.query_by_gsi(
                self.TABLE,
                self.ROUTING_INDEX,
                "routing_secret_digest",
                self._cipher.digest(secret),
            )
        )

    def bot_token_in_use(self, token: str, exclude_id: str | None = None) -> bool:
        """Whether another integration already uses this bot token."""
        items = self._db.query_by_gsi(
            self.TABLE,
            self.TOKEN_INDEX,
            "bot_token_digest",
            self._cipher.digest(token),
        )
        return any(item["integration_id"] != exclude_id for item in items)

    # Persistence

    def save(self, integration: BotIntegration) -> None:
        """Write the full integration record."""
        bot_token = integration.bot_token.get_secret_value()
        routing_secret = integration.routing_secret.get_secret_value()

        item: dict[str, Any] = {
            "integration_id": integration.integration_id,
            "name": integration.name,
            "bot_token_ciphertext": self._cipher.encrypt(bot_token),
            "bot_token_digest": self._cipher.digest(bot_token),
            "routing_secret_ciphertext": self._cipher.encrypt(routing_secret),
            "routing_secret_digest": self._cipher.digest(routing_secret),
            "channel_id": integration.channel_id,
            "price_ids": list(integration.price_ids),
            "default_locale": integration.default_locale.value,
            "offer_text": integration.offer_text,
            "active": integration.active,
            "created_at": integration.created_at.isoformat(),
            "updated_at": integration.updated_at.isoformat(),
        }
        if integration.bot_username:
            item["bot_username"] = integration.bot_username

        self._db.put_item(self.TABLE, item)
        logger.info("Saved bot integration %s", integration.integration_id)

    def _to_model(self, item: dict[str, Any]) -> BotIntegration:
        return BotIntegration(
            integration_id=item["integration_id"],
            name=item["name"],
            bot_token=self._cipher.decrypt(item["bot_token_ciphertext"]),
            routing_secret=self._cipher.decrypt(item["routing_secret_ciphertext"]),
            channel_id=item["channel_id"],
            price_ids=list(item.get("price_ids", [])),
            default_locale=item.get("default_locale", "en"),
            offer_text=item["offer_text"],
            bot_username=item.get("bot_username"),
            active=bool(item.get("active", False)),
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
        )
