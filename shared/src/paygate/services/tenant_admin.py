"""Administrative management of bot integrations."""

import datetime as dt
import logging
import secrets
import string
import uuid

from pydantic import ValidationError

from paygate.models.errors import ErrorCode, PaygateError
from paygate.models.tenant import BotIntegration, BotIntegrationCreate, BotIntegrationUpdate

from .registration import RegistrationScheduler
from .telegram_client import TelegramClientFactory
from .tenant_registry import BotIntegrationRegistry

logger = logging.getLogger(__name__)

ROUTING_SECRET_LENGTH = 32
ROUTING_SECRET_ALPHABET = string.ascii_letters + string.digits


def generate_routing_secret() -> str:
    return "".join(secrets.choice(ROUTING_SECRET_ALPHABET) for _ in range(ROUTING_SECRET_LENGTH))


def _config_error(errors: list[dict]) -> PaygateError:
    fields = {
        ".".join(str(p) for p in err.get("loc", ())) or "integration": err.get("msg", "invalid")
        for err in errors
    }
    return PaygateError(ErrorCode.INVALID_CONFIGURATION, details={"fields": fields})


class BotIntegrationAdmin:
    """Create, update and deactivate bot integrations."""

    def __init__(
        self,
        registry: BotIntegrationRegistry,
        telegram: TelegramClientFactory,
        scheduler: RegistrationScheduler | None = None,
    ) -> None:
        self._registry = registry
        self._telegram = telegram
        self._scheduler = scheduler

    def create(self, data: BotIntegrationCreate | dict) -> BotIntegration:
        """Validate and store a new integration.

        Raises:
            PaygateError: INVALID_CONFIGURATION on invalid input or a reused bot token.
        """
        if isinstance(data, dict):
            try:
                data = BotIntegrationCreate.model_validate(data)
            except ValidationError as e:
                raise _config_error(e.errors()) from e

        token = data.bot_token.get_secret_value().strip()
        if self._registry.bot_token_in_use(token):
            raise _config_error([{"loc": ("bot_token",), "msg": "already used by another integration"}])

        username = data.bot_username
        if not username:
            username = self._telegram.for_token(token).bot_username()
            if not username:
                logger.warning("Could not fetch bot username for new integration %s", data.name)

        now = dt.datetime.now(dt.UTC)
        try:
            integration = BotIntegration(
                integration_id=f"bot_{uuid.uuid4().hex[:12]}",
                name=data.name,
                bot_token=token,
                routing_secret=self._unique_routing_secret(),
                channel_id=data.channel_id,
                price_ids=data.price_ids,
                default_locale=data.default_locale,
                offer_text=data.offer_text,
                bot_username=username,
                active=data.active,
                created_at=now,
                updated_at=now,
            )
        except ValidationError as e:
            raise _config_error(e.errors()) from e

        self._registry.save(integration)
        logger.info("Created bot integration %s (%s)", integration.integration_id, integration.name)
        self._schedule(integration)
        return integration

    def update(self, integration_id: str, changes: BotIntegrationUpdate | dict) -> BotIntegration:
        """Apply a partial update; the routing secret never changes.

        Raises:
            PaygateError: TENANT_NOT_FOUND or INVALID_CONFIGURATION.
        """
        if isinstance(changes, dict):
            try:
                changes = BotIntegrationUpdate.model_validate(changes)
            except ValidationError as e:
                raise _config_error(e.errors()) from e

        current = self._get_or_raise(integration_id)
        values = {
            key: value
            for key, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or key == "bot_username"
        }

        if changes.bot_token is not None:
            token = changes.bot_token.get_secret_value().strip()
            if self._registry.bot_token_in_use(token, exclude_id=integration_id):
                raise _config_error([{"loc": ("bot_token",), "msg": "already used by another integration"}])
            values["bot_token"] = token

        merged = current.model_dump()
        merged.update(values)
        merged["bot_token"] = values.get("bot_token") or current.bot_token.get_secret_value()
        merged["routing_secret"] = current.routing_secret.get_secret_value()
        merged["updated_at"] = dt.datetime.now(dt.UTC)

        try:
            integration = BotIntegration.model_validate(merged)
        except ValidationError as e:
            raise _config_error(e.errors()) from e

        self._registry.save(integration)
        logger.info("Updated bot integration %s", integration_id)
        self._schedule(integration)
        return integration

    def deactivate(self, integration_id: str) -> BotIntegration:
        return self.update(integration_id, BotIntegrationUpdate(active=False))

    def _get_or_raise(self, integration_id: str) -> BotIntegration:
        integration = self._registry.get(integration_id)
        if integration is None:
            raise PaygateError(
                ErrorCode.TENANT_NOT_FOUND,
                details={"integration_id": integration_id},
            )
        return integration

    def _unique_routing_secret(self) -> str:
        while True:
            secret = generate_routing_secret()
            if not self._registry.routing_secret_exists(secret):
                return secret

    def _schedule(self, integration: BotIntegration) -> None:
        if integration.active and self._scheduler is not None:
            self._scheduler.schedule(integration.integration_id)
