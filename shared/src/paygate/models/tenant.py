"""Bot integration (tenant) models."""

import re
from datetime import datetime
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
)

from .enums import Locale

BOT_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{5,32}$")


def normalize_price_ids(value: Any) -> list[str]:
    """Normalize configured Stripe price IDs.

    Accepts a comma/newline-delimited string or a list. Entries are stripped,
    blanks dropped and duplicates removed while keeping first-seen order, so
    both input forms produce the same list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw = re.split(r"[\n,]", value)
    else:
        raw = list(value)

    seen: set[str] = set()
    result: list[str] = []
    for entry in raw:
        if entry is None:
            continue
        price_id = str(entry).strip()
        if not price_id or price_id in seen:
            continue
        seen.add(price_id)
        result.append(price_id)
    return result


def validate_bot_username(value: str | None) -> str | None:
    """Strip a leading @ and check the Telegram bot handle format."""
    if value is None:
        return None
    value = value.strip().lstrip("@")
    if not value:
        return None
    if not BOT_USERNAME_PATTERN.match(value):
        raise ValueError(
            "must be a valid Telegram bot username "
            "(5-32 alphanumeric characters or underscores)"
        )
    return value


PriceIds = Annotated[list[str], BeforeValidator(normalize_price_ids)]
BotUsername = Annotated[str | None, AfterValidator(validate_bot_username)]


class BotIntegration(BaseModel):
    """One deployed bot bound to one channel and one set of sellable prices."""

    integration_id: str = Field(..., description="Stable identifier", examples=["bot_3f9a0c1d2e4b"])
    name: str = Field(..., min_length=1, description="Display name")
    bot_token: SecretStr = Field(..., description="Telegram bot token")
    routing_secret: SecretStr = Field(
        ...,
        description="Secret token Telegram echoes back in X-Telegram-Bot-Api-Secret-Token",
    )
    channel_id: str = Field(..., min_length=1, description="Target channel chat ID")
    price_ids: PriceIds = Field(..., min_length=1, description="Stripe price IDs in display order")
    default_locale: Locale = Field(default=Locale.EN)
    offer_text: str = Field(..., min_length=1, description="HTML offer shown on /start")
    bot_username: BotUsername = Field(default=None, description="Bot handle without @")
    active: bool = True
    created_at: datetime
    updated_at: datetime

    def sells(self, price_id: str) -> bool:
        """Whether this integration sells the given price."""
        return price_id in self.price_ids

    def deep_link(self, fallback_username: str | None = None) -> str:
        """Link back into the bot chat, or to Telegram itself if the handle is unknown.

        ``fallback_username`` is used when no handle is stored, e.g. one just
        read from getMe.
        """
        username = self.bot_username or fallback_username
        return f"https://t.me/{username}" if username else "https://t.me"


class BotIntegrationCreate(BaseModel):
    """Administrative input for a new bot integration."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    bot_token: SecretStr
    channel_id: str = Field(..., min_length=1)
    price_ids: PriceIds = Field(..., min_length=1)
    default_locale: Locale = Locale.EN
    offer_text: str = Field(..., min_length=1)
    bot_username: BotUsername = None
    active: bool = True

    @field_validator("bot_token")
    @classmethod
    def _token_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("bot token must not be blank")
        return value


class BotIntegrationUpdate(BaseModel):
    """Partial update for an existing bot integration.

    The routing secret is not updatable.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1)
    bot_token: SecretStr | None = None
    channel_id: str | None = Field(default=None, min_length=1)
    price_ids: list[str] | None = None
    default_locale: Locale | None = None
    offer_text: str | None = Field(default=None, min_length=1)
    bot_username: BotUsername = None
    active: bool | None = None

    @field_validator("price_ids", mode="before")
    @classmethod
    def _normalize_optional_prices(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        normalized = normalize_price_ids(value)
        if not normalized:
            raise ValueError("at least one price ID is required")
        return normalized
