"""Inline-button callback data.

The whole purchase flow lives in these tokens; nothing about an in-progress
purchase is stored server side.
"""

from dataclasses import dataclass
from enum import Enum

PRICE_PREFIX = "price_"


class CallbackKind(str, Enum):
    GET_STARTED = "get_started"
    MAYBE_LATER = "maybe_later"
    PRICE_SELECTED = "price_selected"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CallbackData:
    kind: CallbackKind
    price_id: str | None = None
    raw: str | None = None

    @classmethod
    def get_started(cls) -> "CallbackData":
        return cls(CallbackKind.GET_STARTED)

    @classmethod
    def maybe_later(cls) -> "CallbackData":
        return cls(CallbackKind.MAYBE_LATER)

    @classmethod
    def price_selected(cls, price_id: str) -> "CallbackData":
        return cls(CallbackKind.PRICE_SELECTED, price_id=price_id)

    @classmethod
    def parse(cls, data: str | None) -> "CallbackData":
        """Parse Telegram callback_data into a tagged value."""
        if data == CallbackKind.GET_STARTED.value:
            return cls.get_started()
        if data == CallbackKind.MAYBE_LATER.value:
            return cls.maybe_later()
        if data and data.startswith(PRICE_PREFIX) and len(data) > len(PRICE_PREFIX):
            return cls.price_selected(data[len(PRICE_PREFIX):])
        return cls(CallbackKind.UNKNOWN, raw=data)

    def encode(self) -> str:
        """Render as Telegram callback_data (max 64 bytes)."""
        if self.kind is CallbackKind.PRICE_SELECTED:
            return f"{PRICE_PREFIX}{self.price_id}"
        if self.kind is CallbackKind.UNKNOWN:
            return self.raw or ""
        return self.kind.value
