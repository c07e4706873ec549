"""Stripe-side models as seen by the bot.

StripeService converts API objects into these at the boundary so the rest of
the code never touches StripeObject attribute quirks.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import StatusKind

# Stripe currencies that are not expressed in minor units
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}
)


class Price(BaseModel):
    """A sellable Stripe price."""

    id: str = Field(..., examples=["price_1QxYzAbCdEf"])
    currency: str = Field(..., description="ISO currency code, lower case")
    unit_amount: int = Field(default=0, ge=0, description="Amount in minor units")
    active: bool = True
    recurring_interval: str | None = Field(
        default=None,
        description="day, week, month or year; None for one-time prices",
    )
    recurring_interval_count: int = 1

    @property
    def recurring(self) -> bool:
        return self.recurring_interval is not None

    @property
    def amount(self) -> float:
        """Amount in major units."""
        if self.currency.lower() in ZERO_DECIMAL_CURRENCIES:
            return float(self.unit_amount)
        return self.unit_amount / 100


class Customer(BaseModel):
    """A Stripe customer carrying Telegram identity metadata."""

    id: str
    metadata: dict[str, str] = Field(default_factory=dict)
    created: int = 0


class Subscription(BaseModel):
    """A Stripe subscription reduced to what entitlement needs."""

    id: str
    customer_id: str | None = None
    status: str
    created: int = 0
    cancel_at_period_end: bool = False
    current_period_end: int | None = None
    cancel_at: int | None = None
    ended_at: int | None = None
    price_id: str | None = Field(default=None, description="Price of the first subscription item")
    metadata: dict[str, str] = Field(default_factory=dict)


class CheckoutLink(BaseModel):
    """A hosted Checkout URL handed to the user."""

    url: str
    recurring: bool


class SubscriptionStatus(BaseModel):
    """Entitlement of a Telegram user, computed fresh on every inquiry."""

    kind: StatusKind
    ends_at: datetime | None = None
    customer_id: str | None = None
    subscription_id: str | None = None

    @property
    def entitled(self) -> bool:
        return self.kind in (StatusKind.ACTIVE, StatusKind.EXPIRING)
