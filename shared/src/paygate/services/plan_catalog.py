"""Plan listing and checkout session creation for a bot integration."""

import logging

from paygate.i18n import translate
from paygate.models.billing import ZERO_DECIMAL_CURRENCIES, CheckoutLink, Price
from paygate.models.enums import Locale
from paygate.models.tenant import BotIntegration
from paygate.utils.logging import log_payment_operation

from .stripe_service import StripeService, StripeServiceError

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "UAH": "₴",
    "RUB": "₽",
}


def currency_symbol(currency: str) -> str:
    code = currency.upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_interval(price: Price, locale: Locale) -> str:
    if not price.recurring:
        return translate(locale, "plans.one_time")
    interval = price.recurring_interval or ""
    if price.recurring_interval_count > 1:
        return translate(
            locale, "plans.interval_every", count=price.recurring_interval_count, unit=interval
        )
    label = translate(locale, f"plans.interval_{interval}")
    # Unknown intervals come back as the key itself
    return interval if label.startswith("plans.") else label


def format_plan_label(price: Price, locale: Locale) -> str:
    """Button/list label such as ``$5.00 - monthly``."""
    if price.currency.lower() in ZERO_DECIMAL_CURRENCIES:
        amount = f"{price.amount:.0f}"
    else:
        amount = f"{price.amount:.2f}"
    return f"{currency_symbol(price.currency)}{amount} - {format_interval(price, locale)}"


class PlanCatalog:
    """Sellable prices of a bot integration, fetched live from Stripe."""

    def __init__(self, stripe_service: StripeService) -> None:
        self._stripe = stripe_service

    def fetch_sellable_plans(self, integration: BotIntegration) -> list[Price]:
        """Active prices in the integration's configured order.

        Prices that are inactive, missing, or fail to load are skipped.
        """
        plans: list[Price] = []
        for price_id in integration.price_ids:
            try:
                price = self._stripe.retrieve_price(price_id)
            except StripeServiceError as e:
                logger.warning(
                    "Skipping price %s for %s: %s", price_id, integration.integration_id, e
                )
                continue
            if not price.active:
                logger.info(
                    "Skipping inactive price %s for %s", price_id, integration.integration_id
                )
                continue
            plans.append(price)
        return plans


class CheckoutInitiator:
    """Creates Stripe Checkout sessions tagged with the buyer's Telegram identity."""

    def __init__(self, stripe_service: StripeService) -> None:
        self._stripe = stripe_service

    def start_checkout(
        self,
        integration: BotIntegration,
        price_id: str,
        telegram_user_id: int,
        telegram_chat_id: int,
        bot_username: str | None = None,
    ) -> CheckoutLink | None:
        """Create a Checkout session for one price.

        Args:
            integration: Integration the purchase belongs to.
            price_id: Price chosen by the user.
            telegram_user_id: Buyer's Telegram user ID.
            telegram_chat_id: Chat the purchase was started from.
            bot_username: Bot handle for the return URL when none is stored.

        Returns:
            CheckoutLink with the hosted URL, or None if Stripe refused.
        """
        if not integration.sells(price_id):
            log_payment_operation(
                logger,
                "start_checkout",
                integration_id=integration.integration_id,
                telegram_user_id=telegram_user_id,
                price_id=price_id,
                error="price is not sold by this integration",
            )
            return None

        metadata = {
            "telegram_user_id": str(telegram_user_id),
            "telegram_chat_id": str(telegram_chat_id),
        }
        return_url = integration.deep_link(bot_username)

        try:
            price = self._stripe.retrieve_price(price_id)
            customer = self._stripe.find_customer(telegram_user_id, telegram_chat_id)
            if customer is None:
                customer = self._stripe.create_customer(metadata)

            url = self._stripe.create_checkout_session(
                customer_id=customer.id,
                price_id=price_id,
                recurring=price.recurring,
                success_url=return_url,
                cancel_url=return_url,
                metadata=metadata,
            )
        except StripeServiceError as e:
            log_payment_operation(
                logger,
                "start_checkout",
                integration_id=integration.integration_id,
                telegram_user_id=telegram_user_id,
                price_id=price_id,
                error=str(e),
            )
            return None

        log_payment_operation(
            logger,
            "start_checkout",
            integration_id=integration.integration_id,
            telegram_user_id=telegram_user_id,
            price_id=price_id,
            customer_id=customer.id,
            status="created",
        )
        return CheckoutLink(url=url, recurring=price.recurring)
