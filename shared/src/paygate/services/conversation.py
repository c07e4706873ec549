"""Telegram update routing for the purchase conversation.

Flow:
    /start           offer text with "get started" / "maybe later" buttons
    get_started      plan list, one button per sellable price
    price_<id>       Checkout link for that price
    /status          entitlement summary with channel / portal buttons
    /cancel          clears any waiting state

The purchase flow carries its state in callback data, so nothing is stored
between steps.
"""

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from paygate.i18n import resolve_locale, translate
from paygate.models.billing import SubscriptionStatus
from paygate.models.callback import CallbackData, CallbackKind
from paygate.models.enums import Locale, StatusKind
from paygate.models.errors import ErrorCode, PaygateError
from paygate.models.tenant import BotIntegration

from .channel_access import resolve_channel_link
from .chat_state import ChatStateStore
from .plan_catalog import CheckoutInitiator, PlanCatalog, format_plan_label
from .stripe_service import StripeService, StripeServiceError
from .subscription_resolver import SubscriptionResolver
from .telegram_client import TelegramClient, TelegramClientFactory, is_ok

logger = logging.getLogger(__name__)

STATUS_DATE_FORMAT = "%B %d, %Y"


@dataclass
class ConversationContext:
    """Everything a handler needs about the update being processed."""

    integration: BotIntegration
    client: TelegramClient
    chat_id: int
    user_id: int
    user: dict[str, Any]
    locale: Locale

    def t(self, key: str, **values: object) -> str:
        return translate(self.locale, key, **values)

    def send(self, text: str, reply_markup: dict[str, Any] | None = None) -> dict[str, Any] | None:
        return self.client.send_message(self.chat_id, text, reply_markup)


def command_word(text: str) -> str | None:
    """``/start@MyBot payload`` -> ``/start``; None for non-commands."""
    if not text.startswith("/"):
        return None
    word = text.split(maxsplit=1)[0]
    return word.split("@", 1)[0].lower()


def account_descriptor(user: dict[str, Any], fallback: str) -> str:
    """``@username - First Last`` with whatever parts are present.

    User-supplied parts are HTML-escaped for ``parse_mode=HTML`` messages.
    """
    name = html.escape(" ".join(p for p in (user.get("first_name"), user.get("last_name")) if p))
    username = html.escape(user.get("username") or "")
    if username:
        return f"@{username} - {name}" if name else f"@{username}"
    return name or fallback


class ConversationRouter:
    """Dispatches Telegram updates for one bot integration at a time."""

    def __init__(
        self,
        telegram: TelegramClientFactory,
        stripe_service: StripeService,
        plan_catalog: PlanCatalog,
        checkout: CheckoutInitiator,
        resolver: SubscriptionResolver,
        chat_states: ChatStateStore,
    ) -> None:
        self._telegram = telegram
        self._stripe = stripe_service
        self._plans = plan_catalog
        self._checkout = checkout
        self._resolver = resolver
        self._chat_states = chat_states

    def build_context(self, integration: BotIntegration, update: dict[str, Any]) -> ConversationContext:
        """Extract chat, user and locale from an update.

        Raises:
            PaygateError: INVALID_PAYLOAD if the update has no chat or user.
        """
        callback = update.get("callback_query")
        if isinstance(callback, dict):
            message = callback.get("message") or {}
            user = callback.get("from") or {}
        else:
            message = update.get("message") or {}
            user = message.get("from") or {}

        chat_id = (message.get("chat") or {}).get("id") if isinstance(message, dict) else None
        user_id = user.get("id") if isinstance(user, dict) else None
        if chat_id is None or user_id is None:
            raise PaygateError(ErrorCode.INVALID_PAYLOAD, details={"reason": "missing chat or user"})

        return ConversationContext(
            integration=integration,
            client=self._telegram.for_integration(integration),
            chat_id=int(chat_id),
            user_id=int(user_id),
            user=user,
            locale=resolve_locale(user.get("language_code"), integration.default_locale),
        )

    def handle_update(self, integration: BotIntegration, update: dict[str, Any]) -> None:
        """Process one inbound update for an integration."""
        ctx = self.build_context(integration, update)

        callback = update.get("callback_query")
        if isinstance(callback, dict):
            self._handle_callback(ctx, callback)
            return

        text = (update.get("message") or {}).get("text")
        command = command_word(text) if text else None
        if command not in ("/start", "/status", "/cancel"):
            return

        if command != "/cancel" and self._is_waiting(ctx):
            return

        if command == "/start":
            self.handle_start(ctx)
        elif command == "/status":
            self.handle_status(ctx)
        else:
            self.handle_cancel(ctx)

    # Commands

    def handle_start(self, ctx: ConversationContext) -> None:
        reply_markup = {
            "inline_keyboard": [[
                {"text": ctx.t("offer.button_get_started"), "callback_data": CallbackData.get_started().encode()},
                {"text": ctx.t("offer.button_maybe_later"), "callback_data": CallbackData.maybe_later().encode()},
            ]]
        }
        ctx.send(ctx.integration.offer_text, reply_markup)

    def handle_status(self, ctx: ConversationContext) -> None:
        status = self._resolver.resolve(ctx.user_id)

        if status.kind is StatusKind.ACTIVE:
            text = ctx.t("status.active")
        elif status.kind is StatusKind.EXPIRING:
            text = ctx.t("status.expiring", ends_at=self._format_date(ctx, status.ends_at))
        elif status.kind is StatusKind.CANCELLED:
            text = ctx.t("status.cancelled", ends_at=self._format_date(ctx, status.ends_at))
        elif status.kind is StatusKind.NONE:
            text = ctx.t("status.none")
        else:
            text = ctx.t("status.error")

        keyboard: list[list[dict[str, str]]] = []
        if status.kind in (StatusKind.ACTIVE, StatusKind.EXPIRING, StatusKind.CANCELLED):
            channel_link = resolve_channel_link(ctx.client, ctx.integration.channel_id)
            if channel_link:
                keyboard.append([{"text": ctx.t("status.button_open_channel"), "url": channel_link}])
            portal_url = self._portal_url(ctx, status)
            if portal_url:
                keyboard.append([{"text": ctx.t("status.button_manage_subscription"), "url": portal_url}])

        ctx.send(text, {"inline_keyboard": keyboard} if keyboard else None)

    def handle_cancel(self, ctx: ConversationContext) -> None:
        self._chat_states.clear(ctx.integration.integration_id, ctx.chat_id)
        ctx.send(ctx.t("cancel.message"))

    # Callbacks

    def _handle_callback(self, ctx: ConversationContext, callback: dict[str, Any]) -> None:
        # Acknowledge first so the client stops its loading spinner
        if callback.get("id"):
            ctx.client.answer_callback_query(callback["id"])

        data = CallbackData.parse(callback.get("data"))
        if data.kind is CallbackKind.GET_STARTED:
            self.show_plans(ctx)
        elif data.kind is CallbackKind.MAYBE_LATER:
            ctx.send(ctx.t("offer.response_not_ready"))
        elif data.kind is CallbackKind.PRICE_SELECTED:
            self.select_price(ctx, data.price_id)
        else:
            logger.warning(
                "Unknown callback data %r for %s", data.raw, ctx.integration.integration_id
            )

    def show_plans(self, ctx: ConversationContext) -> None:
        plans = self._plans.fetch_sellable_plans(ctx.integration)
        if not plans:
            ctx.send(ctx.t("plans.none_available"))
            return

        labels = [format_plan_label(price, ctx.locale) for price in plans]
        text = ctx.t("plans.title") + "\n\n" + "\n".join(labels)
        keyboard = [
            [{"text": label, "callback_data": CallbackData.price_selected(price.id).encode()}]
            for label, price in zip(labels, plans)
        ]
        ctx.send(text, {"inline_keyboard": keyboard})

    def select_price(self, ctx: ConversationContext, price_id: str) -> None:
        placeholder = ctx.send(ctx.t("payment.generating"))

        link = self._checkout.start_checkout(
            ctx.integration,
            price_id,
            ctx.user_id,
            ctx.chat_id,
            bot_username=self._bot_username(ctx),
        )
        if link is None:
            self._replace_placeholder(ctx, placeholder, ctx.t("errors.something_wrong"))
            return

        unsubscribe_note = ctx.t("plans.unsubscribe_note") if link.recurring else ""
        text = ctx.t(
            "payment.terms",
            account_info=account_descriptor(ctx.user, ctx.t("payment.account_fallback")),
            unsubscribe_note=unsubscribe_note,
        )
        markup = {"inline_keyboard": [[{"text": ctx.t("payment.button_complete"), "url": link.url}]]}
        self._replace_placeholder(ctx, placeholder, text, markup)

    # Helpers

    def _is_waiting(self, ctx: ConversationContext) -> bool:
        """Whether the chat holds a waiting state for this user."""
        waiting = self._chat_states.get(ctx.integration.integration_id, ctx.chat_id)
        if not waiting or waiting.get("user_id") != str(ctx.user_id):
            return False
        logger.info(
            "Ignoring command from user %s while chat %s waits in state %s",
            ctx.user_id,
            ctx.chat_id,
            waiting.get("state"),
        )
        return True

    def _replace_placeholder(
        self,
        ctx: ConversationContext,
        placeholder: dict[str, Any] | None,
        text: str,
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        message_id = None
        if is_ok(placeholder) and isinstance(placeholder.get("result"), dict):
            message_id = placeholder["result"].get("message_id")

        if message_id is not None:
            edited = ctx.client.edit_message_text(ctx.chat_id, message_id, text, reply_markup)
            if is_ok(edited):
                return
            logger.warning("Could not edit message %s in chat %s, sending a new one", message_id, ctx.chat_id)

        ctx.send(text, reply_markup)

    def _bot_username(self, ctx: ConversationContext) -> str | None:
        return ctx.integration.bot_username or ctx.client.bot_username()

    def _portal_url(self, ctx: ConversationContext, status: SubscriptionStatus) -> str | None:
        if not status.customer_id:
            return None
        return_url = ctx.integration.deep_link(self._bot_username(ctx))
        try:
            return self._stripe.create_billing_portal_session(status.customer_id, return_url)
        except StripeServiceError as e:
            logger.error("Failed to create billing portal session: %s", e)
            return None

    def _format_date(self, ctx: ConversationContext, value: datetime | None) -> str:
        if value is None:
            return ctx.t("status.ends_at_fallback")
        return value.strftime(STATUS_DATE_FORMAT)
