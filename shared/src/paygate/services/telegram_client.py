"""Telegram Bot API client.

Thin verb-style wrapper over httpx. Every call returns the decoded
``{"ok": ..., "result": ...}`` envelope, or None when the request failed at
the transport level or Telegram answered with a non-200 status. Callers
treat None and ``ok: false`` the same way.
"""

import logging
from typing import Any

import httpx

from paygate.models.tenant import BotIntegration

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"

Envelope = dict[str, Any]


def is_ok(response: Envelope | None) -> bool:
    """Whether an envelope reports success."""
    return isinstance(response, dict) and bool(response.get("ok"))


class TelegramClient:
    """Bot API calls for a single bot token."""

    def __init__(
        self,
        bot_token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        http: httpx.Client | None = None,
        label: str | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            bot_token: Token issued by BotFather.
            api_base: Bot API origin.
            timeout: Per-request timeout in seconds (ignored when http is given).
            http: Shared httpx client; one is created when omitted.
            label: Name used in log lines instead of the token.
        """
        self._base_url = f"{api_base.rstrip('/')}/bot{bot_token}"
        self._http = http or httpx.Client(timeout=timeout)
        self._label = label or "bot"

    def _request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        http_method: str = "POST",
    ) -> Envelope | None:
        url = f"{self._base_url}/{method}"
        try:
            if http_method == "GET":
                response = self._http.get(url, params=params or None)
            else:
                response = self._http.post(url, json=params or {})
        except httpx.HTTPError as e:
            logger.error("Telegram API exception for %s on %s: %s", self._label, method, e)
            return None

        if response.status_code != 200:
            logger.error(
                "Telegram API error for %s on %s: %s %s",
                self._label,
                method,
                response.status_code,
                response.text[:500],
            )
            return None

        try:
            return response.json()
        except ValueError:
            logger.error("Telegram API returned non-JSON body for %s on %s", self._label, method)
            return None

    # Bot identity

    def get_me(self) -> Envelope | None:
        return self._request("getMe", http_method="GET")

    def bot_username(self) -> str | None:
        """Username of this bot, or None if getMe fails."""
        response = self.get_me()
        if not is_ok(response):
            return None
        return response["result"].get("username")

    # Messages

    def send_message(
        self,
        chat_id: int | str,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str = "HTML",
    ) -> Envelope | None:
        params: dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": parse_mode}
        if reply_markup:
            params["reply_markup"] = reply_markup
        return self._request("sendMessage", params)

    def edit_message_text(
        self,
        chat_id: int | str,
        message_id: int,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str = "HTML",
    ) -> Envelope | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": parse_mode,
        }
        if reply_markup:
            params["reply_markup"] = reply_markup
        return self._request("editMessageText", params)

    def answer_callback_query(
        self,
        callback_query_id: str,
        text: str | None = None,
        show_alert: bool = False,
    ) -> Envelope | None:
        params: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            params["text"] = text
        if show_alert:
            params["show_alert"] = True
        return self._request("answerCallbackQuery", params)

    # Channel membership

    def add_chat_member(self, chat_id: int | str, user_id: int) -> Envelope | None:
        return self._request("addChatMember", {"chat_id": chat_id, "user_id": user_id})

    def invite_chat_member(self, chat_id: int | str, user_id: int) -> Envelope | None:
        """Legacy invite call, kept as a fallback for addChatMember."""
        return self._request(
            "inviteChatMember",
            {"chat_id": chat_id, "user_id": user_id, "can_read_messages": True},
        )

    def get_chat_member(self, chat_id: int | str, user_id: int) -> Envelope | None:
        return self._request("getChatMember", {"chat_id": chat_id, "user_id": user_id})

    def get_chat(self, chat_id: int | str) -> Envelope | None:
        return self._request("getChat", {"chat_id": chat_id})

    def create_chat_invite_link(
        self,
        chat_id: int | str,
        name: str = "Subscription Access Link",
    ) -> Envelope | None:
        return self._request(
            "createChatInviteLink",
            {"chat_id": chat_id, "creates_join_request": False, "name": name},
        )

    def export_chat_invite_link(self, chat_id: int | str) -> Envelope | None:
        return self._request("exportChatInviteLink", {"chat_id": chat_id})

    # Registration

    def set_webhook(self, url: str, secret_token: str | None = None) -> Envelope | None:
        params: dict[str, Any] = {"url": url}
        if secret_token:
            params["secret_token"] = secret_token
        return self._request("setWebhook", params)

    def get_webhook_info(self) -> Envelope | None:
        return self._request("getWebhookInfo", http_method="GET")

    def set_my_commands(
        self,
        commands: list[dict[str, str]],
        language_code: str | None = None,
        scope: dict[str, Any] | None = None,
    ) -> Envelope | None:
        params: dict[str, Any] = {
            "commands": commands,
            "scope": scope or {"type": "all_private_chats"},
        }
        if language_code:
            params["language_code"] = language_code
        return self._request("setMyCommands", params)


class TelegramClientFactory:
    """Builds per-integration clients that share one connection pool."""

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        http: httpx.Client | None = None,
    ) -> None:
        self._api_base = api_base
        self._http = http or httpx.Client(timeout=timeout)

    def for_integration(self, integration: BotIntegration) -> TelegramClient:
        return TelegramClient(
            integration.bot_token.get_secret_value(),
            api_base=self._api_base,
            http=self._http,
            label=integration.integration_id,
        )

    def for_token(self, bot_token: str) -> TelegramClient:
        return TelegramClient(bot_token, api_base=self._api_base, http=self._http)
