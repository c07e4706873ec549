"""Post-payment channel access.

After a successful payment the bot tries to add the buyer to the channel, then
checks membership. A member gets a confirmation with a link into the channel.
A non-member the bot managed to add is told so. Anyone else gets an invite
link, or is asked to contact support when no link can be produced. The
whole protocol is best effort: ``grant`` never raises.
"""

import logging
from typing import Any

from paygate.i18n import translate
from paygate.models.enums import AccessOutcome, Locale
from paygate.models.tenant import BotIntegration
from paygate.utils.logging import log_access_grant

from .telegram_client import TelegramClient, TelegramClientFactory, is_ok

logger = logging.getLogger(__name__)

MEMBER_STATUSES = frozenset({"creator", "administrator", "member", "restricted"})


def url_button(text: str, url: str) -> dict[str, Any]:
    """Inline keyboard with a single URL button."""
    return {"inline_keyboard": [[{"text": text, "url": url}]]}


def resolve_channel_link(client: TelegramClient, channel_id: str) -> str | None:
    """Best link into the channel.

    Public channels get their permanent ``t.me`` link. Private channels get a
    fresh invite link, or the primary exported link if creating one fails.
    """
    chat = client.get_chat(channel_id)
    if not is_ok(chat) or not isinstance(chat.get("result"), dict):
        return None

    username = chat["result"].get("username")
    if username:
        return f"https://t.me/{username}"

    invite = client.create_chat_invite_link(channel_id)
    if not is_ok(invite):
        logger.warning("createChatInviteLink failed for %s, trying exportChatInviteLink", channel_id)
        invite = client.export_chat_invite_link(channel_id)
        if not is_ok(invite):
            return None

    result = invite.get("result")
    if isinstance(result, dict):
        result = result.get("invite_link")
    return result if isinstance(result, str) else None


class ChannelAccessGranter:
    """Gives a paying user access to an integration's channel."""

    def __init__(self, telegram: TelegramClientFactory) -> None:
        self._telegram = telegram

    def grant(
        self,
        integration: BotIntegration,
        telegram_user_id: int | str,
        telegram_chat_id: int | str | None = None,
    ) -> AccessOutcome:
        """Run the access protocol and report what the user was told."""
        try:
            outcome = self._grant(integration, int(telegram_user_id), telegram_chat_id)
        except Exception as e:
            log_access_grant(
                logger,
                integration.integration_id,
                telegram_user_id,
                AccessOutcome.FAILED.value,
                error=str(e),
            )
            return AccessOutcome.FAILED

        log_access_grant(logger, integration.integration_id, telegram_user_id, outcome.value)
        return outcome

    def _grant(
        self,
        integration: BotIntegration,
        user_id: int,
        chat_id: int | str | None,
    ) -> AccessOutcome:
        client = self._telegram.for_integration(integration)
        locale = integration.default_locale
        channel = integration.channel_id
        # Private chats share the user's ID
        recipient = int(chat_id) if chat_id else user_id

        added = self._add_member(client, channel, user_id)

        if self._is_member(client, channel, user_id):
            link = resolve_channel_link(client, channel)
            markup = url_button(translate(locale, "status.button_open_channel"), link) if link else None
            client.send_message(recipient, translate(locale, "access.already_member"), markup)
            return AccessOutcome.ALREADY_MEMBER

        if added:
            client.send_message(recipient, translate(locale, "access.added"))
            return AccessOutcome.ADDED

        return self._send_invite(client, channel, recipient, locale)

    def _add_member(self, client: TelegramClient, channel: str, user_id: int) -> bool:
        result = client.add_chat_member(channel, user_id)
        if not is_ok(result):
            logger.warning("addChatMember failed, trying inviteChatMember: %s", result)
            result = client.invite_chat_member(channel, user_id)
        return is_ok(result)

    def _is_member(self, client: TelegramClient, channel: str, user_id: int) -> bool:
        response = client.get_chat_member(channel, user_id)
        if not is_ok(response):
            return False
        return response.get("result", {}).get("status") in MEMBER_STATUSES

    def _send_invite(
        self,
        client: TelegramClient,
        channel: str,
        recipient: int,
        locale: Locale,
    ) -> AccessOutcome:
        link = resolve_channel_link(client, channel)
        if link:
            client.send_message(
                recipient,
                translate(locale, "access.invite_link"),
                url_button(translate(locale, "access.button_join_channel"), link),
            )
            return AccessOutcome.INVITE_LINK_SENT

        client.send_message(recipient, translate(locale, "access.contact_support"))
        return AccessOutcome.SUPPORT_CONTACTED
