"""Telegram webhook endpoint.

Every bot integration registers the same URL with its own secret token.
Telegram echoes that token in X-Telegram-Bot-Api-Secret-Token, which is how
an update is routed to its integration.
"""

import json

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from paygate.models.errors import ErrorCode, PaygateError
from paygate.services.conversation import ConversationRouter
from paygate.services.tenant_registry import BotIntegrationRegistry
from paygate.utils.logging import get_logger
from paygate_api.dependencies import get_conversation_router, get_registry

logger = get_logger(__name__)

router = APIRouter(tags=["telegram"])


class TelegramAck(BaseModel):
    ok: bool = True


@router.post(
    "/telegram/webhook",
    summary="Receive Telegram bot updates",
    response_model=TelegramAck,
    responses={
        400: {"description": "Malformed update or missing chat/user"},
        403: {"description": "Missing or unknown secret token"},
    },
)
async def handle_telegram_update(
    request: Request,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
    registry: BotIntegrationRegistry = Depends(get_registry),
    conversation: ConversationRouter = Depends(get_conversation_router),
) -> TelegramAck:
    """Route an update to its integration and handle it.

    The tenant is resolved before the body is read.
    """
    if not x_telegram_bot_api_secret_token:
        logger.warning("Telegram webhook: no secret token provided")
        raise PaygateError(ErrorCode.ROUTING_SECRET_MISSING)

    integration = await run_in_threadpool(
        registry.resolve_by_routing_secret, x_telegram_bot_api_secret_token
    )
    if integration is None:
        logger.warning("Telegram webhook: no active bot for secret token")
        raise PaygateError(ErrorCode.UNKNOWN_TENANT)

    try:
        update = json.loads(await request.body())
    except ValueError as e:
        raise PaygateError(ErrorCode.INVALID_PAYLOAD, details={"reason": "body is not JSON"}) from e
    if not isinstance(update, dict):
        raise PaygateError(ErrorCode.INVALID_PAYLOAD, details={"reason": "update is not an object"})

    try:
        await run_in_threadpool(conversation.handle_update, integration, update)
    except PaygateError:
        raise
    except Exception:
        # Answering non-200 makes Telegram redeliver the same update
        logger.exception(
            "Failed to handle update %s for %s", update.get("update_id"), integration.integration_id
        )

    return TelegramAck()
