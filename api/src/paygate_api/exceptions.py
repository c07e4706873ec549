"""FastAPI exception handlers for converting PaygateError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: malformed payloads and invalid configuration
- 403 Forbidden: missing/unknown routing secret, bad Stripe signature
- 404 Not Found: unknown bot integration
- 502 Bad Gateway: upstream Stripe/Telegram failures

Usage:
    from paygate_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_502_BAD_GATEWAY,
)

from paygate.models.errors import ErrorCode, PaygateError

logger = logging.getLogger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Authentication errors -> 403 Forbidden
    ErrorCode.ROUTING_SECRET_MISSING: HTTP_403_FORBIDDEN,
    ErrorCode.UNKNOWN_TENANT: HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: HTTP_403_FORBIDDEN,
    # Validation errors -> 400 Bad Request
    ErrorCode.INVALID_PAYLOAD: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_CONFIGURATION: HTTP_400_BAD_REQUEST,
    # Not found errors -> 404 Not Found
    ErrorCode.TENANT_NOT_FOUND: HTTP_404_NOT_FOUND,
    # Upstream errors -> 502 Bad Gateway
    ErrorCode.STRIPE_API_ERROR: HTTP_502_BAD_GATEWAY,
    ErrorCode.TELEGRAM_API_ERROR: HTTP_502_BAD_GATEWAY,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """HTTP status for an ErrorCode, 400 when not explicitly mapped."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def paygate_error_handler(request: Request, exc: PaygateError) -> JSONResponse:
    """Convert a PaygateError to a JSON error body with its mapped status."""
    status_code = get_http_status_for_error(exc.code)
    logger.warning(
        "%s %s rejected: %s (%s)",
        request.method,
        request.url.path,
        exc.code.value,
        exc.details,
    )
    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(PaygateError, paygate_error_handler)  # type: ignore[arg-type]
