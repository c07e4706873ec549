"""Standard error codes for the Paygate services.

Only authentication and validation failures are ever reflected in an HTTP
status. Everything else is logged and absorbed by the service that hit it.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Authentication error codes
    ROUTING_SECRET_MISSING = "ERR_AUTH_001"
    UNKNOWN_TENANT = "ERR_AUTH_002"

    # Stripe error codes
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"
    STRIPE_API_ERROR = "ERR_STRIPE_002"

    # Payload / configuration error codes
    INVALID_PAYLOAD = "ERR_VALIDATION_001"
    INVALID_CONFIGURATION = "ERR_CONFIG_001"

    # Lookup error codes
    TENANT_NOT_FOUND = "ERR_NOT_FOUND_001"

    # Telegram error codes
    TELEGRAM_API_ERROR = "ERR_TELEGRAM_001"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.ROUTING_SECRET_MISSING: "Webhook secret token is missing",
    ErrorCode.UNKNOWN_TENANT: "No active bot matches the webhook secret token",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.STRIPE_API_ERROR: "Stripe API error occurred",
    ErrorCode.INVALID_PAYLOAD: "Request payload is malformed",
    ErrorCode.INVALID_CONFIGURATION: "Bot integration configuration is invalid",
    ErrorCode.TENANT_NOT_FOUND: "Bot integration not found",
    ErrorCode.TELEGRAM_API_ERROR: "Telegram API error occurred",
}

# Hints for operators reading the error body or the logs
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.ROUTING_SECRET_MISSING: "Re-register the bot webhook so Telegram sends the secret token",
    ErrorCode.UNKNOWN_TENANT: "Check that the bot integration exists and is active",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.STRIPE_API_ERROR: "Try again or contact support",
    ErrorCode.INVALID_PAYLOAD: "Send a well-formed JSON payload",
    ErrorCode.INVALID_CONFIGURATION: "Fix the reported fields and save again",
    ErrorCode.TENANT_NOT_FOUND: "Verify the integration ID",
    ErrorCode.TELEGRAM_API_ERROR: "Check the bot token and channel permissions",
}


class ErrorResponse(BaseModel):
    """Standard error body returned for rejected requests."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, Any]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, Any]] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class PaygateError(Exception):
    """Exception raised by Paygate operations.

    Raised at the HTTP edge for auth/validation failures and by the
    administration service for invalid configuration.
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, Any]] = None,
    ):
        self.code = code
        self.message = ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse body."""
        return ErrorResponse.from_code(self.code, self.details)
