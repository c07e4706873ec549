"""Runtime configuration.

`load_settings()` is the only place that reads the process environment.
Every service takes the values it needs through its constructor.

Environment variables:
    ENVIRONMENT               dev/prod, selects the SSM parameter path (default: dev)
    AWS_REGION                region for DynamoDB, KMS and SSM
    DYNAMODB_TABLE_PREFIX     table name prefix (default: paygate-<environment>)
    PUBLIC_BASE_URL           public https origin Telegram posts updates to
    KMS_KEY_ID                key used to encrypt bot tokens and routing secrets
    STRIPE_SECRET_KEY         optional; read from SSM when unset
    STRIPE_WEBHOOK_SECRET     optional; read from SSM when unset
    ROUTING_DIGEST_KEY        optional; read from SSM when unset
    TELEGRAM_API_BASE         default https://api.telegram.org
    HTTP_TIMEOUT_SECONDS      default 10
"""

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, SecretStr

from .services.ssm_service import SSMService

logger = logging.getLogger(__name__)

# Stripe retries webhook deliveries for up to three days, but an event that
# was handled once is safe to replay after a day
EVENT_RETENTION_SECONDS = 24 * 60 * 60


class Settings(BaseModel):
    """Explicit configuration handed to every component."""

    environment: str = "dev"
    aws_region: str | None = None
    table_prefix: str = Field(..., description="DynamoDB table name prefix")
    public_base_url: str = Field(..., description="Origin used to build the Telegram webhook URL")
    stripe_secret_key: SecretStr
    stripe_webhook_secret: SecretStr | None = None
    kms_key_id: str
    digest_key: SecretStr = Field(..., description="HMAC key for routing secret / bot token lookups")
    telegram_api_base: str = "https://api.telegram.org"
    http_timeout_seconds: float = 10.0
    event_retention_seconds: int = EVENT_RETENTION_SECONDS
    event_claim_lease_seconds: int = 300
    registration_max_attempts: int = 5

    @property
    def telegram_webhook_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/api/telegram/webhook"


def load_settings(
    environ: Mapping[str, str] | None = None,
    ssm: SSMService | None = None,
) -> Settings:
    """Build Settings from the environment, filling secrets from SSM.

    Args:
        environ: Mapping to read instead of os.environ.
        ssm: SSM service used for secrets not present in the environment.

    Returns:
        Populated Settings.
    """
    env = os.environ if environ is None else environ
    environment = env.get("ENVIRONMENT", "dev")
    region = env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION")

    def secret(var: str, parameter: str) -> str:
        value = env.get(var)
        if value:
            return value
        nonlocal ssm
        if ssm is None:
            ssm = SSMService(region_name=region)
        return ssm.get_parameter(f"/paygate/{environment}/{parameter}")

    settings = Settings(
        environment=environment,
        aws_region=region,
        table_prefix=env.get("DYNAMODB_TABLE_PREFIX", f"paygate-{environment}"),
        public_base_url=env.get("PUBLIC_BASE_URL", "http://localhost:8080"),
        stripe_secret_key=secret("STRIPE_SECRET_KEY", "stripe/secret_key"),
        stripe_webhook_secret=secret("STRIPE_WEBHOOK_SECRET", "stripe/webhook_secret"),
        kms_key_id=env.get("KMS_KEY_ID", f"alias/paygate-{environment}"),
        digest_key=secret("ROUTING_DIGEST_KEY", "routing/digest_key"),
        telegram_api_base=env.get("TELEGRAM_API_BASE", "https://api.telegram.org"),
        http_timeout_seconds=float(env.get("HTTP_TIMEOUT_SECONDS", "10")),
    )
    logger.info(
        "Settings loaded for environment %s (tables %s-*)",
        settings.environment,
        settings.table_prefix,
    )
    return settings
