"""FastAPI dependency injection providers for shared services.

Every service is built once per process with @lru_cache. Only
get_settings() reads the environment; everything else receives its
collaborators through its constructor.

Service Dependency Graph:
    Settings
        ├── DynamoDBService
        │       ├── BotIntegrationRegistry (+ SecretCipher)
        │       ├── ChatStateStore
        │       └── ProcessedEventStore
        ├── StripeService
        │       ├── PlanCatalog / CheckoutInitiator
        │       └── SubscriptionResolver
        └── TelegramClientFactory
                ├── ChannelAccessGranter
                └── BotRegistrar
    ConversationRouter, PaymentWebhookProcessor and BotIntegrationAdmin
    sit on top of the above.

Testing:
    Use app.dependency_overrides or reset_services() between tests.
"""

from functools import lru_cache

from paygate.config import Settings, load_settings
from paygate.services.channel_access import ChannelAccessGranter
from paygate.services.chat_state import ChatStateStore
from paygate.services.conversation import ConversationRouter
from paygate.services.dynamodb import DynamoDBService
from paygate.services.plan_catalog import CheckoutInitiator, PlanCatalog
from paygate.services.registration import BotRegistrar, RegistrationScheduler
from paygate.services.secret_cipher import SecretCipher
from paygate.services.stripe_service import StripeService
from paygate.services.subscription_resolver import SubscriptionResolver
from paygate.services.telegram_client import TelegramClientFactory
from paygate.services.tenant_admin import BotIntegrationAdmin
from paygate.services.tenant_registry import BotIntegrationRegistry
from paygate.services.webhook_handler import PaymentWebhookProcessor, ProcessedEventStore


@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_dynamodb_service() -> DynamoDBService:
    settings = get_settings()
    return DynamoDBService(settings.table_prefix, region_name=settings.aws_region)


@lru_cache
def get_registry() -> BotIntegrationRegistry:
    settings = get_settings()
    cipher = SecretCipher(
        settings.kms_key_id,
        settings.digest_key.get_secret_value(),
        region_name=settings.aws_region,
    )
    return BotIntegrationRegistry(get_dynamodb_service(), cipher)


@lru_cache
def get_stripe_service() -> StripeService:
    settings = get_settings()
    webhook_secret = settings.stripe_webhook_secret
    return StripeService(
        settings.stripe_secret_key.get_secret_value(),
        webhook_secret=webhook_secret.get_secret_value() if webhook_secret else None,
    )


@lru_cache
def get_telegram_factory() -> TelegramClientFactory:
    settings = get_settings()
    return TelegramClientFactory(
        api_base=settings.telegram_api_base,
        timeout=settings.http_timeout_seconds,
    )


@lru_cache
def get_conversation_router() -> ConversationRouter:
    stripe_service = get_stripe_service()
    return ConversationRouter(
        telegram=get_telegram_factory(),
        stripe_service=stripe_service,
        plan_catalog=PlanCatalog(stripe_service),
        checkout=CheckoutInitiator(stripe_service),
        resolver=SubscriptionResolver(stripe_service),
        chat_states=ChatStateStore(get_dynamodb_service()),
    )


@lru_cache
def get_webhook_processor() -> PaymentWebhookProcessor:
    settings = get_settings()
    return PaymentWebhookProcessor(
        stripe_service=get_stripe_service(),
        registry=get_registry(),
        granter=ChannelAccessGranter(get_telegram_factory()),
        events=ProcessedEventStore(
            get_dynamodb_service(),
            retention_seconds=settings.event_retention_seconds,
            lease_seconds=settings.event_claim_lease_seconds,
        ),
    )


@lru_cache
def get_registration_scheduler() -> RegistrationScheduler:
    settings = get_settings()
    return RegistrationScheduler(
        BotRegistrar(get_telegram_factory(), settings.telegram_webhook_url),
        get_registry(),
        max_attempts=settings.registration_max_attempts,
    )


@lru_cache
def get_admin() -> BotIntegrationAdmin:
    return BotIntegrationAdmin(
        get_registry(),
        get_telegram_factory(),
        scheduler=get_registration_scheduler(),
    )


def reset_services() -> None:
    """Clear all cached service instances."""
    get_settings.cache_clear()
    get_dynamodb_service.cache_clear()
    get_registry.cache_clear()
    get_stripe_service.cache_clear()
    get_telegram_factory.cache_clear()
    get_conversation_router.cache_clear()
    get_webhook_processor.cache_clear()
    get_registration_scheduler.cache_clear()
    get_admin.cache_clear()
