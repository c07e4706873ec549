"""Backend services for Paygate."""

from .channel_access import ChannelAccessGranter
from .chat_state import ChatStateStore
from .conversation import ConversationContext, ConversationRouter
from .dynamodb import DynamoDBService
from .plan_catalog import CheckoutInitiator, PlanCatalog, format_plan_label
from .registration import BotRegistrar, RegistrationError, RegistrationScheduler
from .secret_cipher import SecretCipher, SecretCipherError
from .ssm_service import SSMService, SSMServiceError
from .stripe_service import StripeService, StripeServiceError
from .subscription_resolver import SubscriptionResolver
from .telegram_client import TelegramClient, TelegramClientFactory
from .tenant_admin import BotIntegrationAdmin
from .tenant_registry import BotIntegrationRegistry
from .webhook_handler import PaymentWebhookProcessor, ProcessedEventStore, WebhookOutcome

__all__ = [
    "BotIntegrationAdmin",
    "BotIntegrationRegistry",
    "BotRegistrar",
    "ChannelAccessGranter",
    "ChatStateStore",
    "CheckoutInitiator",
    "ConversationContext",
    "ConversationRouter",
    "DynamoDBService",
    "PaymentWebhookProcessor",
    "PlanCatalog",
    "ProcessedEventStore",
    "RegistrationError",
    "RegistrationScheduler",
    "SSMService",
    "SSMServiceError",
    "SecretCipher",
    "SecretCipherError",
    "StripeService",
    "StripeServiceError",
    "SubscriptionResolver",
    "TelegramClient",
    "TelegramClientFactory",
    "WebhookOutcome",
    "format_plan_label",
]
