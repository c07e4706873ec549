"""Pytest configuration and fixtures for Paygate tests.

This module provides reusable fixtures for testing:
- DynamoDB and KMS mocking with moto
- Bot integration factories
- Mocked Stripe service and Telegram clients
"""

import datetime as dt
import os
from typing import Any, Callable, Generator
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

from paygate.models.enums import Locale
from paygate.models.tenant import BotIntegration
from paygate.services.dynamodb import DynamoDBService
from paygate.services.secret_cipher import SecretCipher
from paygate.services.stripe_service import StripeService
from paygate.services.telegram_client import TelegramClient, TelegramClientFactory
from paygate.services.tenant_registry import BotIntegrationRegistry
from tests.helpers import DIGEST_KEY, REGION, TABLE_PREFIX, ok

# === Environment Setup ===

os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"

# === AWS Fixtures ===


@pytest.fixture
def aws() -> Generator[None, None, None]:
    """Run the test inside a moto mock."""
    with mock_aws():
        yield


@pytest.fixture
def create_tables(aws: None) -> None:
    """Create all DynamoDB tables used by Paygate."""
    client = boto3.client("dynamodb", region_name=REGION)
    client.create_table(
        TableName=f"{TABLE_PREFIX}-bot-integrations",
        KeySchema=[{"AttributeName": "integration_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "integration_id", "AttributeType": "S"},
            {"AttributeName": "routing_secret_digest", "AttributeType": "S"},
            {"AttributeName": "bot_token_digest", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "routing_secret_digest-index",
                "KeySchema": [{"AttributeName": "routing_secret_digest", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": "bot_token_digest-index",
                "KeySchema": [{"AttributeName": "bot_token_digest", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.create_table(
        TableName=f"{TABLE_PREFIX}-processed-events",
        KeySchema=[{"AttributeName": "event_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "event_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    client.create_table(
        TableName=f"{TABLE_PREFIX}-chat-states",
        KeySchema=[{"AttributeName": "chat_key", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "chat_key", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    for table in ("processed-events", "chat-states"):
        client.update_time_to_live(
            TableName=f"{TABLE_PREFIX}-{table}",
            TimeToLiveSpecification={"Enabled": True, "AttributeName": "expires_at"},
        )


@pytest.fixture
def db(create_tables: None) -> DynamoDBService:
    return DynamoDBService(TABLE_PREFIX, region_name=REGION)


@pytest.fixture
def cipher(aws: None) -> SecretCipher:
    key_id = boto3.client("kms", region_name=REGION).create_key()["KeyMetadata"]["KeyId"]
    return SecretCipher(key_id, DIGEST_KEY, region_name=REGION)


@pytest.fixture
def registry(db: DynamoDBService, cipher: SecretCipher) -> BotIntegrationRegistry:
    return BotIntegrationRegistry(db, cipher)


# === Sample Data ===


@pytest.fixture
def make_integration() -> Callable[..., BotIntegration]:
    """Factory for BotIntegration instances with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> BotIntegration:
        counter["n"] += 1
        n = counter["n"]
        created = dt.datetime(2025, 1, 1, tzinfo=dt.UTC) + dt.timedelta(minutes=n)
        values: dict[str, Any] = {
            "integration_id": f"bot_{n:012x}",
            "name": f"Channel {n}",
            "bot_token": f"{1000 + n}:token-{n}",
            "routing_secret": f"routing{n:025d}",
            "channel_id": f"-100{n:010d}",
            "price_ids": ["price_monthly", "price_lifetime"],
            "default_locale": Locale.EN,
            "offer_text": "<b>Premium channel</b>",
            "bot_username": "PremiumBot",
            "active": True,
            "created_at": created,
            "updated_at": created,
        }
        values.update(overrides)
        return BotIntegration(**values)

    return _make


@pytest.fixture
def integration(make_integration: Callable[..., BotIntegration]) -> BotIntegration:
    return make_integration()


# === Service Mocks ===


@pytest.fixture
def stripe_mock() -> MagicMock:
    """StripeService double; tests configure return values per call."""
    return MagicMock(spec=StripeService)


@pytest.fixture
def telegram() -> MagicMock:
    """TelegramClient double answering every call with a success envelope."""
    client = MagicMock(spec=TelegramClient)
    client.send_message.return_value = ok({"message_id": 42})
    client.edit_message_text.return_value = ok({"message_id": 42})
    client.answer_callback_query.return_value = ok()
    client.add_chat_member.return_value = ok()
    client.invite_chat_member.return_value = ok()
    client.get_chat_member.return_value = ok({"status": "member"})
    client.get_chat.return_value = ok({"id": -1001, "type": "channel", "username": "premium_channel"})
    client.create_chat_invite_link.return_value = ok({"invite_link": "https://t.me/+fresh"})
    client.export_chat_invite_link.return_value = ok("https://t.me/+exported")
    client.set_webhook.return_value = ok()
    client.set_my_commands.return_value = ok()
    client.get_me.return_value = ok({"id": 1, "is_bot": True, "username": "PremiumBot"})
    client.bot_username.return_value = "PremiumBot"
    return client


@pytest.fixture
def telegram_factory(telegram: MagicMock) -> MagicMock:
    factory = MagicMock(spec=TelegramClientFactory)
    factory.for_integration.return_value = telegram
    factory.for_token.return_value = telegram
    return factory
