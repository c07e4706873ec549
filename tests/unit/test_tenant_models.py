"""Unit tests for bot integration models, callback data and locale handling."""

import pytest
from pydantic import ValidationError

from paygate.i18n import resolve_locale, translate
from paygate.models.callback import CallbackData, CallbackKind
from paygate.models.enums import Locale, StripeEventType
from paygate.models.tenant import BotIntegrationCreate, BotIntegrationUpdate, normalize_price_ids


class TestPriceIdNormalization:
    """Configured price IDs normalize the same way from any input form."""

    def test_string_and_list_forms_are_equal(self):
        from_string = normalize_price_ids(" price_a ,price_b\n\nprice_a,, price_c \n")
        from_list = normalize_price_ids(["price_a", " price_b", "", "price_a", "price_c "])

        assert from_string == ["price_a", "price_b", "price_c"]
        assert from_string == from_list

    def test_order_of_first_occurrence_is_kept(self):
        assert normalize_price_ids("price_z,price_a,price_z") == ["price_z", "price_a"]

    def test_none_and_blank_give_empty_list(self):
        assert normalize_price_ids(None) == []
        assert normalize_price_ids(" \n , ") == []

    def test_create_model_normalizes(self):
        data = BotIntegrationCreate(
            name="Premium",
            bot_token="123:ABC",
            channel_id="-100123",
            price_ids="price_a\nprice_b,price_a",
            offer_text="Hello",
        )
        assert data.price_ids == ["price_a", "price_b"]

    def test_create_requires_a_price(self):
        with pytest.raises(ValidationError):
            BotIntegrationCreate(
                name="Premium",
                bot_token="123:ABC",
                channel_id="-100123",
                price_ids=" , ",
                offer_text="Hello",
            )

    def test_update_rejects_empty_price_list(self):
        with pytest.raises(ValidationError):
            BotIntegrationUpdate(price_ids="\n")

    def test_update_without_prices_leaves_them_unset(self):
        assert BotIntegrationUpdate(name="New name").price_ids is None


class TestBotIntegrationValidation:
    """Field validation on administrative input."""

    def _create(self, **overrides):
        values = {
            "name": "Premium",
            "bot_token": "123:ABC",
            "channel_id": "-100123",
            "price_ids": ["price_a"],
            "offer_text": "Hello",
        }
        values.update(overrides)
        return BotIntegrationCreate(**values)

    def test_username_strips_at_sign(self):
        assert self._create(bot_username="@Premium_bot").bot_username == "Premium_bot"

    @pytest.mark.parametrize("username", ["abc", "has space", "x" * 33, "bad-dash"])
    def test_invalid_username_rejected(self, username):
        with pytest.raises(ValidationError):
            self._create(bot_username=username)

    def test_unsupported_locale_rejected(self):
        with pytest.raises(ValidationError):
            self._create(default_locale="de")

    def test_blank_token_rejected(self):
        with pytest.raises(ValidationError):
            self._create(bot_token="   ")

    def test_blank_offer_rejected(self):
        with pytest.raises(ValidationError):
            self._create(offer_text="  ")

    def test_deep_link(self, make_integration):
        assert make_integration(bot_username="PremiumBot").deep_link() == "https://t.me/PremiumBot"
        assert make_integration(bot_username=None).deep_link() == "https://t.me"
        assert make_integration(bot_username=None).deep_link("FetchedBot") == "https://t.me/FetchedBot"
        assert make_integration(bot_username="PremiumBot").deep_link("FetchedBot") == "https://t.me/PremiumBot"

    def test_sells(self, make_integration):
        integration = make_integration(price_ids="price_a,price_b")
        assert integration.sells("price_b")
        assert not integration.sells("price_c")

    def test_secrets_hidden_in_repr(self, integration):
        assert integration.bot_token.get_secret_value() not in repr(integration)
        assert integration.routing_secret.get_secret_value() not in repr(integration)


class TestCallbackData:
    """Round trip of inline button payloads."""

    @pytest.mark.parametrize(
        "raw, kind, price_id",
        [
            ("get_started", CallbackKind.GET_STARTED, None),
            ("maybe_later", CallbackKind.MAYBE_LATER, None),
            ("price_1QxYzAbCdEf", CallbackKind.PRICE_SELECTED, "1QxYzAbCdEf"),
        ],
    )
    def test_parse_known(self, raw, kind, price_id):
        data = CallbackData.parse(raw)
        assert data.kind is kind
        assert data.price_id == price_id
        assert data.encode() == raw

    def test_price_selected_keeps_stripe_prefix(self):
        data = CallbackData.price_selected("price_123")
        assert data.encode() == "price_price_123"
        assert CallbackData.parse(data.encode()).price_id == "price_123"

    @pytest.mark.parametrize("raw", [None, "", "price_", "something_else"])
    def test_unknown(self, raw):
        data = CallbackData.parse(raw)
        assert data.kind is CallbackKind.UNKNOWN
        assert data.raw == raw


class TestLocaleResolution:
    """Locale comes from the user's language_code, else the integration default."""

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("uk", Locale.UK),
            ("uk-UA", Locale.UK),
            ("RU", Locale.RU),
            ("en-GB", Locale.EN),
            ("de", Locale.RU),
            (None, Locale.RU),
            ("", Locale.RU),
        ],
    )
    def test_resolve(self, code, expected):
        assert resolve_locale(code, Locale.RU) is expected

    def test_every_locale_has_every_key(self):
        from paygate.i18n import MESSAGES

        english_keys = set(MESSAGES[Locale.EN])
        for locale in Locale:
            assert set(MESSAGES[locale]) == english_keys

    def test_translate_fills_placeholders(self):
        text = translate(Locale.EN, "status.expiring", ends_at="March 01, 2025")
        assert "March 01, 2025" in text

    def test_translate_unknown_key_returns_key(self):
        assert translate(Locale.UK, "no.such.key") == "no.such.key"


class TestStripeEventType:
    def test_known_types(self):
        assert StripeEventType.parse("invoice.paid") is StripeEventType.INVOICE_PAID

    def test_unknown_type_falls_through(self):
        assert StripeEventType.parse("charge.refunded") is StripeEventType.UNHANDLED
        assert StripeEventType.parse(None) is StripeEventType.UNHANDLED
