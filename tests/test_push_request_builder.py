import base64
from datetime import datetime, timezone

import pytest

from mpesa_relay.integrations.errors import ValidationError
from mpesa_relay.integrations.policy.push_request_builder import (
    PushRequestBuilder,
    normalize_phone,
    parse_amount,
)
from mpesa_relay.utils.config_loader import ValidationConfig

FIXED_NOW = datetime(2024, 3, 5, 21, 4, 9, tzinfo=timezone.utc)


@pytest.fixture
def builder(relay_config):
    return PushRequestBuilder(relay_config.gateway, relay_config.validation, now=lambda: FIXED_NOW)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+254 712-345-678", "254712345678"),
        ("(254) 712 345 678", "254712345678"),
        ("0712345678", "254712345678"),
        ("712345678", "254712345678"),
        ("0110 123 456", "254110123456"),
        (254712345678, "254712345678"),
    ],
)
def test_normalize_phone_with_country_code(raw, expected):
    assert normalize_phone(raw, "254") == expected


def test_normalize_phone_keeps_digit_order_without_country_code():
    raw = "+1 (415) 555-0199 ext. 7"
    assert normalize_phone(raw, "") == "141555501997"


def test_build_normalizes_phone_and_truncates_amount(builder):
    request = builder.build("0712345678", "49.9")

    assert request.normalized_phone == "254712345678"
    assert request.amount == 49
    assert request.short_code == "174379"
    assert request.callback_url == "https://relay.test/callback"
    assert request.transaction_type == "CustomerPayBillOnline"


def test_timestamp_is_gateway_local_time(builder):
    # 21:04:09 UTC is 00:04:09 the next day in Nairobi (UTC+3)
    request = builder.build("254712345678", 10)
    assert request.timestamp == "20240306000409"
    assert len(request.timestamp) == 14 and request.timestamp.isdigit()


def test_password_is_derived_from_the_same_timestamp(builder):
    request = builder.build("254712345678", 10)
    decoded = base64.b64decode(request.password).decode("utf-8")
    assert decoded == f"174379test_passkey{request.timestamp}"


def test_description_is_truncated_silently(builder):
    request = builder.build("254712345678", 10, "Buy USD Credit for wallet top-up")
    assert request.account_reference == "Buy USD Cred"
    assert request.transaction_description == "Buy USD Credi"
    assert len(request.account_reference) == 12
    assert len(request.transaction_description) == 13


def test_missing_description_uses_default(builder):
    request = builder.build("254712345678", 10, "  ")
    assert request.account_reference == "Payment"
    assert request.transaction_description == "Payment"


def test_payload_uses_daraja_field_names(builder):
    payload = builder.build("254712345678", 100, "Order 42").to_payload()
    assert payload["PartyA"] == payload["PhoneNumber"] == "254712345678"
    assert payload["PartyB"] == payload["BusinessShortCode"] == "174379"
    assert payload["Amount"] == 100
    assert payload["CallBackURL"] == "https://relay.test/callback"
    assert payload["AccountReference"] == "Order 42"


@pytest.mark.parametrize(
    "phone, amount",
    [(None, 100), ("", 100), ("254712345678", None), ("254712345678", "  "), (None, None)],
)
def test_missing_fields_are_rejected_first(builder, phone, amount):
    with pytest.raises(ValidationError) as exc:
        builder.build(phone, amount)
    assert exc.value.message == "Phone and amount are required."
    assert exc.value.http_status == 400


@pytest.mark.parametrize("phone", ["12345", "255712345678", "abc", "0812345678"])
def test_phone_outside_pattern_is_rejected(builder, phone):
    with pytest.raises(ValidationError) as exc:
        builder.build(phone, 10)
    assert "Invalid phone format" in exc.value.message


@pytest.mark.parametrize("phone", [["0712345678"], {"n": "0712345678"}, 712345678.0, True])
def test_phone_must_be_text_or_integer(builder, phone):
    with pytest.raises(ValidationError) as exc:
        builder.build(phone, 10)
    assert exc.value.message == "Invalid phone format. Use: 2547XXXXXXXX or 2541XXXXXXXX"


def test_integer_phone_is_accepted(builder):
    assert builder.build(254712345678, 10).normalized_phone == "254712345678"


@pytest.mark.parametrize("amount", ["0.99", 0, "-5", -0.5, "0"])
def test_amount_below_one_after_truncation_is_rejected(builder, amount):
    with pytest.raises(ValidationError) as exc:
        builder.build("254712345678", amount)
    assert exc.value.message == "Amount must be at least 1."


@pytest.mark.parametrize("amount", ["ten", "nan", "inf", True, [1]])
def test_non_numeric_amount_is_rejected(builder, amount):
    with pytest.raises(ValidationError) as exc:
        builder.build("254712345678", amount)
    assert exc.value.message == "Amount must be a number."


def test_parse_amount_truncates_toward_zero():
    assert parse_amount("49.9") == 49
    assert parse_amount(1.999) == 1
    assert parse_amount("-1.5") == -1
    assert parse_amount(" 7 ") == 7


def test_pattern_check_can_be_disabled(relay_config):
    rules = ValidationConfig(phone_country_code="", phone_pattern="")
    builder = PushRequestBuilder(relay_config.gateway, rules, now=lambda: FIXED_NOW)
    request = builder.build("+44 7700-900123", 5)
    assert request.normalized_phone == "447700900123"


def test_status_query_gets_a_fresh_signature(relay_config):
    instants = iter([
        datetime(2024, 3, 5, 9, 0, 0, tzinfo=timezone.utc),
        datetime(2024, 3, 5, 9, 0, 1, tzinfo=timezone.utc),
    ])
    builder = PushRequestBuilder(relay_config.gateway, relay_config.validation, now=lambda: next(instants))

    first = builder.build_status_query("ws_CO_1")
    second = builder.build_status_query("ws_CO_1")

    assert first.timestamp == "20240305120000"
    assert second.timestamp == "20240305120001"
    assert first.password != second.password
    assert second.to_payload()["CheckoutRequestID"] == "ws_CO_1"
