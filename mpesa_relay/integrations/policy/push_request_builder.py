"""
Builds signed STK push and status-query bodies from caller input.

Validation order matters and mirrors what callers see:
required fields, phone format, amount parsing, amount floor.
"""

from __future__ import annotations

import base64
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Tuple

from mpesa_relay.integrations.contracts.interfaces import PushPaymentRequest, StatusQuery
from mpesa_relay.integrations.errors import ValidationError
from mpesa_relay.utils.config_loader import GatewayConfig, ValidationConfig

_NON_DIGITS = re.compile(r"\D")

MISSING_FIELDS = "Phone and amount are required."
INVALID_PHONE = "Invalid phone format. Use: 2547XXXXXXXX or 2541XXXXXXXX"
INVALID_AMOUNT = "Amount must be a number."
AMOUNT_TOO_LOW = "Amount must be at least 1."


def normalize_phone(phone: Any, country_code: str = "") -> str:
    """
    Strip every non-digit, then apply the country code when one is configured:
    ``0712345678`` and ``712345678`` both become ``254712345678``.
    """
    digits = _NON_DIGITS.sub("", str(phone))
    if not country_code or not digits or digits.startswith(country_code):
        return digits
    if digits.startswith("0"):
        return country_code + digits[1:]
    if len(digits) == 9:
        return country_code + digits
    return digits


def parse_amount(amount: Any) -> int:
    """Parse a number (or numeric string) and truncate it toward zero."""
    if isinstance(amount, bool):
        raise ValidationError(INVALID_AMOUNT)
    try:
        value = float(str(amount).strip()) if isinstance(amount, str) else float(amount)
    except (TypeError, ValueError) as exc:
        raise ValidationError(INVALID_AMOUNT) from exc
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(INVALID_AMOUNT)
    return math.trunc(value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class PushRequestBuilder:
    def __init__(
        self,
        gateway: GatewayConfig,
        rules: Optional[ValidationConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.gateway = gateway
        self.rules = rules or ValidationConfig()
        self._tz = timezone(timedelta(hours=gateway.utc_offset_hours))
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._phone_pattern = re.compile(self.rules.phone_pattern) if self.rules.phone_pattern else None

    def timestamp(self) -> str:
        """Current time as YYYYMMDDHHMMSS in the gateway's timezone."""
        return self._now().astimezone(self._tz).strftime("%Y%m%d%H%M%S")

    def password_for(self, timestamp: str) -> str:
        raw = f"{self.gateway.short_code}{self.gateway.pass_key}{timestamp}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def signed_timestamp(self) -> Tuple[str, str]:
        """A fresh (timestamp, password) pair; the password is only valid for that timestamp."""
        timestamp = self.timestamp()
        return timestamp, self.password_for(timestamp)

    def build(self, phone: Any, amount: Any, description: Optional[str] = None) -> PushPaymentRequest:
        if _is_blank(phone) or _is_blank(amount):
            raise ValidationError(MISSING_FIELDS)

        if isinstance(phone, bool) or not isinstance(phone, (str, int)):
            raise ValidationError(INVALID_PHONE)
        normalized_phone = normalize_phone(phone, self.rules.phone_country_code)
        if not normalized_phone:
            raise ValidationError(INVALID_PHONE)
        if self._phone_pattern is not None and not self._phone_pattern.match(normalized_phone):
            raise ValidationError(INVALID_PHONE)

        whole_amount = parse_amount(amount)
        if whole_amount < 1:
            raise ValidationError(AMOUNT_TOO_LOW)

        text = description if isinstance(description, str) and description.strip() else self.rules.default_description
        timestamp, password = self.signed_timestamp()

        return PushPaymentRequest(
            short_code=self.gateway.short_code,
            normalized_phone=normalized_phone,
            amount=whole_amount,
            timestamp=timestamp,
            password=password,
            account_reference=text[: self.rules.account_reference_max_length],
            transaction_description=text[: self.rules.transaction_description_max_length],
            callback_url=self.gateway.callback_url,
            transaction_type=self.gateway.transaction_type,
        )

    def build_status_query(self, checkout_request_id: str) -> StatusQuery:
        timestamp, password = self.signed_timestamp()
        return StatusQuery(
            short_code=self.gateway.short_code,
            password=password,
            timestamp=timestamp,
            checkout_request_id=checkout_request_id,
        )
