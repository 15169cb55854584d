from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TransactionType(str, Enum):
    PAYBILL = "CustomerPayBillOnline"


class CallbackItem(str, Enum):
    """Names used by Daraja inside ``CallbackMetadata.Item``."""

    AMOUNT = "Amount"
    RECEIPT_NUMBER = "MpesaReceiptNumber"
    PHONE_NUMBER = "PhoneNumber"
    TRANSACTION_DATE = "TransactionDate"


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Credential:
    value: str
    expires_at: float                    # clock seconds, safety margin already applied
    lifetime_seconds: int                # nominal lifetime advertised by the gateway

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class PushPaymentRequest:
    short_code: str
    normalized_phone: str
    amount: int
    timestamp: str                       # YYYYMMDDHHMMSS, gateway timezone
    password: str
    account_reference: str
    transaction_description: str
    callback_url: str
    transaction_type: str = TransactionType.PAYBILL.value

    def to_payload(self) -> Dict[str, Any]:
        return {
            "BusinessShortCode": self.short_code,
            "Password": self.password,
            "Timestamp": self.timestamp,
            "TransactionType": self.transaction_type,
            "Amount": self.amount,
            "PartyA": self.normalized_phone,
            "PartyB": self.short_code,
            "PhoneNumber": self.normalized_phone,
            "CallBackURL": self.callback_url,
            "AccountReference": self.account_reference,
            "TransactionDesc": self.transaction_description,
        }


@dataclass(frozen=True)
class StatusQuery:
    short_code: str
    password: str
    timestamp: str
    checkout_request_id: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "BusinessShortCode": self.short_code,
            "Password": self.password,
            "Timestamp": self.timestamp,
            "CheckoutRequestID": self.checkout_request_id,
        }


@dataclass
class PushPaymentAck:
    checkout_request_id: str
    merchant_request_id: str
    response_code: str
    response_description: str
    customer_message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CallbackResult:
    checkout_request_id: Optional[str]
    merchant_request_id: Optional[str]
    result_code: Optional[int]
    result_description: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0

    @property
    def amount(self) -> Any:
        return self.metadata.get(CallbackItem.AMOUNT.value)

    @property
    def receipt_number(self) -> Any:
        return self.metadata.get(CallbackItem.RECEIPT_NUMBER.value)

    @property
    def phone_number(self) -> Any:
        return self.metadata.get(CallbackItem.PHONE_NUMBER.value)

    @property
    def transaction_date(self) -> Any:
        return self.metadata.get(CallbackItem.TRANSACTION_DATE.value)


# ---------------------------------------------------------------------------
# Abstract gateway interface
# ---------------------------------------------------------------------------

class PushPaymentGateway(ABC):
    """Every gateway client (real Daraja or mock) must implement this interface."""

    @abstractmethod
    async def authenticate(self) -> Tuple[str, int]:
        """Fetch a fresh bearer token and its advertised lifetime in seconds."""

    @abstractmethod
    async def get_credential(self) -> Credential:
        """Return a usable credential, refreshing it when needed."""

    @abstractmethod
    async def initiate_push(self, request: PushPaymentRequest) -> PushPaymentAck:
        """Submit an STK push. A returned ack only means the push was queued."""

    @abstractmethod
    async def query_status(self, query: StatusQuery) -> Dict[str, Any]:
        """Ask the gateway for the current state of a push. Advisory only."""
