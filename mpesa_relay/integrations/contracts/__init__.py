from .interfaces import (
    CallbackItem,
    CallbackResult,
    Credential,
    PushPaymentAck,
    PushPaymentGateway,
    PushPaymentRequest,
    StatusQuery,
    TransactionType,
)
from .payments import (
    PaymentStatus,
    build_forward_payload,
    status_for_result_code,
)

__all__ = [
    "CallbackItem", "CallbackResult", "Credential", "PushPaymentAck",
    "PushPaymentGateway", "PushPaymentRequest", "StatusQuery", "TransactionType",
    "PaymentStatus", "build_forward_payload", "status_for_result_code",
]
