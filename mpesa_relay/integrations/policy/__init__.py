from .callback_relay import ACK, CallbackRelay
from .credential_cache import CredentialCache
from .push_request_builder import PushRequestBuilder, normalize_phone, parse_amount
from .status_reconciler import StatusReconciler

__all__ = [
    "ACK", "CallbackRelay", "CredentialCache", "PushRequestBuilder",
    "StatusReconciler", "normalize_phone", "parse_amount",
]
