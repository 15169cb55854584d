"""
Integrations layer.
This package contains all code used to communicate with external systems:
- Safaricom Daraja (OAuth token, STK push, STK push query)
- the downstream wallet service that receives relayed payment results

Key rule:
- API endpoints MUST NOT call external APIs directly.
- Endpoints call the policy components (under integrations/policy), which in
  turn use the integration clients (under integrations/clients).
- We use MOCK clients during development and swap to REAL_HTTP clients in production.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (mpesa_relay/api/main.py).
"""

from .contracts.interfaces import (
    CallbackResult,
    Credential,
    PushPaymentAck,
    PushPaymentGateway,
    PushPaymentRequest,
    StatusQuery,
)
from .contracts.payments import PaymentStatus, build_forward_payload
from .errors import AuthError, ForwardError, GatewayError, RelayError, ValidationError

__all__ = [
    # contracts
    "CallbackResult", "Credential", "PushPaymentAck", "PushPaymentGateway",
    "PushPaymentRequest", "StatusQuery",
    # payments
    "PaymentStatus", "build_forward_payload",
    # errors
    "AuthError", "ForwardError", "GatewayError", "RelayError", "ValidationError",
]
