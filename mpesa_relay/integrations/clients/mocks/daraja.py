"""
Safaricom Daraja: MOCK client.

⚠️  This is a mock implementation for development and testing.
    No network calls are made; checkout identifiers are random and status
    queries are answered from an in-memory store. Pushes are reported as
    "still processing" until ``complete()`` records an outcome, matching
    the real gateway's advisory-only query semantics.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional, Tuple

from mpesa_relay.integrations.contracts.interfaces import (
    PushPaymentAck,
    PushPaymentGateway,
    PushPaymentRequest,
    StatusQuery,
)
from mpesa_relay.integrations.errors import GatewayError
from mpesa_relay.integrations.policy.credential_cache import CredentialCache

logger = logging.getLogger(__name__)

_PENDING_BODY = {
    "requestId": "mock-pending",
    "errorCode": "500.001.1001",
    "errorMessage": "The transaction is being processed",
}


class MockGatewayClient(PushPaymentGateway):
    """
    Mock Daraja client.

    Parameters
    ----------
    token_lifetime : int
        Lifetime advertised for issued tokens. Default 3599.
    reject_phones : set of str
        Normalized phone numbers whose pushes are rejected with a nonzero
        ResponseCode, to exercise the rejection path.
    """

    def __init__(self, token_lifetime: int = 3599, reject_phones: Optional[set] = None):
        self._token_lifetime = token_lifetime
        self._reject_phones = set(reject_phones or ())

        # In-memory stores (reset on restart)
        self._pushes: Dict[str, PushPaymentRequest] = {}
        self._results: Dict[str, Tuple[int, str]] = {}
        self.auth_calls = 0

        self.credential_cache = CredentialCache(self.authenticate, safety_margin_seconds=10)
        logger.info("[DARAJA MOCK] Client initialised")

    async def authenticate(self) -> Tuple[str, int]:
        self.auth_calls += 1
        return f"mock-{uuid.uuid4().hex[:16]}", self._token_lifetime

    async def get_credential(self):
        return await self.credential_cache.get_credential()

    async def initiate_push(self, request: PushPaymentRequest) -> PushPaymentAck:
        await self.get_credential()
        logger.info("[DARAJA MOCK] STK push phone=%s amount=%s", request.normalized_phone, request.amount)

        if request.normalized_phone in self._reject_phones:
            raise GatewayError(
                "Invalid PhoneNumber",
                status_code=200,
                details={"ResponseCode": "1", "ResponseDescription": "Invalid PhoneNumber"},
            )

        checkout_id = f"ws_CO_{time.strftime('%d%m%Y%H%M%S')}{uuid.uuid4().hex[:10]}"
        merchant_id = f"{uuid.uuid4().int % 100000}-{uuid.uuid4().int % 100000000}-1"
        self._pushes[checkout_id] = request

        raw = {
            "MerchantRequestID": merchant_id,
            "CheckoutRequestID": checkout_id,
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        }
        return PushPaymentAck(
            checkout_request_id=checkout_id,
            merchant_request_id=merchant_id,
            response_code="0",
            response_description=raw["ResponseDescription"],
            customer_message=raw["CustomerMessage"],
            raw=raw,
        )

    def complete(self, checkout_request_id: str, result_code: int = 0, result_desc: str = "The service request is processed successfully.") -> None:
        """Record the final outcome of a mock push so status queries report it."""
        if checkout_request_id not in self._pushes:
            raise ValueError(f"[DARAJA MOCK] Unknown checkout '{checkout_request_id}'.")
        self._results[checkout_request_id] = (result_code, result_desc)

    async def query_status(self, query: StatusQuery) -> Dict[str, Any]:
        await self.get_credential()
        checkout_id = query.checkout_request_id

        if checkout_id not in self._pushes:
            raise GatewayError(
                "The transaction could not be found",
                status_code=404,
                details={"errorCode": "404.001.04", "errorMessage": "The transaction could not be found"},
            )
        if checkout_id not in self._results:
            raise GatewayError(_PENDING_BODY["errorMessage"], status_code=500, details=dict(_PENDING_BODY))

        code, desc = self._results[checkout_id]
        return {
            "ResponseCode": "0",
            "ResponseDescription": "The service request has been accepted successfully",
            "MerchantRequestID": "mock",
            "CheckoutRequestID": checkout_id,
            "ResultCode": str(code),
            "ResultDesc": desc,
        }
