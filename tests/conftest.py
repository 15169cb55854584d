"""Pytest fixtures: relay config and an in-process fake of Daraja + the wallet service."""

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from mpesa_relay.utils.config_loader import (
    GatewayConfig,
    RateLimitConfig,
    RelayConfig,
    ServerConfig,
    WalletConfig,
)

BASE_URL = "https://daraja.test"
WALLET_URL = "https://wallet.test"


class FakeDaraja:
    """
    Routes requests by path the way Daraja and the wallet service would answer.

    Override behaviour by setting ``auth_response``, ``push_response``,
    ``query_response`` or ``wallet_response`` to an httpx.Response, or to an
    exception instance to raise it from the transport.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.auth_calls = 0
        self.push_calls = 0
        self.query_calls = 0
        self.wallet_calls: List[Dict[str, Any]] = []
        self.token_counter = 0
        self.auth_response: Optional[Any] = None
        self.push_response: Optional[Any] = None
        self.push_responses: List[Any] = []
        self.query_response: Optional[Any] = None
        self.wallet_response: Optional[Any] = None

    @staticmethod
    def _resolve(outcome: Any) -> httpx.Response:
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/v1/generate":
            self.auth_calls += 1
            await asyncio.sleep(0.01)
            if self.auth_response is not None:
                return self._resolve(self.auth_response)
            self.token_counter += 1
            return httpx.Response(200, json={"access_token": f"token-{self.token_counter}", "expires_in": "3599"})

        if path == "/mpesa/stkpush/v1/processrequest":
            self.push_calls += 1
            if self.push_responses:
                return self._resolve(self.push_responses.pop(0))
            if self.push_response is not None:
                return self._resolve(self.push_response)
            return httpx.Response(200, json={
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": f"ws_CO_191220191020363925{self.push_calls}",
                "ResponseCode": "0",
                "ResponseDescription": "Success. Request accepted for processing",
                "CustomerMessage": "Success. Request accepted for processing",
            })

        if path == "/mpesa/stkpushquery/v1/query":
            self.query_calls += 1
            if self.query_response is not None:
                return self._resolve(self.query_response)
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "ResponseCode": "0",
                "ResponseDescription": "The service request has been accepted successfully",
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": body["CheckoutRequestID"],
                "ResultCode": "1032",
                "ResultDesc": "Request cancelled by user",
            })

        if request.url.host == "wallet.test":
            self.wallet_calls.append(json.loads(request.content))
            if self.wallet_response is not None:
                return self._resolve(self.wallet_response)
            return httpx.Response(200, json={"received": True})

        return httpx.Response(404, json={"errorMessage": "not found"})

    def last_json(self, path: str) -> Dict[str, Any]:
        for request in reversed(self.requests):
            if request.url.path == path:
                return json.loads(request.content)
        raise AssertionError(f"no request to {path}")


@pytest.fixture
def fake_daraja():
    return FakeDaraja()


@pytest.fixture
def http_client(fake_daraja):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_daraja))


@pytest.fixture
def relay_config():
    return RelayConfig(
        gateway=GatewayConfig(
            base_url=BASE_URL,
            consumer_key="test_consumer_key",
            consumer_secret="test_consumer_secret",
            short_code="174379",
            pass_key="test_passkey",
            callback_url="https://relay.test/callback",
        ),
        wallet=WalletConfig(base_url=WALLET_URL),
        rate_limit=RateLimitConfig(max_requests=200, window_seconds=900),
        server=ServerConfig(environment="test"),
    )


def stk_callback(result_code: int = 0, items: Optional[List[Dict[str, Any]]] = None, checkout_id: str = "ws_CO_1") -> Dict[str, Any]:
    callback: Dict[str, Any] = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0 else "Request cancelled by user",
    }
    if items is not None:
        callback["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": callback}}


@pytest.fixture
def make_callback():
    return stk_callback
