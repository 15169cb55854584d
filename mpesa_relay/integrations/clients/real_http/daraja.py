"""
Real Daraja (Safaricom M-Pesa) HTTP client.

Used when INTEGRATIONS_MODE is "real" (the default). Covers the three calls
the relay makes to the gateway:
- OAuth token (Basic auth with the consumer key pair)
- STK push (Bearer)
- STK push query (Bearer)

Important:
- Keep this client as the ONLY place where Daraja HTTP calls are made.
- Every call carries its own timeout; there is no deadline spanning a whole payment.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from mpesa_relay.integrations.contracts.interfaces import (
    Credential,
    PushPaymentAck,
    PushPaymentGateway,
    PushPaymentRequest,
    StatusQuery,
)
from mpesa_relay.integrations.errors import AuthError, GatewayError
from mpesa_relay.integrations.policy.credential_cache import CredentialCache
from mpesa_relay.integrations.policy.response_wrappers import (
    gateway_error_message,
    normalize_access_token_response,
    normalize_push_response,
)
from mpesa_relay.utils.config_loader import CredentialConfig, GatewayConfig, TimeoutConfig

logger = logging.getLogger(__name__)

UNREACHABLE = "Could not reach M-Pesa API"
TIMED_OUT = "M-Pesa API request timed out"


class DarajaClient(PushPaymentGateway):
    def __init__(
        self,
        gateway: GatewayConfig,
        timeouts: Optional[TimeoutConfig] = None,
        credentials: Optional[CredentialConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        credential_cache: Optional[CredentialCache] = None,
    ) -> None:
        self.gateway = gateway
        self.timeouts = timeouts or TimeoutConfig()
        self.credential_config = credentials or CredentialConfig()
        self._http = http_client
        self.credential_cache = credential_cache or CredentialCache(
            self.authenticate,
            safety_margin_seconds=self.credential_config.safety_margin_seconds,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, method: str, url: str, *, timeout: float, **kwargs: Any) -> httpx.Response:
        if self._http is not None:
            return await self._http.request(method, url, timeout=timeout, **kwargs)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.request(method, url, **kwargs)

    @staticmethod
    def _json_body(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _basic_auth_header(self) -> str:
        pair = f"{self.gateway.consumer_key}:{self.gateway.consumer_secret}"
        return "Basic " + base64.b64encode(pair.encode("utf-8")).decode("ascii")

    async def authenticate(self) -> Tuple[str, int]:
        url = self.gateway.auth_url
        try:
            response = await self._send(
                "GET", url,
                timeout=self.timeouts.auth,
                headers={"Authorization": self._basic_auth_header()},
            )
        except httpx.TimeoutException as exc:
            logger.error("[AUTH] Token request timed out after %ss", self.timeouts.auth)
            raise AuthError("Failed to get access token", details={"reason": "timeout"}) from exc
        except httpx.RequestError as exc:
            logger.error("[AUTH] Request error connecting to %s: %s", url, exc)
            raise AuthError("Failed to get access token", details={"reason": str(exc)}) from exc

        if not response.is_success:
            logger.error("[AUTH] Token request rejected: status=%s body=%s", response.status_code, response.text)
            raise AuthError(
                "Failed to get access token",
                details={"status": response.status_code, "body": self._json_body(response)},
            )

        return normalize_access_token_response(
            self._json_body(response),
            default_lifetime=self.credential_config.default_lifetime_seconds,
        )

    async def get_credential(self) -> Credential:
        return await self.credential_cache.get_credential()

    # ------------------------------------------------------------------
    # STK push
    # ------------------------------------------------------------------

    async def _post_with_bearer(self, url: str, payload: Dict[str, Any], *, timeout: float, context: str) -> httpx.Response:
        credential = await self.get_credential()
        response = await self._post_bearer(url, payload, credential, timeout=timeout, context=context)
        if response.status_code == 401:
            logger.warning("[%s] Token rejected with 401, refreshing and retrying once", context)
            self.credential_cache.invalidate(credential)
            credential = await self.get_credential()
            response = await self._post_bearer(url, payload, credential, timeout=timeout, context=context)
        return response

    async def _post_bearer(
        self, url: str, payload: Dict[str, Any], credential: Credential, *, timeout: float, context: str
    ) -> httpx.Response:
        try:
            return await self._send(
                "POST", url,
                timeout=timeout,
                json=payload,
                headers={
                    "Authorization": f"Bearer {credential.value}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.TimeoutException as exc:
            logger.error("[%s] No response from M-Pesa API within %ss", context, timeout)
            raise GatewayError(TIMED_OUT) from exc
        except httpx.RequestError as exc:
            logger.error("[%s] No response from M-Pesa API: %s", context, exc)
            raise GatewayError(UNREACHABLE) from exc

    async def initiate_push(self, request: PushPaymentRequest) -> PushPaymentAck:
        logger.info(
            "[PAY] Sending STK push phone=%s amount=%s ref=%s",
            request.normalized_phone, request.amount, request.account_reference,
        )
        response = await self._post_with_bearer(
            self.gateway.push_url, request.to_payload(), timeout=self.timeouts.push, context="PAY",
        )
        body = self._json_body(response)

        if not response.is_success:
            logger.error("[PAY] M-Pesa API error: status=%s body=%s", response.status_code, body)
            raise GatewayError(
                gateway_error_message(body, response.reason_phrase or "M-Pesa API error"),
                status_code=response.status_code,
                details=body if isinstance(body, dict) else {"body": body},
            )

        ack = normalize_push_response(body)
        logger.info(
            "[PAY] STK push queued checkout=%s merchant=%s",
            ack.checkout_request_id, ack.merchant_request_id,
        )
        return ack

    # ------------------------------------------------------------------
    # STK push query
    # ------------------------------------------------------------------

    async def query_status(self, query: StatusQuery) -> Dict[str, Any]:
        logger.info("[STATUS] Querying checkout=%s", query.checkout_request_id)
        response = await self._post_with_bearer(
            self.gateway.query_url, query.to_payload(), timeout=self.timeouts.query, context="STATUS",
        )
        body = self._json_body(response)

        if not response.is_success:
            logger.warning("[STATUS] Query failed: status=%s body=%s", response.status_code, body)
            raise GatewayError(
                gateway_error_message(body, response.reason_phrase or "M-Pesa API error"),
                status_code=response.status_code,
                details=body if isinstance(body, dict) else {"body": body},
            )
        return body if isinstance(body, dict) else {"raw": body}
