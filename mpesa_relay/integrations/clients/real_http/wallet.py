"""
Wallet service relay client.

Posts a relayed callback to the downstream wallet service. The call is a
single attempt: any failure surfaces as ForwardError and is only logged by
the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from mpesa_relay.integrations.errors import ForwardError
from mpesa_relay.utils.config_loader import WalletConfig

logger = logging.getLogger(__name__)


class WalletRelayClient:
    def __init__(
        self,
        wallet: WalletConfig,
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.wallet = wallet
        self.timeout_seconds = timeout_seconds
        self._http = http_client

    async def forward(self, payload: Dict[str, Any]) -> int:
        url = self.wallet.callback_url
        if not url:
            raise ForwardError("WALLET_SERVICE_URL is not configured.")

        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.wallet.token:
            headers["Authorization"] = f"Bearer {self.wallet.token}"

        try:
            if self._http is not None:
                response = await self._http.post(url, json=payload, headers=headers, timeout=self.timeout_seconds)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise ForwardError(f"Wallet service timed out after {self.timeout_seconds}s") from exc
        except httpx.RequestError as exc:
            raise ForwardError(f"Could not reach wallet service: {exc}") from exc

        if not response.is_success:
            raise ForwardError(
                f"Wallet service rejected relay with status {response.status_code}",
                details={"status": response.status_code, "body": response.text},
            )
        return response.status_code
