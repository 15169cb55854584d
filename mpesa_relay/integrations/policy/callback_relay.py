"""
Acknowledge-then-forward handling of Daraja STK callbacks.

The gateway retries aggressively on anything but a prompt success, so
``handle`` never raises and always returns the fixed acknowledgement. The
forward to the wallet service is deferred until after that acknowledgement
and is a single attempt; a lost forward is only visible in the logs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Set

from mpesa_relay.integrations.clients.real_http.wallet import WalletRelayClient
from mpesa_relay.integrations.contracts.payments import build_forward_payload, status_for_result_code
from mpesa_relay.integrations.errors import ForwardError
from mpesa_relay.integrations.policy.response_wrappers import parse_callback

logger = logging.getLogger(__name__)

ACK: Dict[str, Any] = {"ResultCode": 0, "ResultDesc": "Success"}

Defer = Callable[..., Any]


class CallbackRelay:
    def __init__(self, wallet: WalletRelayClient) -> None:
        self.wallet = wallet
        self._pending: Set[asyncio.Task] = set()

    def handle(self, raw_payload: Any, defer: Optional[Defer] = None) -> Dict[str, Any]:
        """
        Parse the callback, schedule the forward and return the acknowledgement.

        ``defer(func, payload)`` schedules ``func(payload)`` to run after the
        response is sent (FastAPI's ``BackgroundTasks.add_task`` fits). Without
        it the forward is started as an asyncio task.
        """
        try:
            result = parse_callback(raw_payload)
            if result is None:
                logger.warning("[CALLBACK] Payload has no stkCallback envelope; not forwarding: %r", raw_payload)
                return dict(ACK)

            if result.succeeded:
                logger.info(
                    "[CALLBACK] Payment successful checkout=%s receipt=%s amount=%s phone=%s date=%s",
                    result.checkout_request_id, result.receipt_number, result.amount,
                    result.phone_number, result.transaction_date,
                )
            else:
                logger.info(
                    "[CALLBACK] Payment %s checkout=%s code=%s: %s",
                    status_for_result_code(result.result_code).value.lower(),
                    result.checkout_request_id, result.result_code, result.result_description,
                )

            payload = build_forward_payload(result, raw_payload)
            (defer or self._spawn)(self.forward, payload)
        except Exception:
            logger.exception("[CALLBACK] Callback processing error")
        return dict(ACK)

    async def forward(self, payload: Dict[str, Any]) -> bool:
        """Single forward attempt. Returns False when the wallet service was not reached."""
        checkout_id = payload.get("checkoutRequestId")
        try:
            status = await self.wallet.forward(payload)
        except ForwardError as exc:
            logger.error("[FORWARD] Relay to wallet service failed checkout=%s: %s", checkout_id, exc.message)
            return False
        except Exception:
            logger.exception("[FORWARD] Unexpected error relaying checkout=%s", checkout_id)
            return False
        logger.info("[FORWARD] Relayed checkout=%s to wallet service (status=%s)", checkout_id, status)
        return True

    def _spawn(self, func: Callable[[Dict[str, Any]], Any], payload: Dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(func(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for forwards started without an external scheduler."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
