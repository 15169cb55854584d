import logging
from typing import Any, Dict

from mpesa_relay.integrations.contracts.interfaces import PushPaymentGateway
from mpesa_relay.integrations.errors import ValidationError
from mpesa_relay.integrations.policy.push_request_builder import PushRequestBuilder

logger = logging.getLogger(__name__)


class StatusReconciler:
    """
    Re-query the gateway for a push's current state.

    Each query is signed with its own timestamp/password pair. The gateway
    body is returned unmodified; it may still say "processing" after the
    callback has already delivered the outcome, so callers treat it as advisory.
    """

    def __init__(self, gateway: PushPaymentGateway, builder: PushRequestBuilder) -> None:
        self.gateway = gateway
        self.builder = builder

    async def reconcile(self, checkout_request_id: str) -> Dict[str, Any]:
        checkout_request_id = (checkout_request_id or "").strip()
        if not checkout_request_id:
            raise ValidationError("checkoutId is required.")
        query = self.builder.build_status_query(checkout_request_id)
        return await self.gateway.query_status(query)
