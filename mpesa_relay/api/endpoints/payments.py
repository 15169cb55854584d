from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import pydantic
from pydantic import BaseModel
import logging

from mpesa_relay.api.dependencies import get_builder, get_gateway, get_reconciler, rate_limit
from mpesa_relay.integrations.contracts.interfaces import PushPaymentGateway
from mpesa_relay.integrations.errors import AuthError
from mpesa_relay.integrations.policy.push_request_builder import PushRequestBuilder
from mpesa_relay.integrations.policy.status_reconciler import StatusReconciler

logger = logging.getLogger(__name__)

api = APIRouter()
payments_api = api


class PayRequest(BaseModel):
    phone: Optional[Any] = None
    amount: Optional[Any] = None
    description: Optional[str] = None
    currency: str = "KES"


_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _invalid_body(message: str) -> RequestValidationError:
    return RequestValidationError([{"loc": ("body",), "msg": message, "type": "value_error"}])


async def pay_request(request: Request) -> PayRequest:
    """/pay body from JSON or an HTML form post."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in _FORM_TYPES:
        data: Any = dict(await request.form())
    else:
        try:
            data = await request.json()
        except ValueError as exc:
            raise _invalid_body("Body must be JSON or form-encoded") from exc
    if not isinstance(data, dict):
        raise _invalid_body("Body must be an object")
    try:
        return PayRequest.model_validate(data)
    except pydantic.ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


@api.post("/pay", tags=["Payments"], dependencies=[Depends(rate_limit)])
async def pay(
    body: PayRequest = Depends(pay_request),
    builder: PushRequestBuilder = Depends(get_builder),
    gateway: PushPaymentGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    """
    Initiate an STK push. Success only means the prompt was queued; the
    outcome arrives later on /callback.
    """
    logger.info("[PAY] Payment request received amount=%s currency=%s", body.amount, body.currency)
    request = builder.build(body.phone, body.amount, body.description)
    ack = await gateway.initiate_push(request)

    return {
        "success": True,
        "message": "STK Push initiated successfully",
        "CheckoutRequestID": ack.checkout_request_id,
        "MerchantRequestID": ack.merchant_request_id,
        "data": ack.raw,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@api.get("/status/{checkout_id}", tags=["Payments"])
async def payment_status(
    checkout_id: str,
    reconciler: StatusReconciler = Depends(get_reconciler),
) -> Dict[str, Any]:
    """Proxy an STK push query. Advisory: the callback is the source of truth."""
    return await reconciler.reconcile(checkout_id)


@api.get("/token", tags=["Debug"])
async def token(gateway: PushPaymentGateway = Depends(get_gateway)):
    try:
        credential = await gateway.get_credential()
    except AuthError:
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to get token"})
    return {
        "access_token": credential.value,
        "expires_in": credential.lifetime_seconds,
        "token_type": "Bearer",
    }
