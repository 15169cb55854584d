from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from mpesa_relay.integrations.contracts.interfaces import CallbackResult, PushPaymentAck
from mpesa_relay.integrations.errors import AuthError, GatewayError


class IntegrationResponseError(ValueError):
    def __init__(self, message: str, *, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class AccessTokenModel(BaseModel):
    access_token: str = Field(min_length=1)
    expires_in: int = Field(gt=0)


class PushResponseModel(BaseModel):
    checkout_request_id: str
    merchant_request_id: str
    response_code: str
    response_description: str
    customer_message: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


def normalize_access_token_response(raw: Any, *, default_lifetime: int) -> Tuple[str, int]:
    if not isinstance(raw, dict):
        raise AuthError("Failed to get access token", details={"reason": "token response is not an object"})
    try:
        token = _first_non_empty(raw, "access_token")
        expires_in = _first_non_empty(raw, "expires_in", default=default_lifetime)
        model = _build_model(AccessTokenModel, {"access_token": token, "expires_in": expires_in}, raw)
    except IntegrationResponseError as exc:
        raise AuthError("Failed to get access token", details={"reason": str(exc)}) from exc
    return model.access_token, model.expires_in


def normalize_push_response(raw: Any) -> PushPaymentAck:
    """
    Turn a 2xx STK push body into an ack.

    A nonzero ``ResponseCode`` is an outright rejection; zero only means the
    prompt was queued for the payer's handset.
    """
    if not isinstance(raw, dict):
        raise GatewayError("Unexpected response from M-Pesa API", status_code=200, details={"body": raw})

    response_code = str(raw.get("ResponseCode", "")).strip()
    description = str(_first_non_empty(raw, "ResponseDescription", "errorMessage", "CustomerMessage", default=""))
    if response_code != "0":
        raise GatewayError(
            description or "STK push rejected by M-Pesa",
            status_code=200,
            details=raw,
        )

    try:
        model = _build_model(
            PushResponseModel,
            {
                "checkout_request_id": str(_first_non_empty(raw, "CheckoutRequestID")),
                "merchant_request_id": str(_first_non_empty(raw, "MerchantRequestID", default="")),
                "response_code": response_code,
                "response_description": description,
                "customer_message": raw.get("CustomerMessage"),
                "raw": raw,
            },
            raw,
        )
    except IntegrationResponseError as exc:
        raise GatewayError(str(exc), status_code=200, details=raw) from exc

    return PushPaymentAck(
        checkout_request_id=model.checkout_request_id,
        merchant_request_id=model.merchant_request_id,
        response_code=model.response_code,
        response_description=model.response_description,
        customer_message=model.customer_message,
        raw=model.raw,
    )


def gateway_error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        return str(_first_non_empty(body, "errorMessage", "ResponseDescription", "ResultDesc", default=fallback))
    return fallback


def parse_callback(raw: Any) -> Optional[CallbackResult]:
    """
    Extract the STK callback envelope ``Body.stkCallback``.

    Returns None when the envelope is missing. Metadata items are only read
    for successful results; missing or malformed items are skipped.
    """
    if not isinstance(raw, dict):
        return None
    body = raw.get("Body")
    callback = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(callback, dict):
        return None

    result_code = _coerce_int(callback.get("ResultCode"))
    metadata: Dict[str, Any] = {}
    if result_code == 0:
        container = callback.get("CallbackMetadata")
        items: List[Any] = container.get("Item", []) if isinstance(container, dict) else []
        for item in items if isinstance(items, list) else []:
            if isinstance(item, dict) and item.get("Name"):
                metadata[str(item["Name"])] = item.get("Value")

    return CallbackResult(
        checkout_request_id=callback.get("CheckoutRequestID"),
        merchant_request_id=callback.get("MerchantRequestID"),
        result_code=result_code,
        result_description=callback.get("ResultDesc"),
        metadata=metadata,
    )


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _first_non_empty(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    if default is not None:
        return default
    raise IntegrationResponseError(f"Missing required field. Checked keys: {', '.join(keys)}", payload=data)


def _build_model(model_type, payload: Dict[str, Any], raw: Dict[str, Any]):
    try:
        return model_type(**payload)
    except ValidationError as exc:
        raise IntegrationResponseError(f"Response validation failed: {exc}", payload=raw) from exc
