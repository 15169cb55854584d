"""
Payment contracts.

Result-code vocabulary shared by the callback relay and the status endpoint,
plus the shape of the payload forwarded to the wallet service.

Daraja codes seen in callbacks and STK query responses:
- 0     success
- 1     insufficient balance
- 1032  request cancelled by user
- 1037  no response from user (USSD timeout)
- 2001  wrong PIN
"""

from enum import Enum
from typing import Any, Dict, Optional

from .interfaces import CallbackResult


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


_RESULT_CODE_STATUS: Dict[int, PaymentStatus] = {
    0: PaymentStatus.SUCCESS,
    1: PaymentStatus.FAILED,
    17: PaymentStatus.FAILED,
    20: PaymentStatus.FAILED,
    26: PaymentStatus.FAILED,
    1032: PaymentStatus.CANCELLED,
    1037: PaymentStatus.FAILED,
    2001: PaymentStatus.FAILED,
}


def status_for_result_code(code: Optional[int]) -> PaymentStatus:
    """Map a gateway result code to an internal status. Unknown nonzero codes count as failures."""
    if code is None:
        return PaymentStatus.PENDING
    return _RESULT_CODE_STATUS.get(code, PaymentStatus.FAILED)


def build_forward_payload(result: CallbackResult, raw_payload: Any) -> Dict[str, Any]:
    """
    Payload POSTed to the wallet service.

    Metadata values are passed through untouched; ``amount`` in particular is
    never converted between units.
    """
    return {
        "checkoutRequestId": result.checkout_request_id,
        "merchantRequestId": result.merchant_request_id,
        "resultCode": result.result_code,
        "resultDescription": result.result_description,
        "status": status_for_result_code(result.result_code).value,
        "amount": result.amount,
        "receiptNumber": result.receipt_number,
        "phoneNumber": result.phone_number,
        "transactionDate": result.transaction_date,
        "raw": raw_payload,
    }
