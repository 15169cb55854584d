import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from mpesa_relay.api.dependencies import get_callback_relay
from mpesa_relay.integrations.policy.callback_relay import ACK, CallbackRelay

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/callback", tags=["Callback"])
async def mpesa_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    relay: CallbackRelay = Depends(get_callback_relay),
) -> Dict[str, Any]:
    """
    Daraja STK callback receiver.
    - Always answers {"ResultCode": 0, "ResultDesc": "Success"}, whatever happens inside.
    - The wallet relay runs as a background task, after the response is sent.
    """
    try:
        payload: Any = await request.json()
    except ValueError:
        logger.warning("[CALLBACK] Body is not valid JSON")
        return dict(ACK)

    logger.debug("[CALLBACK] M-Pesa callback received: %s", payload)
    return relay.handle(payload, defer=background_tasks.add_task)
