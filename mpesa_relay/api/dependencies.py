import logging

from fastapi import HTTPException, Request, status

from mpesa_relay.integrations.contracts.interfaces import PushPaymentGateway
from mpesa_relay.integrations.policy.callback_relay import CallbackRelay
from mpesa_relay.integrations.policy.push_request_builder import PushRequestBuilder
from mpesa_relay.integrations.policy.status_reconciler import StatusReconciler
from mpesa_relay.utils.config_loader import RelayConfig
from mpesa_relay.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def get_config(request: Request) -> RelayConfig:
    return request.app.state.config


def get_gateway(request: Request) -> PushPaymentGateway:
    return request.app.state.gateway


def get_builder(request: Request) -> PushRequestBuilder:
    return request.app.state.builder


def get_callback_relay(request: Request) -> CallbackRelay:
    return request.app.state.callback_relay


def get_reconciler(request: Request) -> StatusReconciler:
    return request.app.state.reconciler


def client_key(request: Request, trust_proxy: bool = False) -> str:
    """Rate-limit key: the socket peer, or the first X-Forwarded-For hop when a trusted proxy sets it."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit(request: Request) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    config: RelayConfig = request.app.state.config
    if not config.rate_limit.enabled:
        return

    key = client_key(request, trust_proxy=config.rate_limit.trust_proxy)
    if not limiter.allow(key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=config.rate_limit.message,
            headers={"Retry-After": str(limiter.retry_after(key))},
        )
