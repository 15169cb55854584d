"""
FastAPI application - Main entry point
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from mpesa_relay import __version__
from mpesa_relay.api.endpoints.callback import router as callback_router
from mpesa_relay.api.endpoints.payments import payments_api
from mpesa_relay.api.endpoints.system import router as system_router
from mpesa_relay.error_handler import ErrorHandler, install_exception_handlers
from mpesa_relay.integrations.clients.mocks.daraja import MockGatewayClient
from mpesa_relay.integrations.clients.real_http.daraja import DarajaClient
from mpesa_relay.integrations.clients.real_http.wallet import WalletRelayClient
from mpesa_relay.integrations.contracts.interfaces import PushPaymentGateway
from mpesa_relay.integrations.policy.callback_relay import CallbackRelay
from mpesa_relay.integrations.policy.push_request_builder import PushRequestBuilder
from mpesa_relay.integrations.policy.status_reconciler import StatusReconciler
from mpesa_relay.utils.config_loader import RelayConfig, load_relay_config
from mpesa_relay.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
}


def _select_gateway(config: RelayConfig, http_client: httpx.AsyncClient) -> PushPaymentGateway:
    if config.integrations_mode == "mock":
        logger.warning("[APP] INTEGRATIONS_MODE=mock: Daraja calls are simulated")
        return MockGatewayClient(token_lifetime=config.credentials.default_lifetime_seconds)
    return DarajaClient(
        config.gateway,
        timeouts=config.timeouts,
        credentials=config.credentials,
        http_client=http_client,
    )


def create_app(
    config: Optional[RelayConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    gateway: Optional[PushPaymentGateway] = None,
) -> FastAPI:
    config = config or load_relay_config()
    owns_http_client = http_client is None
    http_client = http_client or httpx.AsyncClient()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("[APP_STARTUP] %s starting (environment=%s)", config.server.service_name, config.server.environment)
        missing = config.missing_required()
        if missing and config.integrations_mode == "real":
            logger.warning("[APP_STARTUP] Missing configuration: %s", ", ".join(missing))
        yield
        logger.info("[APP_SHUTDOWN] Application shutting down...")
        await app.state.callback_relay.drain()
        if owns_http_client:
            await http_client.aclose()

    app = FastAPI(
        title=config.server.service_name,
        description="Relays M-Pesa STK push requests to Daraja and payment callbacks to the wallet service",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            '%s "%s %s" %s %.1fms',
            request.client.host if request.client else "-",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    # ========================================================================
    # DEPENDENCY INJECTION
    # ========================================================================

    gateway = gateway or _select_gateway(config, http_client)
    builder = PushRequestBuilder(config.gateway, config.validation)
    wallet = WalletRelayClient(config.wallet, timeout_seconds=config.timeouts.forward, http_client=http_client)

    app.state.config = config
    app.state.gateway = gateway
    app.state.builder = builder
    app.state.callback_relay = CallbackRelay(wallet)
    app.state.reconciler = StatusReconciler(gateway, builder)
    app.state.rate_limiter = RateLimiter(config.rate_limit.max_requests, config.rate_limit.window_seconds)
    app.state.started_at = time.monotonic()

    install_exception_handlers(app, ErrorHandler(debug=config.server.environment == "development"))

    app.include_router(payments_api)
    app.include_router(callback_router)
    app.include_router(system_router)
    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_application() -> FastAPI:
    """ASGI factory: ``uvicorn --factory mpesa_relay.api.main:get_application``."""
    _configure_logging()
    return create_app()
