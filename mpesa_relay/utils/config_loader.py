"""
Configuration loader for the relay (gateway endpoints, timeouts, limits).

Tunables live in ``config/relay_config.yml``; secrets and per-deployment
values come from the environment and override the file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "relay_config.yml"


class GatewayConfig(BaseModel):
    """Safaricom Daraja endpoints and credentials"""

    base_url: str = "https://sandbox.safaricom.co.ke"
    auth_path: str = "/oauth/v1/generate?grant_type=client_credentials"
    push_path: str = "/mpesa/stkpush/v1/processrequest"
    query_path: str = "/mpesa/stkpushquery/v1/query"
    consumer_key: str = ""
    consumer_secret: str = ""
    short_code: str = ""
    pass_key: str = ""
    callback_url: str = ""
    transaction_type: str = "CustomerPayBillOnline"
    utc_offset_hours: float = Field(default=3.0, ge=-12.0, le=14.0)

    @property
    def auth_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.auth_path}"

    @property
    def push_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.push_path}"

    @property
    def query_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.query_path}"


class TimeoutConfig(BaseModel):
    """Per-call budgets in seconds"""

    auth: float = Field(default=10.0, gt=0)
    push: float = Field(default=30.0, gt=0)
    query: float = Field(default=15.0, gt=0)
    forward: float = Field(default=10.0, gt=0)


class CredentialConfig(BaseModel):
    default_lifetime_seconds: int = Field(default=3599, ge=1)
    safety_margin_seconds: int = Field(default=10, ge=0)


class ValidationConfig(BaseModel):
    phone_country_code: str = "254"
    phone_pattern: str = r"^254[17]\d{8}$"
    account_reference_max_length: int = Field(default=12, ge=1)
    transaction_description_max_length: int = Field(default=13, ge=1)
    default_description: str = "Payment"


class WalletConfig(BaseModel):
    """Downstream wallet service that receives relayed callbacks"""

    base_url: str = ""
    callback_path: str = "/mpesa/callback"
    token: str = ""

    @property
    def callback_url(self) -> str:
        if not self.base_url:
            return ""
        return f"{self.base_url.rstrip('/')}{self.callback_path}"


class RateLimitConfig(BaseModel):
    """Inbound /pay limiting (fixed window per client)"""

    enabled: bool = True
    trust_proxy: bool = False
    max_requests: int = Field(default=200, ge=1)
    window_seconds: int = Field(default=900, ge=1)
    message: str = "Too many requests from this IP, please try again later."


class ServerConfig(BaseModel):
    service_name: str = "M-Pesa STK Push API"
    environment: str = "development"
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


class RelayConfig(BaseModel):
    integrations_mode: Literal["real", "mock"] = "real"
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    credentials: CredentialConfig = Field(default_factory=CredentialConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    def missing_required(self) -> List[str]:
        """Names of the environment values a live deployment cannot run without."""
        required = {
            "CONSUMER_KEY": self.gateway.consumer_key,
            "CONSUMER_SECRET": self.gateway.consumer_secret,
            "SHORTCODE": self.gateway.short_code,
            "PASSKEY": self.gateway.pass_key,
            "CALLBACK_URL": self.gateway.callback_url,
            "WALLET_SERVICE_URL": self.wallet.base_url,
        }
        return [key for key, value in required.items() if not value]

    def public_endpoints(self) -> Dict[str, str]:
        """Configured URLs, safe to expose on /health."""
        return {
            "gateway": self.gateway.base_url,
            "auth": self.gateway.auth_url,
            "push": self.gateway.push_url,
            "query": self.gateway.query_url,
            "callback": self.gateway.callback_url,
            "wallet": self.wallet.callback_url,
        }


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Dict[str, object]]:
    overrides: Dict[str, Dict[str, object]] = {
        "gateway": {}, "wallet": {}, "server": {}, "rate_limit": {},
    }

    def put(section: str, key: str, *names: str) -> None:
        for name in names:
            value = environ.get(name)
            if value:
                overrides[section][key] = value
                return

    put("gateway", "base_url", "MPESA_BASE_URL")
    put("gateway", "consumer_key", "CONSUMER_KEY")
    put("gateway", "consumer_secret", "CONSUMER_SECRET")
    put("gateway", "short_code", "SHORTCODE")
    put("gateway", "pass_key", "PASSKEY")
    put("gateway", "callback_url", "CALLBACK_URL")
    if "callback_url" not in overrides["gateway"] and environ.get("SERVER_URL"):
        overrides["gateway"]["callback_url"] = f"{environ['SERVER_URL'].rstrip('/')}/callback"

    put("wallet", "base_url", "WALLET_SERVICE_URL")
    put("wallet", "token", "WALLET_SERVICE_TOKEN")

    put("server", "environment", "APP_ENV", "NODE_ENV")
    put("server", "log_level", "LOG_LEVEL")
    put("rate_limit", "trust_proxy", "TRUST_PROXY")
    origins = environ.get("ALLOWED_ORIGINS")
    if origins:
        overrides["server"]["allowed_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

    mode = environ.get("INTEGRATIONS_MODE", "").strip().lower()
    if mode in {"mock", "test"}:
        overrides["integrations_mode"] = "mock"  # type: ignore[assignment]
    elif mode in {"real", "live"}:
        overrides["integrations_mode"] = "real"  # type: ignore[assignment]
    return overrides


def load_relay_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> RelayConfig:
    """
    Load and validate relay configuration.

    Args:
        config_path: YAML file to read. Defaults to config/relay_config.yml,
            which may be absent (model defaults are used then).
        environ: Environment mapping. Defaults to ``os.environ`` after
            loading ``.env``.

    Raises:
        FileNotFoundError: If an explicit config_path doesn't exist
        ValueError: If the YAML document is not a mapping
        ValidationError: If the merged config doesn't match the schema
    """
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)

    data: Dict[str, object] = {}
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Relay config file not found: {config_path}")
    path = config_path or DEFAULT_CONFIG_PATH
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Relay config must be a mapping: {path}")
    else:
        logger.info("No relay config at %s, using defaults", path)

    for section, values in _env_overrides(environ).items():
        if isinstance(values, dict):
            merged = dict(data.get(section) or {})  # type: ignore[arg-type]
            merged.update(values)
            data[section] = merged
        else:
            data[section] = values

    try:
        cfg = RelayConfig(**data)
        logger.info("Loaded relay config (mode=%s, gateway=%s)", cfg.integrations_mode, cfg.gateway.base_url)
        return cfg
    except ValidationError as e:
        logger.error("Relay config validation failed: %s", e)
        raise
