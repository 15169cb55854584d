"""
Utility modules for the relay
"""
from .config_loader import RelayConfig, load_relay_config
from .rate_limiter import RateLimiter

__all__ = [
    'RelayConfig',
    'load_relay_config',
    'RateLimiter',
]
