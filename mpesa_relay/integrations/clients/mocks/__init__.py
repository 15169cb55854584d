"""
Mock integration clients.

These clients return fake (but realistic) Daraja responses without calling
any external API. They are used when INTEGRATIONS_MODE=mock, e.g. for local
development without sandbox credentials.

Important:
- Mock clients must follow the SAME interface as real HTTP clients.
"""

from .daraja import MockGatewayClient

__all__ = ["MockGatewayClient"]
