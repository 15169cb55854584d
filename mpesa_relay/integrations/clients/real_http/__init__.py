"""
Real HTTP integration clients.

These clients talk to real external systems:
- Safaricom Daraja (OAuth, STK push, STK push query)
- the downstream wallet service that receives relayed callbacks

Important:
- Must implement the same interfaces as the mock clients
- Must return data shaped according to mpesa_relay/integrations/contracts/*

Switching:
The selection of mock vs real clients happens in mpesa_relay/api/main.py only.
"""

from .daraja import DarajaClient
from .wallet import WalletRelayClient

__all__ = ["DarajaClient", "WalletRelayClient"]
