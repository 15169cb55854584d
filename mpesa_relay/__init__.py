"""
M-Pesa STK push relay.

Accepts payment requests, pushes them to Safaricom Daraja and relays the
asynchronous result callbacks to the downstream wallet service.
"""

__version__ = "1.0.0"
