from __future__ import annotations

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for every error the relay reports to its callers."""

    http_status: int = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(RelayError):
    """Bad caller input. Always reported synchronously, never retried."""

    http_status = 400


class AuthError(RelayError):
    """The gateway refused or failed to issue an access token."""

    http_status = 500


class GatewayError(RelayError):
    """
    Push or status query rejected by the gateway, or the gateway was unreachable.

    ``status_code`` is the gateway's HTTP status when it answered, ``None`` when
    no response was received.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status_code = status_code

    @property
    def http_status(self) -> int:  # type: ignore[override]
        return 500 if self.status_code is None else 502


class ForwardError(RelayError):
    """The wallet service could not be reached. Only ever logged."""
