"""
Shared bearer credential for the Daraja API.

One cache instance is owned by the gateway client. Refreshes are
single-flight: while a fetch is in progress every caller awaits that same
fetch instead of starting its own.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Tuple

from mpesa_relay.integrations.contracts.interfaces import Credential
from mpesa_relay.integrations.errors import AuthError

logger = logging.getLogger(__name__)

TokenFetcher = Callable[[], Awaitable[Tuple[str, int]]]


class CredentialCache:
    def __init__(
        self,
        fetch: TokenFetcher,
        safety_margin_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._safety_margin = safety_margin_seconds
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._refresh_task: Optional[asyncio.Future] = None

    @property
    def current(self) -> Optional[Credential]:
        """The cached credential if it is still valid, without refreshing."""
        credential = self._credential
        if credential is not None and credential.is_valid(self._clock()):
            return credential
        return None

    async def get_credential(self) -> Credential:
        credential = self.current
        if credential is not None:
            logger.debug("[AUTH] Using cached token")
            return credential

        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._refresh())
        # shield: a cancelled waiter must not cancel the fetch others share
        return await asyncio.shield(self._refresh_task)

    def invalidate(self, stale: Optional[Credential] = None) -> None:
        """
        Drop the cached credential. With ``stale`` given, only drop it if it is
        still the cached one, so a concurrent refresh is not thrown away.
        """
        if stale is None or self._credential is stale:
            self._credential = None

    async def _refresh(self) -> Credential:
        try:
            started = self._clock()
            try:
                token, lifetime = await self._fetch()
            except AuthError:
                raise
            except Exception as exc:
                logger.error("[AUTH] Access token error: %s", exc)
                raise AuthError("Failed to get access token", details={"reason": str(exc)}) from exc

            if lifetime <= 0:
                raise AuthError("Failed to get access token", details={"reason": f"unusable lifetime {lifetime}"})
            # a short-lived token keeps at least half its lifetime
            usable = lifetime - min(self._safety_margin, lifetime / 2)
            credential = Credential(value=token, expires_at=started + usable, lifetime_seconds=lifetime)
            self._credential = credential
            logger.info("[AUTH] New access token generated (lifetime=%ss)", lifetime)
            return credential
        finally:
            self._refresh_task = None
