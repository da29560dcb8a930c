"""
Single-flight access token refresh.

Any number of callers may hit an expired token at the same moment. The first
one starts the network refresh; everyone else awaits that same task. The task
reference is dropped before waiters resume, so the next 401 after a settled
refresh always starts a new one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .credentials import CredentialStore
from .errors import SessionExpiredError
from .logging_setup import mask_token
from .session_events import SessionBroadcaster

logger = logging.getLogger("gameteam.refresh")

RefreshCall = Callable[[], Awaitable[Dict[str, Any]]]


class RefreshCoordinator:
    def __init__(
        self,
        store: CredentialStore,
        broadcaster: SessionBroadcaster,
        refresh_call: RefreshCall,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._refresh_call = refresh_call
        self._inflight: Optional[asyncio.Task] = None
        # Number of network refreshes actually issued
        self.attempts = 0

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def refresh(self) -> str:
        """Return a fresh access token or raise SessionExpiredError."""
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._run())
            self._inflight = task
            logger.info("refresh_start attempt=%s", self.attempts + 1)
        else:
            logger.debug("refresh_join")
        # A cancelled waiter must not cancel the refresh the others are waiting on
        return await asyncio.shield(task)

    async def _run(self) -> str:
        generation = self._store.generation
        self.attempts += 1
        try:
            try:
                data = await self._refresh_call()
            except Exception as e:
                raise self._expire(generation, repr(e)) from e

            token = data.get("accessToken") if isinstance(data, dict) else None
            if not token:
                raise self._expire(generation, "missing_access_token")

            user = data.get("user")
            if user is None:
                user = self._store.stored_identity()

            if self._store.write(token, user, expected_generation=generation):
                logger.info("refresh_success token=%s", mask_token(token))
                self._broadcaster.notify()
                return token

            # Someone logged in or out while the request was in flight
            current = self._store.read()
            if current is not None:
                logger.info("refresh_superseded reason=newer_credential")
                return current.access_token
            logger.info("refresh_discarded reason=logged_out")
            raise SessionExpiredError()
        finally:
            self._inflight = None

    def _expire(self, generation: int, reason: str) -> SessionExpiredError:
        logger.error("refresh_failed reason=%s", reason)
        # A logout during the refresh already cleared and notified
        if self._store.clear(expected_generation=generation):
            self._broadcaster.notify()
        return SessionExpiredError()
