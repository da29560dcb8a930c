"""Session facade and automatic replay of deferred actions after login."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Literal, Optional, Set

from .credentials import Credential, CredentialStore
from .endpoints import PendingActionKind
from .errors import SessionExpiredError
from .pending_actions import DispatchTable, PendingActionStore
from .refresh import RefreshCoordinator
from .session_events import SessionBroadcaster

logger = logging.getLogger("gameteam.session")

ActionStatus = Literal["DONE", "DEFERRED"]


@dataclass(frozen=True)
class ActionResult:
    """Outcome of ``execute_with_auth``. DEFERRED means: start the OTP flow."""

    status: ActionStatus
    value: Any = None

    @property
    def deferred(self) -> bool:
        return self.status == "DEFERRED"


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        pending: PendingActionStore,
        broadcaster: SessionBroadcaster,
        coordinator: Optional[RefreshCoordinator] = None,
    ) -> None:
        self.store = store
        self.pending = pending
        self.broadcaster = broadcaster
        self.coordinator = coordinator

    @property
    def is_authenticated(self) -> bool:
        return self.store.is_authenticated()

    @property
    def current_user(self) -> Optional[Dict[str, Any]]:
        credential = self.store.read()
        return credential.user if credential is not None else None

    def login(self, access_token: str, user: Dict[str, Any]) -> None:
        self.store.write(access_token, user)
        self.broadcaster.notify()

    def logout(self) -> None:
        self.store.clear()
        self.pending.clear()
        self.broadcaster.notify()
        logger.info("session_logout")

    async def restore(self) -> Optional[Credential]:
        """Bootstrap: reuse the stored credential, or try one refresh for a leftover identity."""
        credential = self.store.read()
        if credential is not None:
            return credential
        if not self.store.has_orphan_identity() or self.coordinator is None:
            return None
        logger.info("session_restore action=refresh")
        try:
            await self.coordinator.refresh()
        except SessionExpiredError:
            return None
        return self.store.read()

    async def execute_with_auth(
        self,
        action: Callable[[], Awaitable[Any]],
        kind: Optional[PendingActionKind] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        if self.is_authenticated:
            return ActionResult("DONE", await action())
        if kind is not None and payload is not None:
            self.pending.capture(kind, payload)
        return ActionResult("DEFERRED")

    async def resume_pending(self, dispatch_table: DispatchTable) -> Any:
        if not self.is_authenticated:
            return None
        return await self.pending.consume(dispatch_table)


class PendingActionResumer:
    """Replays the pending action as soon as a session change leaves us authenticated."""

    def __init__(
        self,
        session: SessionManager,
        dispatch_table: DispatchTable,
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.session = session
        self.dispatch_table = dispatch_table
        self.on_result = on_result
        self.on_error = on_error
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe = session.broadcaster.subscribe(self._on_session_change)

    def _on_session_change(self) -> None:
        if not self.session.is_authenticated:
            return
        # peek() also drops an expired entry
        if self.session.pending.peek() is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("resume_skipped reason=no_running_loop")
            return
        task = loop.create_task(self._replay())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _replay(self) -> None:
        try:
            result = await self.session.resume_pending(self.dispatch_table)
        except Exception as e:
            if self.on_error is None:
                logger.error("resume_failed error=%s", repr(e))
                return
            self.on_error(e)
            return
        if self.on_result is not None:
            self.on_result(result)

    async def drain(self) -> None:
        """Wait for replays scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def close(self) -> None:
        self._unsubscribe()
