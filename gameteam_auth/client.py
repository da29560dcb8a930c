"""
Composition root.

Builds every engine component from ``Settings`` and wires them together:

    storage -> CredentialStore / PendingActionStore
    RequestGateway <-> RefreshCoordinator (refresh goes through the gateway)
    SessionBroadcaster (+ RedisSessionRelay when storage is shared in Redis)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from .auth_api import AuthApi
from .config import Settings, get_settings
from .credentials import CredentialStore
from .gateway import RequestGateway
from .match_api import MatchApi
from .otp_flow import OtpAuthStateMachine
from .pending_actions import PendingActionStore, build_dispatch_table
from .refresh import RefreshCoordinator
from .session import PendingActionResumer, SessionManager
from .session_events import RedisSessionRelay, SessionBroadcaster
from .storage import KeyValueStorage, build_storage

logger = logging.getLogger("gameteam.client")


class GameTeamClient:
    def __init__(self, settings: Optional[Settings] = None, storage: Optional[KeyValueStorage] = None) -> None:
        self.settings = settings or get_settings()
        self.storage = storage if storage is not None else build_storage(self.settings.storage_backend)
        prefix = self.settings.storage_prefix

        self.broadcaster = SessionBroadcaster()
        self.credentials = CredentialStore(self.storage, prefix=prefix)
        self.pending = PendingActionStore(
            self.storage,
            prefix=prefix,
            ttl=timedelta(seconds=self.settings.pending_action_ttl_s),
        )
        self.gateway = RequestGateway(
            self.settings.api_base_url,
            self.credentials,
            timeout_s=self.settings.http_timeout_s,
        )
        self.auth_api = AuthApi(self.gateway)
        self.coordinator = RefreshCoordinator(self.credentials, self.broadcaster, self.auth_api.refresh_token)
        self.gateway.bind(self.coordinator)
        self.matches = MatchApi(self.gateway)
        self.session = SessionManager(self.credentials, self.pending, self.broadcaster, self.coordinator)
        self.dispatch_table = build_dispatch_table(self.matches)
        self.relay: Optional[RedisSessionRelay] = None
        if self.settings.storage_backend == "redis":
            self.relay = RedisSessionRelay(self.broadcaster, self.settings.auth_channel)

    def otp_flow(self) -> OtpAuthStateMachine:
        """A fresh phone verification flow."""
        return OtpAuthStateMachine(self.auth_api, self.credentials, self.broadcaster)

    def resumer(self, on_result=None, on_error=None) -> PendingActionResumer:
        return PendingActionResumer(self.session, self.dispatch_table, on_result=on_result, on_error=on_error)

    async def start(self) -> None:
        if self.relay is not None:
            await self.relay.start()
        logger.info(
            "client_start api=%s storage=%s relay=%s",
            self.settings.api_base_url, self.settings.storage_backend, self.relay is not None,
        )

    async def close(self) -> None:
        if self.relay is not None:
            await self.relay.stop()
        await self.gateway.close()
        logger.info("client_closed")

    async def __aenter__(self) -> "GameTeamClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
