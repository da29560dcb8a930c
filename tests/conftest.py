"""Shared fixtures for the session engine tests."""

from datetime import datetime, timedelta, timezone

import pytest

from gameteam_auth.credentials import CredentialStore
from gameteam_auth.pending_actions import PendingActionStore
from gameteam_auth.session import SessionManager
from gameteam_auth.session_events import SessionBroadcaster
from gameteam_auth.storage import MemoryStorage


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class NotificationCounter:
    def __init__(self):
        self.count = 0

    def __call__(self) -> None:
        self.count += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, clock):
    return CredentialStore(storage, clock=clock)


@pytest.fixture
def broadcaster():
    return SessionBroadcaster()


@pytest.fixture
def notifications(broadcaster):
    counter = NotificationCounter()
    broadcaster.subscribe(counter)
    return counter


@pytest.fixture
def pending_store(storage, clock):
    return PendingActionStore(storage, clock=clock)


@pytest.fixture
def session(store, pending_store, broadcaster):
    return SessionManager(store, pending_store, broadcaster)
