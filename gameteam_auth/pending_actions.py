"""
Deferred ("act now, authenticate later") actions.

A guest's intent is captured with an already validated payload, kept for a
limited time, and replayed once after login. Only one intent is kept: a new
capture replaces the previous one.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .endpoints import MATCH_DATA_FIELD, MATCH_ID_FIELD, MatchResponse, PendingActionKind, StorageKeys
from .errors import ValidationError
from .match_api import MatchApi
from .storage import KeyValueStorage

logger = logging.getLogger("gameteam.pending")

DEFAULT_TTL = timedelta(minutes=10)

DispatchTable = Mapping[PendingActionKind, Callable[[Dict[str, Any]], Awaitable[Any]]]

_REQUIRED_FIELD = {
    PendingActionKind.CONFIRM_PLAY: MATCH_ID_FIELD,
    PendingActionKind.DECLINE_PLAY: MATCH_ID_FIELD,
    PendingActionKind.REQUEST_EMERGENCY: MATCH_ID_FIELD,
    PendingActionKind.CREATE_MATCH: MATCH_DATA_FIELD,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PendingAction:
    kind: PendingActionKind
    payload: Dict[str, Any]
    saved_at: datetime

    @property
    def match_id(self) -> Optional[str]:
        return self.payload.get(MATCH_ID_FIELD)

    def to_json(self) -> str:
        return json.dumps({
            "kind": self.kind.value,
            "payload": self.payload,
            "savedAt": self.saved_at.isoformat(),
        })

    @classmethod
    def from_json(cls, raw: str) -> "PendingAction":
        data = json.loads(raw)
        saved_at = datetime.fromisoformat(data["savedAt"])
        if saved_at.tzinfo is None:
            raise ValueError(f"savedAt has no timezone: {data['savedAt']}")
        return cls(
            kind=PendingActionKind(data["kind"]),
            payload=dict(data.get("payload") or {}),
            saved_at=saved_at,
        )


class PendingActionStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        prefix: str = "gameteam_",
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self.key = prefix + StorageKeys.PENDING_ACTION
        self.ttl = ttl
        self._clock = clock

    def capture(self, kind: PendingActionKind, payload: Dict[str, Any]) -> PendingAction:
        kind = PendingActionKind(kind)
        field = _REQUIRED_FIELD[kind]
        if not payload or not payload.get(field):
            raise ValidationError(f"{kind.value} requires '{field}' in its payload", field=field)
        action = PendingAction(kind=kind, payload=dict(payload), saved_at=self._clock())
        self._storage.set(self.key, action.to_json())
        logger.info("pending_capture kind=%s match_id=%s", kind.value, action.match_id)
        return action

    def peek(self) -> Optional[PendingAction]:
        raw = self._storage.get(self.key)
        if not raw:
            return None
        action = self._decode(raw)
        if action is None:
            self.clear()
        return action

    def _decode(self, raw: str) -> Optional[PendingAction]:
        """Parse a stored record. None when it is corrupt or past its TTL."""
        try:
            action = PendingAction.from_json(raw)
            age = self._clock() - action.saved_at
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("pending_corrupt error=%s", repr(e))
            return None
        if age >= self.ttl:
            logger.info("pending_expired kind=%s age_s=%s", action.kind.value, int(age.total_seconds()))
            return None
        return action

    def pending_for(self, match_id: str) -> Optional[PendingAction]:
        action = self.peek()
        if action is None or action.match_id != match_id:
            return None
        return action

    def clear(self) -> None:
        self._storage.delete(self.key)

    async def consume(self, dispatch_table: DispatchTable) -> Any:
        """
        Replay the stored action at most once.

        The entry is taken out of storage atomically before the handler runs,
        so only one of several consumers sharing a storage gets it. A failing
        handler is not retried; a capture made during the replay survives.
        Handler errors propagate to the caller.
        """
        raw = self._storage.take(self.key)
        if not raw:
            return None
        action = self._decode(raw)
        if action is None:
            return None
        handler = dispatch_table.get(action.kind)
        if handler is None:
            logger.warning("pending_no_handler kind=%s", action.kind.value)
            return None
        logger.info("pending_replay kind=%s match_id=%s", action.kind.value, action.match_id)
        return await handler(action.payload)


def build_dispatch_table(match_api: MatchApi) -> Dict[PendingActionKind, Callable[[Dict[str, Any]], Awaitable[Any]]]:
    async def confirm(payload: Dict[str, Any]) -> Any:
        return await match_api.respond_to_match(payload[MATCH_ID_FIELD], MatchResponse.YES)

    async def decline(payload: Dict[str, Any]) -> Any:
        return await match_api.respond_to_match(payload[MATCH_ID_FIELD], MatchResponse.NO)

    async def emergency(payload: Dict[str, Any]) -> Any:
        return await match_api.request_emergency_slot(payload[MATCH_ID_FIELD])

    async def create(payload: Dict[str, Any]) -> Any:
        return await match_api.create_match(payload[MATCH_DATA_FIELD])

    return {
        PendingActionKind.CONFIRM_PLAY: confirm,
        PendingActionKind.DECLINE_PLAY: decline,
        PendingActionKind.REQUEST_EMERGENCY: emergency,
        PendingActionKind.CREATE_MATCH: create,
    }
