"""
Credential custody.

The store is the only owner of the persisted credential keys. Writes and
clears always cover every key, so readers never observe a token without an
identity or the reverse.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .endpoints import StorageKeys
from .logging_setup import mask_token
from .storage import KeyValueStorage

logger = logging.getLogger("gameteam.credentials")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credential:
    access_token: str
    refresh_token_present: bool
    user: Dict[str, Any] = field(default_factory=dict)
    issued_at: Optional[datetime] = None

    @property
    def user_id(self) -> Any:
        return self.user.get("id")


class CredentialStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        prefix: str = "gameteam_",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self.token_key = prefix + StorageKeys.AUTH_TOKEN
        self.user_key = prefix + StorageKeys.USER
        self.legacy_refresh_key = prefix + StorageKeys.LEGACY_REFRESH_TOKEN
        # Bumped by every write/clear; lets a late refresh detect it was overtaken
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def keys(self) -> tuple:
        return (self.token_key, self.user_key, self.legacy_refresh_key)

    def read(self) -> Optional[Credential]:
        token = self._storage.get(self.token_key)
        if not token:
            return None
        envelope = self._read_envelope()
        return Credential(
            access_token=token,
            refresh_token_present=bool(envelope.get("refreshTokenPresent", False)),
            user=self._identity(envelope),
            issued_at=self._issued_at(envelope),
        )

    def _read_envelope(self) -> Dict[str, Any]:
        raw = self._storage.get(self.user_key)
        if not raw:
            return {}
        try:
            envelope = json.loads(raw)
        except ValueError:
            logger.warning("credential_user_corrupt key=%s", self.user_key)
            return {}
        return envelope if isinstance(envelope, dict) else {}

    @staticmethod
    def _identity(envelope: Dict[str, Any]) -> Dict[str, Any]:
        identity = envelope.get("identity")
        return dict(identity) if isinstance(identity, dict) else {}

    def _issued_at(self, envelope: Dict[str, Any]) -> Optional[datetime]:
        raw = envelope.get("issuedAt")
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            logger.warning("credential_issued_at_corrupt key=%s", self.user_key)
            return None

    def write(
        self,
        access_token: str,
        user: Optional[Dict[str, Any]],
        *,
        refresh_token_present: bool = True,
        expected_generation: Optional[int] = None,
    ) -> bool:
        """
        Persist a full credential, replacing whatever was there.

        Returns False, leaving storage untouched, when ``expected_generation``
        is given and another write or clear happened since it was read.
        """
        if not access_token:
            raise ValueError("access_token is required")
        if expected_generation is not None and expected_generation != self._generation:
            logger.info(
                "credential_write_skipped expected=%s current=%s",
                expected_generation, self._generation,
            )
            return False
        envelope = {
            "identity": dict(user or {}),
            "issuedAt": self._clock().isoformat(),
            "refreshTokenPresent": refresh_token_present,
        }
        self._storage.set(self.user_key, json.dumps(envelope))
        self._storage.set(self.token_key, access_token)
        self._generation += 1
        logger.info(
            "credential_write user_id=%s token=%s generation=%s",
            envelope["identity"].get("id"), mask_token(access_token), self._generation,
        )
        return True

    def clear(self, *, expected_generation: Optional[int] = None) -> bool:
        if expected_generation is not None and expected_generation != self._generation:
            logger.info(
                "credential_clear_skipped expected=%s current=%s",
                expected_generation, self._generation,
            )
            return False
        # Token first so a concurrent reader never sees a token without its identity
        self._storage.delete(self.token_key)
        self._storage.delete(self.user_key, self.legacy_refresh_key)
        self._generation += 1
        logger.info("credential_clear generation=%s", self._generation)
        return True

    def is_authenticated(self) -> bool:
        return bool(self._storage.get(self.token_key))

    def stored_identity(self) -> Dict[str, Any]:
        """Identity on record, whether or not its token is still there."""
        return self._identity(self._read_envelope())

    def has_orphan_identity(self) -> bool:
        """An identity survived without its token (e.g. token evicted elsewhere)."""
        return not self.is_authenticated() and bool(self.stored_identity())
