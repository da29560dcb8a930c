"""
Remote endpoints, storage keys and shared enums.

Paths match the backend `/v2/mvp/` routes.
"""

from enum import Enum


class AuthEndpoints:
    REQUEST_OTP = "/v2/mvp/auth/otp/request"
    VERIFY_OTP = "/v2/mvp/auth/otp/verify"
    UPDATE_PROFILE = "/v2/mvp/auth/profile"
    REFRESH_TOKEN = "/v2/mvp/auth/refresh-token"


class MatchEndpoints:
    MATCHES = "/v2/mvp/matches"

    @staticmethod
    def respond(match_id: str) -> str:
        return f"/v2/mvp/matches/{match_id}/respond"

    @staticmethod
    def emergency_request(match_id: str) -> str:
        return f"/v2/mvp/matches/{match_id}/emergency/request"


class StorageKeys:
    """Key suffixes; the configured storage prefix is prepended."""
    AUTH_TOKEN = "auth_token"
    USER = "user"
    PENDING_ACTION = "pending_action"
    # Written by older clients; still removed on logout
    LEGACY_REFRESH_TOKEN = "refresh_token"


class PendingActionKind(str, Enum):
    CONFIRM_PLAY = "CONFIRM_PLAY"
    DECLINE_PLAY = "DECLINE_PLAY"
    REQUEST_EMERGENCY = "REQUEST_EMERGENCY"
    CREATE_MATCH = "CREATE_MATCH"


class MatchResponse(str, Enum):
    YES = "YES"
    NO = "NO"


# Payload field every match-scoped pending action is keyed by
MATCH_ID_FIELD = "matchId"
MATCH_DATA_FIELD = "matchData"
