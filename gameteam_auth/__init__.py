"""
Session and credential lifecycle engine for the GameTeam client.
"""

from .client import GameTeamClient
from .credentials import Credential, CredentialStore
from .endpoints import MatchResponse, PendingActionKind
from .errors import (
    CodeExpiredError,
    GameTeamError,
    HttpError,
    InvalidCredentialsError,
    NetworkError,
    OtpStepError,
    RateLimitedError,
    SessionExpiredError,
    ValidationError,
    friendly_message,
)
from .gateway import ApiRequest, RequestGateway
from .otp_flow import OtpAuthStateMachine, OtpSession, OtpStep
from .pending_actions import PendingAction, PendingActionStore, build_dispatch_table
from .refresh import RefreshCoordinator
from .session import ActionResult, PendingActionResumer, SessionManager
from .session_events import RedisSessionRelay, SessionBroadcaster

__all__ = [
    "ActionResult",
    "ApiRequest",
    "CodeExpiredError",
    "Credential",
    "CredentialStore",
    "GameTeamClient",
    "GameTeamError",
    "HttpError",
    "InvalidCredentialsError",
    "MatchResponse",
    "NetworkError",
    "OtpAuthStateMachine",
    "OtpSession",
    "OtpStep",
    "OtpStepError",
    "PendingAction",
    "PendingActionKind",
    "PendingActionResumer",
    "PendingActionStore",
    "RateLimitedError",
    "RedisSessionRelay",
    "RefreshCoordinator",
    "RequestGateway",
    "SessionBroadcaster",
    "SessionExpiredError",
    "SessionManager",
    "ValidationError",
    "build_dispatch_table",
    "friendly_message",
]
