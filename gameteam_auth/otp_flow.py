"""
Phone verification flow.

    PHONE --request_code--> OTP --verify_code--> DONE
                             |
                             +--(requiresProfile)--> PROFILE --complete_profile--> DONE

``reset()`` ("change number") returns to PHONE from any step but DONE.
A credential is written only when the flow reaches DONE; while in PROFILE
the verified token lives in ``OtpSession.pending_login`` and nowhere else.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .auth_api import AuthApi, VerifiedLogin
from .credentials import CredentialStore
from .errors import OtpStepError, ValidationError
from .session_events import SessionBroadcaster

logger = logging.getLogger("gameteam.otp")

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{7,14}$")
CODE_PATTERN = re.compile(r"^\d{4,8}$")
NAME_MIN_LENGTH = 2


class OtpStep(str, Enum):
    PHONE = "phone"
    OTP = "otp"
    PROFILE = "profile"
    DONE = "done"


@dataclass
class OtpSession:
    phone: str = ""
    step: OtpStep = OtpStep.PHONE
    pending_login: Optional[VerifiedLogin] = None


def normalize_phone(phone: str) -> str:
    cleaned = re.sub(r"[\s\-().]", "", phone or "")
    if not PHONE_PATTERN.match(cleaned):
        raise ValidationError("Please enter a valid phone number.", field="phone")
    return cleaned


class OtpAuthStateMachine:
    def __init__(self, auth_api: AuthApi, store: CredentialStore, broadcaster: SessionBroadcaster) -> None:
        self._auth_api = auth_api
        self._store = store
        self._broadcaster = broadcaster
        self.session = OtpSession()

    @property
    def step(self) -> OtpStep:
        return self.session.step

    @property
    def phone(self) -> str:
        return self.session.phone

    @property
    def requires_profile(self) -> bool:
        return self.session.step is OtpStep.PROFILE

    @property
    def is_done(self) -> bool:
        return self.session.step is OtpStep.DONE

    def _require(self, operation: str, *allowed: OtpStep) -> None:
        if self.session.step not in allowed:
            raise OtpStepError(operation, self.session.step.value)

    async def request_code(self, phone: str) -> None:
        """Send (or resend, from OTP) a code to ``phone``."""
        self._require("request_code", OtpStep.PHONE, OtpStep.OTP)
        normalized = normalize_phone(phone)
        resend = self.session.step is OtpStep.OTP
        await self._auth_api.request_otp(normalized)
        self.session.phone = normalized
        self.session.step = OtpStep.OTP
        logger.info("otp_code_requested resend=%s", resend)

    async def verify_code(self, code: str) -> VerifiedLogin:
        self._require("verify_code", OtpStep.OTP)
        code = (code or "").strip()
        if not CODE_PATTERN.match(code):
            raise ValidationError("Please enter the code you received.", field="code")

        # InvalidCredentials / CodeExpired / RateLimited leave the step at OTP
        login = await self._auth_api.verify_otp(self.session.phone, code)

        if login.requires_profile:
            self.session.pending_login = login
            self.session.step = OtpStep.PROFILE
            logger.info("otp_verified user_id=%s next=profile", login.user_id)
            return login

        self._finalize(login, login.identity())
        logger.info("otp_verified user_id=%s next=done", login.user_id)
        return login

    async def complete_profile(self, name: str, area: str) -> None:
        self._require("complete_profile", OtpStep.PROFILE)
        name = (name or "").strip()
        area = (area or "").strip()
        if len(name) < NAME_MIN_LENGTH:
            raise ValidationError(f"Name must be at least {NAME_MIN_LENGTH} characters", field="name")
        if not area:
            raise ValidationError("Area is required", field="area")

        login = self.session.pending_login
        await self._auth_api.update_profile(login.access_token, name, area)
        self._finalize(login, login.identity(name=name, area=area))
        logger.info("otp_profile_completed user_id=%s", login.user_id)

    def reset(self) -> None:
        self._require("reset", OtpStep.PHONE, OtpStep.OTP, OtpStep.PROFILE)
        self.session = OtpSession()

    def _finalize(self, login: VerifiedLogin, user: dict) -> None:
        self._store.write(login.access_token, user)
        self.session.pending_login = None
        self.session.step = OtpStep.DONE
        self._broadcaster.notify()
