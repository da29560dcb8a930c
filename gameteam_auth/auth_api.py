"""Remote auth contracts: refresh and the phone/OTP endpoints."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .endpoints import AuthEndpoints
from .errors import HttpError, classify_auth_error
from .gateway import RequestGateway

logger = logging.getLogger("gameteam.auth_api")


@dataclass(frozen=True)
class VerifiedLogin:
    """Result of a successful OTP verification."""

    access_token: str
    user_id: Any
    phone_number: str
    requires_profile: bool

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], phone: str) -> "VerifiedLogin":
        token = payload.get("accessToken")
        if not token:
            raise HttpError(502, payload, "Invalid OTP verification response from server")
        return cls(
            access_token=token,
            user_id=payload.get("userId"),
            phone_number=payload.get("phoneNumber") or phone,
            requires_profile=bool(payload.get("requiresProfile", False)),
        )

    def identity(self, name: Optional[str] = None, area: Optional[str] = None) -> Dict[str, Any]:
        user: Dict[str, Any] = {"id": self.user_id, "phone": self.phone_number}
        if name is not None:
            user["name"] = name
        if area is not None:
            user["area"] = area
        return user


class AuthApi:
    def __init__(self, gateway: RequestGateway) -> None:
        self._gateway = gateway

    async def refresh_token(self) -> Dict[str, Any]:
        # No body: the refresh credential is the server-held cookie
        return await self._gateway.post(AuthEndpoints.REFRESH_TOKEN, authenticated=False)

    async def request_otp(self, phone: str) -> None:
        try:
            await self._gateway.post(AuthEndpoints.REQUEST_OTP, {"phoneNumber": phone}, authenticated=False)
        except HttpError as e:
            raise classify_auth_error(e) from e
        logger.info("otp_requested phone_suffix=%s", phone[-4:])

    async def verify_otp(self, phone: str, code: str) -> VerifiedLogin:
        try:
            payload = await self._gateway.post(
                AuthEndpoints.VERIFY_OTP,
                {"phoneNumber": phone, "otpCode": code},
                authenticated=False,
            )
        except HttpError as e:
            raise classify_auth_error(e) from e
        return VerifiedLogin.from_payload(payload or {}, phone)

    async def update_profile(self, access_token: str, name: str, area: str) -> Any:
        """Finalize a new account. The token is passed explicitly: it is not persisted yet."""
        return await self._gateway.post(
            AuthEndpoints.UPDATE_PROFILE,
            {"name": name, "area": area},
            authenticated=False,
            bearer=access_token,
        )
