"""Privileged match operations a guest can defer until after login."""

from typing import Any, Dict

from .endpoints import MatchEndpoints, MatchResponse
from .gateway import RequestGateway


class MatchApi:
    def __init__(self, gateway: RequestGateway) -> None:
        self._gateway = gateway

    async def respond_to_match(self, match_id: str, response: MatchResponse) -> Any:
        """Answer an invite. The server assigns TEAM or BACKUP depending on free slots."""
        return await self._gateway.post(MatchEndpoints.respond(match_id), {"response": MatchResponse(response).value})

    async def request_emergency_slot(self, match_id: str) -> Any:
        return await self._gateway.post(MatchEndpoints.emergency_request(match_id))

    async def create_match(self, match_data: Dict[str, Any]) -> Any:
        """Returns ``{matchId, teamInviteUrl, emergencyInviteUrl}``."""
        return await self._gateway.post(MatchEndpoints.MATCHES, dict(match_data))
