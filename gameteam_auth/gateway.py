"""
Outbound request gateway.

Attaches the bearer credential, classifies responses and, on an
authorization failure, refreshes the session and retries the request exactly
once.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urljoin

import aiohttp

from .credentials import CredentialStore
from .errors import HttpError, NetworkError
from .refresh import RefreshCoordinator

logger = logging.getLogger("gameteam.gateway")

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass(frozen=True)
class ApiRequest:
    method: str
    path: str
    body: Any = None
    query: Optional[Dict[str, Any]] = None
    headers: Optional[Dict[str, str]] = None
    # Public endpoints (OTP, refresh) never carry the stored token nor trigger a refresh
    authenticated: bool = True
    # Explicit token, used while a credential is not yet persisted
    bearer: Optional[str] = None


class RequestGateway:
    def __init__(
        self,
        base_url: str,
        store: CredentialStore,
        *,
        timeout_s: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self._store = store
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._session = session
        self._owns_session = session is None
        self.coordinator: Optional[RefreshCoordinator] = None

    def bind(self, coordinator: RefreshCoordinator) -> None:
        # The coordinator's refresh call itself goes through this gateway
        self.coordinator = coordinator

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # Shared cookie jar keeps the server-held refresh cookie between calls
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def send(self, request: ApiRequest, is_retry: bool = False) -> Any:
        token = request.bearer
        if token is None and request.authenticated:
            credential = self._store.read()
            token = credential.access_token if credential is not None else None

        status, payload = await self._issue(request, token)

        if status in AUTH_FAILURE_STATUSES and request.authenticated and not is_retry:
            if self.coordinator is None:
                raise HttpError(status, payload)
            logger.info(
                "auth_failure method=%s path=%s status=%s action=refresh",
                request.method, request.path, status,
            )
            # SessionExpiredError propagates from here; the store is already cleared
            await self.coordinator.refresh()
            return await self.send(request, is_retry=True)

        if not 200 <= status < 300:
            logger.error(
                "request_failed method=%s path=%s status=%s retry=%s",
                request.method, request.path, status, is_retry,
            )
            raise HttpError(status, payload)

        return payload

    async def _issue(self, request: ApiRequest, token: Optional[str]) -> Tuple[int, Any]:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if request.headers:
            headers.update(request.headers)
        url = urljoin(self.base_url, request.path.lstrip("/"))
        params = {k: str(v) for k, v in (request.query or {}).items() if v is not None}
        data = json.dumps(request.body) if request.body is not None else None

        logger.debug("request method=%s path=%s has_token=%s", request.method, request.path, bool(token))
        try:
            session = self._get_session()
            async with session.request(
                request.method,
                url,
                data=data,
                params=params or None,
                headers=headers,
                timeout=self._timeout,
            ) as response:
                status = response.status
                payload = await self._read_body(response)
        except aiohttp.ClientError as ce:
            logger.error("network_error method=%s path=%s error=%s", request.method, request.path, repr(ce))
            raise NetworkError(f"{request.method} {request.path}: {ce}") from ce
        except asyncio.TimeoutError as te:
            logger.error("network_timeout method=%s path=%s", request.method, request.path)
            raise NetworkError(f"{request.method} {request.path}: timed out") from te

        logger.debug("response method=%s path=%s status=%s", request.method, request.path, status)
        return status, payload

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        if response.status == 204:
            return None
        text = await response.text()
        if not text:
            return None
        if "json" in response.headers.get("Content-Type", ""):
            try:
                return json.loads(text)
            except ValueError:
                return text
        return text

    async def get(self, path: str, *, query: Optional[Dict[str, Any]] = None, authenticated: bool = True) -> Any:
        return await self.send(ApiRequest("GET", path, query=query, authenticated=authenticated))

    async def post(self, path: str, body: Any = None, *, authenticated: bool = True, bearer: Optional[str] = None) -> Any:
        return await self.send(ApiRequest("POST", path, body=body, authenticated=authenticated, bearer=bearer))

    async def put(self, path: str, body: Any = None, *, authenticated: bool = True) -> Any:
        return await self.send(ApiRequest("PUT", path, body=body, authenticated=authenticated))

    async def delete(self, path: str, *, authenticated: bool = True) -> Any:
        return await self.send(ApiRequest("DELETE", path, authenticated=authenticated))
