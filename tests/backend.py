"""In-process fake GameTeam backend served with aiohttp's TestServer."""

import asyncio
import contextlib

from aiohttp import web
from aiohttp.test_utils import TestServer

UNAUTHORIZED = {"code": "MVP-AUTH-011", "title": "Unauthorized", "status": 401, "detail": "Token expired"}


class FakeBackend:
    def __init__(self, valid_token: str = "fresh", expected_rejections: int = 0):
        self.valid_token = valid_token
        self.expected_rejections = expected_rejections
        self.all_rejected = asyncio.Event()
        self.refresh_status = 200
        self.refresh_calls = 0
        self.rejected = 0
        self.seen_tokens = []
        self.otp_status = 204
        self.otp_problem = None
        self.verify_payload = {"accessToken": "otp-token", "userId": 7, "phoneNumber": "+919812345678", "requiresProfile": False}
        self.requests = []

        self.app = web.Application()
        self.app.router.add_post("/v2/mvp/auth/refresh-token", self.refresh)
        self.app.router.add_post("/v2/mvp/auth/otp/request", self.otp_request)
        self.app.router.add_post("/v2/mvp/auth/otp/verify", self.otp_verify)
        self.app.router.add_post("/v2/mvp/auth/profile", self.profile)
        self.app.router.add_post("/v2/mvp/matches/{match_id}/respond", self.protected)
        self.app.router.add_post("/v2/mvp/matches/{match_id}/emergency/request", self.protected)
        self.app.router.add_post("/v2/mvp/matches", self.protected)
        self.app.router.add_get("/protected", self.protected)
        self.app.router.add_get("/always-401", self.always_unauthorized)
        self.app.router.add_delete("/empty", self.empty)
        self.app.router.add_get("/text", self.text)
        self.app.router.add_get("/problem", self.problem)
        self.app.router.add_get("/echo", self.echo)

    def _record(self, request, body=None):
        self.requests.append({
            "method": request.method,
            "path": request.path,
            "authorization": request.headers.get("Authorization"),
            "body": body,
        })

    async def refresh(self, request):
        self.refresh_calls += 1
        self._record(request)
        if self.expected_rejections:
            # Hold the refresh until every concurrent caller has been rejected
            await asyncio.wait_for(self.all_rejected.wait(), timeout=5)
        if self.refresh_status != 200:
            return web.json_response(UNAUTHORIZED, status=self.refresh_status)
        return web.json_response({"accessToken": self.valid_token, "user": {"id": 7, "phone": "+919812345678"}})

    async def protected(self, request):
        body = await request.json() if request.can_read_body else None
        self._record(request, body)
        auth = request.headers.get("Authorization")
        self.seen_tokens.append(auth)
        if auth == f"Bearer {self.valid_token}":
            return web.json_response({"ok": True, "path": request.path, "body": body})
        self.rejected += 1
        if self.expected_rejections and self.rejected >= self.expected_rejections:
            self.all_rejected.set()
        return web.json_response(UNAUTHORIZED, status=401)

    async def always_unauthorized(self, request):
        self._record(request)
        self.seen_tokens.append(request.headers.get("Authorization"))
        return web.json_response(UNAUTHORIZED, status=401)

    async def otp_request(self, request):
        self._record(request, await request.json())
        if self.otp_status != 204:
            return web.json_response(self.otp_problem or {}, status=self.otp_status)
        return web.Response(status=204)

    async def otp_verify(self, request):
        body = await request.json()
        self._record(request, body)
        if body.get("otpCode") != "123456":
            return web.json_response(
                {"code": "MVP-AUTH-001", "title": "Invalid OTP", "status": 400, "detail": "Incorrect code"},
                status=400,
            )
        return web.json_response(self.verify_payload)

    async def profile(self, request):
        body = await request.json()
        self._record(request, body)
        if request.headers.get("Authorization") != f"Bearer {self.verify_payload['accessToken']}":
            return web.json_response(UNAUTHORIZED, status=401)
        return web.json_response({"id": 7, **body})

    async def empty(self, request):
        self._record(request)
        return web.Response(status=204)

    async def text(self, request):
        return web.Response(text="pong")

    async def problem(self, request):
        return web.json_response(
            {"code": "MVP-MATCH-002", "title": "Match full", "status": 409, "detail": "No slots left"},
            status=409,
        )

    async def echo(self, request):
        return web.json_response({"query": dict(request.query), "authorization": request.headers.get("Authorization")})


@contextlib.asynccontextmanager
async def serve(backend: FakeBackend):
    server = TestServer(backend.app)
    await server.start_server()
    try:
        yield str(server.make_url("/"))
    finally:
        await server.close()
