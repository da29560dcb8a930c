"""Drives the CLI commands against the in-process backend."""

import argparse

import pytest

from gameteam_auth import cli
from gameteam_auth.client import GameTeamClient
from gameteam_auth.config import Settings
from gameteam_auth.storage import MemoryStorage

from .backend import FakeBackend, serve


def make_settings(base_url):
    return Settings(
        api_base_url=base_url,
        http_timeout_s=5,
        storage_backend="memory",
        storage_prefix="gameteam_",
        pending_action_ttl_s=600,
        auth_channel="gameteam:auth-change",
        redis_host=None,
        redis_port=6379,
        redis_password=None,
        redis_tls=False,
        redis_db=0,
        redis_tls_verify=False,
        use_local_redis=False,
    )


def scripted(*answers):
    remaining = list(answers)
    return lambda _question: remaining.pop(0)


def test_main_without_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "gameteam-auth" in capsys.readouterr().out


@pytest.mark.asyncio
class TestCommands:

    async def test_guest_respond_logs_in_and_replays(self, capsys):
        backend = FakeBackend(valid_token="otp-token")
        async with serve(backend) as base_url:
            async with GameTeamClient(make_settings(base_url), MemoryStorage()) as client:
                args = argparse.Namespace(match_id="m1", answer="yes")
                code = await cli.cmd_respond(client, args, scripted("+919812345678", "123456"))

                assert code == 0
                assert client.session.is_authenticated
                assert client.pending.peek() is None

        responded = [r for r in backend.requests if r["path"] == "/v2/mvp/matches/m1/respond"]
        assert len(responded) == 1
        assert responded[0]["body"] == {"response": "YES"}
        assert responded[0]["authorization"] == "Bearer otp-token"
        assert "Pending action replayed" in capsys.readouterr().out

    async def test_wrong_code_is_reported_and_retried(self, capsys):
        backend = FakeBackend()
        async with serve(backend) as base_url:
            async with GameTeamClient(make_settings(base_url), MemoryStorage()) as client:
                args = argparse.Namespace(phone="+919812345678")
                code = await cli.cmd_login(client, args, scripted("000000", "123456"))

        assert code == 0
        out = capsys.readouterr().out
        assert "The OTP code you entered is incorrect" in out
        assert "Logged in as" in out

    async def test_whoami_and_logout(self, capsys):
        async with GameTeamClient(make_settings("http://127.0.0.1:1"), MemoryStorage()) as client:
            assert await cli.cmd_whoami(client, None, scripted()) == 1

            client.session.login("token", {"id": 7})
            assert await cli.cmd_whoami(client, None, scripted()) == 0
            assert await cli.cmd_logout(client, None, scripted()) == 0
            assert not client.session.is_authenticated

        out = capsys.readouterr().out
        assert "Not logged in" in out
        assert '{"id": 7}' in out

    async def test_pending(self, capsys):
        async with GameTeamClient(make_settings("http://127.0.0.1:1"), MemoryStorage()) as client:
            assert await cli.cmd_pending(client, None, scripted()) == 1
            client.pending.capture("REQUEST_EMERGENCY", {"matchId": "m4"})
            assert await cli.cmd_pending(client, None, scripted()) == 0

        assert '"REQUEST_EMERGENCY"' in capsys.readouterr().out
