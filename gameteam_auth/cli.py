"""
Command line driver for the session engine.

Useful against a local backend to walk through the OTP flow and the
deferred-action replay by hand.
"""

import argparse
import asyncio
import json
import sys
from typing import Callable, Optional

from .client import GameTeamClient
from .endpoints import MATCH_ID_FIELD, MatchResponse, PendingActionKind
from .errors import GameTeamError, friendly_message
from .logging_setup import configure_logging
from .otp_flow import OtpStep

Prompt = Callable[[str], str]


async def run_otp_flow(client: GameTeamClient, prompt: Prompt, phone: Optional[str] = None) -> None:
    """Drive the OTP flow interactively until a credential is written."""
    flow = client.otp_flow()
    while not flow.is_done:
        try:
            if flow.step is OtpStep.PHONE:
                await flow.request_code(phone or prompt("Phone number: "))
                phone = None
            elif flow.step is OtpStep.OTP:
                code = prompt("Code (empty to resend): ").strip()
                if code:
                    await flow.verify_code(code)
                else:
                    await flow.request_code(flow.phone)
            else:
                await flow.complete_profile(prompt("Name: "), prompt("Area: "))
        except GameTeamError as e:
            # Errors are shown inline; the flow stays on the same step
            print(f"✗ {friendly_message(e)}")
            phone = None


async def cmd_login(client: GameTeamClient, args, prompt: Prompt) -> int:
    resumer = client.resumer(
        on_result=lambda result: print(f"✓ Pending action replayed: {json.dumps(result)}"),
        on_error=lambda e: print(f"✗ Pending action failed: {friendly_message(e)}"),
    )
    try:
        await run_otp_flow(client, prompt, args.phone)
        await resumer.drain()
    finally:
        resumer.close()
    print(f"✓ Logged in as {client.session.current_user}")
    return 0


async def cmd_respond(client: GameTeamClient, args, prompt: Prompt) -> int:
    response = MatchResponse(args.answer.upper())
    kind = PendingActionKind.CONFIRM_PLAY if response is MatchResponse.YES else PendingActionKind.DECLINE_PLAY
    result = await client.session.execute_with_auth(
        lambda: client.matches.respond_to_match(args.match_id, response),
        kind,
        {MATCH_ID_FIELD: args.match_id},
    )
    if not result.deferred:
        print(f"✓ {json.dumps(result.value)}")
        return 0
    print("Login required, your answer will be sent right after.")
    return await cmd_login(client, argparse.Namespace(phone=None), prompt)


async def cmd_whoami(client: GameTeamClient, args, prompt: Prompt) -> int:
    credential = await client.session.restore()
    if credential is None:
        print("Not logged in")
        return 1
    print(json.dumps(credential.user))
    return 0


async def cmd_logout(client: GameTeamClient, args, prompt: Prompt) -> int:
    client.session.logout()
    print("✓ Logged out")
    return 0


async def cmd_pending(client: GameTeamClient, args, prompt: Prompt) -> int:
    action = client.pending.peek()
    if action is None:
        print("No pending action")
        return 1
    print(action.to_json())
    return 0


COMMANDS = {
    "login": cmd_login,
    "respond": cmd_respond,
    "whoami": cmd_whoami,
    "logout": cmd_logout,
    "pending": cmd_pending,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gameteam-auth",
        description="GameTeam session client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Log in with a phone number
  python -m gameteam_auth login --phone +919812345678

  # Answer an invite; asks for a login first when needed
  python -m gameteam_auth respond 5f1c yes
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser("login", help="Log in with phone + OTP")
    login_parser.add_argument("--phone", help="Phone number (asked when omitted)")

    respond_parser = subparsers.add_parser("respond", help="Answer a match invite")
    respond_parser.add_argument("match_id", help="Match identifier")
    respond_parser.add_argument("answer", choices=["yes", "no", "YES", "NO"], help="Your answer")

    subparsers.add_parser("whoami", help="Show the logged in user")
    subparsers.add_parser("logout", help="Forget the session")
    subparsers.add_parser("pending", help="Show the deferred action, if any")
    return parser


async def _run(args, prompt: Prompt) -> int:
    async with GameTeamClient() as client:
        try:
            return await COMMANDS[args.command](client, args, prompt)
        except GameTeamError as e:
            print(f"✗ {friendly_message(e)}")
            return 1


def main(argv=None, prompt: Prompt = input) -> int:
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1
    return asyncio.run(_run(args, prompt))


if __name__ == "__main__":
    sys.exit(main())
