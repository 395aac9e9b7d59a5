"""Momentary Toil - Entry Point.

Authenticates against Google Calendar (refreshing the stored token, or
running the browser consent flow when there is none), fetches this week's
events and prints how much of the working week goes to meetings.

Usage:
    python main.py                # Current week
    python main.py --details      # Also list every counted meeting
    python main.py --weeks 2      # This week and the next
"""

import argparse
import logging
import signal
import sys

from googleapiclient.errors import HttpError

from auth.coordinator import AuthCoordinator
from auth.errors import AuthError, PersistenceError, RefreshRejected
from auth.provider import GoogleOAuthProvider
from auth.store import Credential, CredentialStore
from config.settings import load_settings
from meetings.google_client import build_credentials, fetch_events
from meetings.load import compute_meeting_load, format_meeting_load, week_range

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")


def get_user_input(message: str, instruction: str | None = None) -> str:
    """Show an optional instruction and a prompt, return the trimmed answer."""
    if instruction:
        print(instruction)
    return input(message).strip()


def ensure_client_config(
    store: CredentialStore,
    identity: str,
    credential: Credential,
    default_redirect_uri: str,
    redirect_uri: str | None = None,
) -> Credential:
    """Prompt for any missing client registration fields and save them.

    Args:
        store: Credential store to save to.
        identity: Profile the credential belongs to.
        credential: Credential loaded for the profile. Updated in place.
        default_redirect_uri: Used when the user leaves the redirect prompt empty.
        redirect_uri: Explicit redirect URI that replaces the stored one.

    Returns:
        The completed credential.
    """
    changed = False

    if not credential.client_id:
        credential.client_id = get_user_input("Enter your client_id: ")
        changed = True
    if not credential.client_secret:
        credential.client_secret = get_user_input("Enter your client_secret: ")
        changed = True
    if redirect_uri and redirect_uri != credential.redirect_uri:
        credential.redirect_uri = redirect_uri
        changed = True
    if not credential.redirect_uri:
        answer = get_user_input(f"Enter your redirect_uri [{default_redirect_uri}]: ")
        credential.redirect_uri = answer or default_redirect_uri
        changed = True

    if changed:
        try:
            store.save(identity, credential)
        except PersistenceError as e:
            logger.warning("Client configuration not saved: %s", e)

    return credential


def authenticate(coordinator: AuthCoordinator, allow_reauth: bool = True) -> str:
    """Get an access token, re-running consent once if the refresh token was rejected.

    Raises:
        AuthError: If authentication fails.
    """
    try:
        return coordinator.get_access_token()
    except RefreshRejected as e:
        if not allow_reauth:
            raise
        logger.warning("Stored refresh token was rejected (%s); starting a new consent flow", e)

    coordinator.credential.refresh_token = None
    try:
        coordinator.store.save(coordinator.identity, coordinator.credential)
    except PersistenceError as e:
        logger.warning("Could not clear the rejected refresh token: %s", e)

    return coordinator.get_access_token(force_consent=True)


def handle_sigterm(signum, frame) -> None:
    """Turn SIGTERM into SystemExit so cleanup handlers run."""
    # SystemExit unwinds through the coordinator's cleanup, releasing the listener
    sys.exit(128 + signum)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser for main.py."""
    parser = argparse.ArgumentParser(
        description="Show how much of your working week is spent in meetings."
    )
    parser.add_argument(
        "-d",
        "--details",
        action="store_true",
        help="List every meeting that counts towards the total.",
    )
    parser.add_argument(
        "-w",
        "--weeks",
        type=int,
        default=1,
        help="Number of weeks to cover, starting with the current one.",
    )
    parser.add_argument("--profile", help="Credential profile to use.")
    parser.add_argument("--redirect-uri", help="OAuth redirect URI registered for the client.")
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for the browser to complete the consent flow.",
    )
    parser.add_argument("--calendar", help="Calendar ID to read (default: primary).")
    parser.add_argument(
        "--no-reauth",
        action="store_false",
        dest="reauth",
        help="Fail instead of re-running consent when the refresh token is rejected.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, authenticate and print the meeting load."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.weeks < 1:
        parser.error("--weeks must be at least 1")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = load_settings()
    identity = args.profile or settings.profile
    store = CredentialStore(settings.config_dir)

    try:
        credential = store.load(identity)
    except PersistenceError as e:
        print(f"  ERROR: {e.message}")
        sys.exit(1)

    try:
        credential = ensure_client_config(
            store,
            identity,
            credential,
            default_redirect_uri=settings.redirect_uri,
            redirect_uri=args.redirect_uri,
        )
    except EOFError:
        print("  ERROR: No input available to complete the client configuration")
        sys.exit(1)

    coordinator = AuthCoordinator(
        store=store,
        identity=identity,
        credential=credential,
        provider=GoogleOAuthProvider(
            credential.client_id,
            credential.client_secret,
            credential.redirect_uri,
        ),
        callback_timeout=args.timeout if args.timeout is not None else settings.callback_timeout,
    )

    start, end = week_range(args.weeks)
    print(f"Week:: {start.date()} -> {end.date()}")

    try:
        access_token = authenticate(coordinator, allow_reauth=args.reauth)
    except AuthError as e:
        print(f"  ERROR: {e.message}")
        sys.exit(1)

    if coordinator.persistence_error:
        print(f"  WARNING: refresh token not saved ({coordinator.persistence_error.message})")

    calendar_id = args.calendar or settings.calendar_id
    try:
        events = fetch_events(build_credentials(access_token), calendar_id, start, end)
    except HttpError as e:
        print(f"  ERROR: Failed to fetch events from '{calendar_id}': {e}")
        sys.exit(1)

    load = compute_meeting_load(events, work_hours=settings.work_hours_per_week * args.weeks)
    print(format_meeting_load(load, details=args.details))


if __name__ == "__main__":
    main()
