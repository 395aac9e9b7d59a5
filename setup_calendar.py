"""Google Calendar OAuth Setup.

Run this once per profile to authenticate with Google Calendar. Opens the
consent flow even if a refresh token is already stored, then saves the new
refresh token for future runs of main.py.

Usage:
    python setup_calendar.py [--profile NAME] [--timeout SECONDS]
"""

import argparse
import signal
import sys

from auth.coordinator import AuthCoordinator
from auth.errors import AuthError, PersistenceError
from auth.provider import GoogleOAuthProvider
from auth.store import CredentialStore
from config.settings import load_settings
from main import handle_sigterm, ensure_client_config


def main(argv: list[str] | None = None) -> None:
    """Run the consent flow and save the refresh token."""
    parser = argparse.ArgumentParser(description="Authorize calendar access for a profile.")
    parser.add_argument("--profile", help="Credential profile to authorize.")
    parser.add_argument("--redirect-uri", help="OAuth redirect URI registered for the client.")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for the browser.")
    args = parser.parse_args(argv)

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = load_settings()
    identity = args.profile or settings.profile
    store = CredentialStore(settings.config_dir)

    print("Starting Google Calendar authentication...")
    print(f"Using profile: {identity} ({store.path_for(identity)})")
    print()

    try:
        credential = store.load(identity)
    except PersistenceError as e:
        print(f"ERROR: {e.message}")
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
        print("ERROR: No input available to complete the client configuration")
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

    try:
        coordinator.get_access_token(force_consent=True)
    except AuthError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)

    print()
    if coordinator.persistence_error:
        print(f"WARNING: refresh token not saved ({coordinator.persistence_error.message})")
        sys.exit(1)
    if not credential.has_refresh_token:
        print("WARNING: Google did not issue a refresh token; the next run will ask again.")
        sys.exit(1)

    print(f"Refresh token saved to: {store.path_for(identity)}")
    print("You can now run: python main.py")


if __name__ == "__main__":
    main()
