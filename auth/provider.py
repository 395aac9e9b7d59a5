"""Google OAuth2 provider.

Builds the consent URL, exchanges authorization codes and refreshes access
tokens. This module isolates all Google-specific auth code so the
coordinator stays provider-agnostic.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from requests import RequestException

from auth.errors import ProviderExchangeError, ProviderRefreshError, RefreshRejected

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

REQUIRED_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events.readonly",
    "https://www.googleapis.com/auth/calendar.settings.readonly",
]


@dataclass
class TokenResponse:
    """Result of a code exchange or refresh. Empty strings mean "not issued"."""

    access_token: str
    refresh_token: str = ""
    expires_in: timedelta = timedelta(0)


class OAuthProvider(Protocol):
    """What the coordinator needs from an OAuth2 provider."""

    def consent_url(self, scopes: list[str]) -> tuple[str, str]: ...

    def exchange_code(self, code: str, state: str) -> TokenResponse: ...

    def refresh(self, refresh_token: str) -> TokenResponse: ...


def _expires_in(expiry: datetime | None) -> timedelta:
    # google-auth keeps expiry as naive UTC
    if expiry is None:
        return timedelta(0)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return max(expiry - now, timedelta(0))


class GoogleOAuthProvider:
    """OAuth2 authorization-code grant against Google's endpoints."""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str) -> None:
        """Initialize the provider.

        Args:
            client_id: OAuth client ID from the Google Cloud console.
            client_secret: OAuth client secret.
            redirect_uri: Redirect URI registered for the client.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._flow: Flow | None = None
        self._state = ""

    def _client_config(self) -> dict:
        return {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }

    def consent_url(self, scopes: list[str]) -> tuple[str, str]:
        """Build the URL the user opens to grant access.

        Offline access and a forced consent prompt make Google issue a
        refresh token even if the user approved this client before.

        Returns:
            Tuple of (url, state).
        """
        # The same Flow must perform the exchange (it holds the PKCE verifier)
        self._flow = Flow.from_client_config(
            self._client_config(),
            scopes=scopes,
            redirect_uri=self.redirect_uri,
        )
        url, state = self._flow.authorization_url(access_type="offline", prompt="consent")
        self._state = state
        return url, state

    def exchange_code(self, code: str, state: str) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Raises:
            ProviderExchangeError: If no consent URL was issued, the state does
                not match, or Google rejects the code.
        """
        if self._flow is None:
            raise ProviderExchangeError("No consent URL was issued for this exchange")
        if state != self._state:
            raise ProviderExchangeError("State returned by the redirect does not match")

        try:
            self._flow.fetch_token(code=code)
        # oauthlib raises a bare Warning when the granted scopes differ
        except (OAuth2Error, RequestException, Warning) as e:
            raise ProviderExchangeError(f"Authorization code exchange failed: {e}", original_error=e)

        creds = self._flow.credentials
        logger.info("Authorization code exchanged for tokens")
        return TokenResponse(
            access_token=creds.token or "",
            refresh_token=creds.refresh_token or "",
            expires_in=_expires_in(creds.expiry),
        )

    def refresh(self, refresh_token: str) -> TokenResponse:
        """Obtain a new access token from a stored refresh token.

        The returned refresh_token is empty unless Google rotated it.

        Raises:
            RefreshRejected: If Google refuses the refresh token itself.
            ProviderRefreshError: For any other refresh failure.
        """
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )

        try:
            creds.refresh(Request())
        except RefreshError as e:
            if "invalid_grant" in str(e):
                raise RefreshRejected(f"Refresh token rejected: {e}", original_error=e)
            raise ProviderRefreshError(f"Token refresh failed: {e}", original_error=e)
        except TransportError as e:
            raise ProviderRefreshError(f"Token refresh failed: {e}", original_error=e)

        logger.info("Access token refreshed")
        rotated = creds.refresh_token if creds.refresh_token != refresh_token else ""
        return TokenResponse(
            access_token=creds.token or "",
            refresh_token=rotated or "",
            expires_in=_expires_in(creds.expiry),
        )
