"""Authorization coordinator.

Produces a usable access token for the current run. With a stored refresh
token it refreshes directly and never opens a listener. Without one it
runs the browser consent round-trip:

1. Build the consent URL and start the callback listener for its state
2. Show the URL to the user
3. Wait (bounded by the callback timeout) for the redirect
4. Stop the listener
5. Exchange the code for tokens
6. Persist the refresh token if a new one was issued

No retries happen here; failures propagate to the caller.
"""

import logging
from enum import Enum
from typing import Callable

from auth.channel import OneShotChannel
from auth.errors import (
    PersistenceError,
    ProviderExchangeError,
    ProviderRefreshError,
)
from auth.listener import AuthorizationResult, CallbackListener
from auth.provider import REQUIRED_SCOPES, OAuthProvider, TokenResponse
from auth.store import Credential, CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_CALLBACK_TIMEOUT = 300.0


class AuthState(str, Enum):
    """Where the coordinator is in the grant."""

    NO_CREDENTIAL = "no_credential"
    AWAITING_CONSENT = "awaiting_consent"
    EXCHANGING = "exchanging"
    HAS_REFRESH_TOKEN = "has_refresh_token"
    PERSISTING = "persisting"
    READY = "ready"
    FAILED = "failed"


def show_consent_url(url: str) -> None:
    """Print the consent URL for the user to open."""
    print("Please open the following URL to grant calendar access:")
    print(f"  {url}")


class AuthCoordinator:
    """Drives the OAuth2 grant and keeps the stored refresh token current."""

    def __init__(
        self,
        store: CredentialStore,
        identity: str,
        credential: Credential,
        provider: OAuthProvider,
        listener: CallbackListener | None = None,
        callback_timeout: float = DEFAULT_CALLBACK_TIMEOUT,
        on_consent_url: Callable[[str], None] = show_consent_url,
    ) -> None:
        """Initialize the AuthCoordinator.

        Args:
            store: Where the updated credential is saved.
            identity: Profile name the credential is stored under.
            credential: The credential loaded for identity. Updated in place.
            provider: OAuth2 provider for consent, exchange and refresh.
            listener: Callback listener used for the consent branch.
            callback_timeout: Seconds to wait for the browser redirect.
            on_consent_url: Called with the consent URL once the listener is up.
        """
        self.store = store
        self.identity = identity
        self.credential = credential
        self.provider = provider
        self.listener = listener or CallbackListener()
        self.callback_timeout = callback_timeout
        self.on_consent_url = on_consent_url
        self.state = AuthState.NO_CREDENTIAL
        self.persistence_error: PersistenceError | None = None
        self._issued_state = ""

    def get_access_token(self, force_consent: bool = False) -> str:
        """Run the grant and return an access token.

        Args:
            force_consent: Take the consent branch even if a refresh token is stored.

        Raises:
            BindError, CallbackTimeout, CallbackCancelled: From the consent branch.
            ProviderExchangeError: If the code could not be exchanged.
            ProviderRefreshError: If the refresh failed (RefreshRejected when the
                refresh token itself was refused).
        """
        self.persistence_error = None
        try:
            if self.credential.has_refresh_token and not force_consent:
                self.state = AuthState.HAS_REFRESH_TOKEN
                tokens = self._refresh()
            else:
                self.state = AuthState.NO_CREDENTIAL
                result = self._await_consent()
                self.state = AuthState.EXCHANGING
                tokens = self._exchange(result)
        except BaseException:
            self.state = AuthState.FAILED
            raise

        self.state = AuthState.PERSISTING
        self._persist(tokens)

        self.state = AuthState.READY
        return tokens.access_token

    def _refresh(self) -> TokenResponse:
        logger.info("Refreshing access token for '%s'", self.identity)
        tokens = self.provider.refresh(self.credential.refresh_token)
        if not tokens.access_token:
            raise ProviderRefreshError("Provider returned an empty access token")
        return tokens

    def _await_consent(self) -> AuthorizationResult:
        self.state = AuthState.AWAITING_CONSENT
        channel: OneShotChannel[AuthorizationResult] = OneShotChannel()
        url, state = self.provider.consent_url(REQUIRED_SCOPES)
        self._issued_state = state
        handle = self.listener.start(self.credential.redirect_uri, channel, expected_state=state)
        try:
            self.on_consent_url(url)
            logger.info("Waiting up to %.0fs for the authorization redirect", self.callback_timeout)
            return self.listener.await_result(handle, self.callback_timeout)
        finally:
            # The listener is gone before any exchange or save starts
            self.listener.stop(handle)

    def _exchange(self, result: AuthorizationResult) -> TokenResponse:
        if result.error:
            raise ProviderExchangeError(f"Authorization was denied: {result.error}")
        if result.state != self._issued_state:
            raise ProviderExchangeError("State returned by the redirect does not match")

        tokens = self.provider.exchange_code(result.code, result.state)
        if not tokens.access_token:
            raise ProviderExchangeError("Provider returned an empty access token")
        return tokens

    def _persist(self, tokens: TokenResponse) -> None:
        if not tokens.refresh_token:
            logger.info("No new refresh token issued; keeping the stored one")
            return

        self.credential.refresh_token = tokens.refresh_token
        try:
            self.store.save(self.identity, self.credential)
        except PersistenceError as e:
            logger.warning("Continuing with an unsaved credential: %s", e)
            self.persistence_error = e
