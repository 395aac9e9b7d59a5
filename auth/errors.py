"""Exceptions raised by the authorization flow.

Every failure the CLI can render derives from AuthError, so callers can
catch one type and still tell the kinds apart.
"""


class AuthError(Exception):
    """Base exception for the authorization flow."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class BindError(AuthError):
    """The callback listener could not claim the redirect address.

    Causes:
    - Port already in use
    - Redirect URI is not an http loopback address with a port
    """


class CallbackTimeout(AuthError):
    """No authorization redirect arrived within the allowed window."""


class CallbackCancelled(AuthError):
    """The callback channel was closed while waiting for a redirect."""


class ProviderExchangeError(AuthError):
    """The provider did not turn the authorization code into tokens.

    Also raised when the user denied consent or the returned state does
    not match the one issued with the consent URL.
    """


class ProviderRefreshError(AuthError):
    """Refreshing the access token failed."""


class RefreshRejected(ProviderRefreshError):
    """The provider rejected the stored refresh token (expired or revoked).

    Callers may clear the stored token and run the consent flow again.
    """


class PersistenceError(AuthError):
    """The credential store could not save the updated credential."""


class ChannelAlreadyUsed(RuntimeError):
    """A one-shot channel received a second value."""
