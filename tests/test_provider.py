"""Tests for the Google OAuth provider (Google libraries mocked)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import RefreshError, TransportError
from oauthlib.oauth2.rfc6749.errors import InvalidGrantError

from auth.errors import ProviderExchangeError, ProviderRefreshError, RefreshRejected
from auth.provider import REQUIRED_SCOPES, TOKEN_URI, GoogleOAuthProvider


@pytest.fixture
def provider() -> GoogleOAuthProvider:
    return GoogleOAuthProvider("client-id", "client-secret", "http://localhost:8000/callback")


@pytest.fixture
def mock_flow():
    with patch("auth.provider.Flow") as flow_cls:
        flow = MagicMock()
        flow.authorization_url.return_value = ("https://accounts.google.com/o/oauth2/auth?x=1", "st8")
        flow_cls.from_client_config.return_value = flow
        yield flow_cls, flow


class TestConsentUrl:
    def test_builds_offline_consent_url(self, provider, mock_flow) -> None:
        flow_cls, flow = mock_flow

        url, state = provider.consent_url(REQUIRED_SCOPES)

        assert url.startswith("https://accounts.google.com/")
        assert state == "st8"
        config = flow_cls.from_client_config.call_args.args[0]
        assert config["installed"]["client_id"] == "client-id"
        assert config["installed"]["token_uri"] == TOKEN_URI
        kwargs = flow_cls.from_client_config.call_args.kwargs
        assert kwargs["scopes"] == REQUIRED_SCOPES
        assert kwargs["redirect_uri"] == "http://localhost:8000/callback"
        flow.authorization_url.assert_called_once_with(access_type="offline", prompt="consent")


class TestExchangeCode:
    def test_exchange_returns_tokens(self, provider, mock_flow) -> None:
        _, flow = mock_flow
        expiry = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)
        flow.credentials = MagicMock(token="AT1", refresh_token="RT1", expiry=expiry)
        provider.consent_url(REQUIRED_SCOPES)

        tokens = provider.exchange_code("abc", "st8")

        flow.fetch_token.assert_called_once_with(code="abc")
        assert tokens.access_token == "AT1"
        assert tokens.refresh_token == "RT1"
        assert timedelta(minutes=55) < tokens.expires_in <= timedelta(hours=1)

    def test_missing_refresh_token_is_empty(self, provider, mock_flow) -> None:
        _, flow = mock_flow
        flow.credentials = MagicMock(token="AT1", refresh_token=None, expiry=None)
        provider.consent_url(REQUIRED_SCOPES)

        tokens = provider.exchange_code("abc", "st8")

        assert tokens.refresh_token == ""
        assert tokens.expires_in == timedelta(0)

    def test_exchange_without_consent_url(self, provider) -> None:
        with pytest.raises(ProviderExchangeError):
            provider.exchange_code("abc", "st8")

    def test_state_mismatch(self, provider, mock_flow) -> None:
        _, flow = mock_flow
        provider.consent_url(REQUIRED_SCOPES)
        with pytest.raises(ProviderExchangeError):
            provider.exchange_code("abc", "other")
        flow.fetch_token.assert_not_called()

    def test_rejected_code(self, provider, mock_flow) -> None:
        _, flow = mock_flow
        flow.fetch_token.side_effect = InvalidGrantError()
        provider.consent_url(REQUIRED_SCOPES)

        with pytest.raises(ProviderExchangeError) as exc_info:
            provider.exchange_code("abc", "st8")
        assert isinstance(exc_info.value.original_error, InvalidGrantError)


class TestRefresh:
    @patch("auth.provider.Request")
    @patch("auth.provider.Credentials")
    def test_refresh_returns_access_token(self, mock_creds_cls, mock_request, provider) -> None:
        creds = mock_creds_cls.return_value
        creds.token = "AT2"
        creds.refresh_token = "RT1"
        creds.expiry = None

        tokens = provider.refresh("RT1")

        creds.refresh.assert_called_once()
        kwargs = mock_creds_cls.call_args.kwargs
        assert kwargs["refresh_token"] == "RT1"
        assert kwargs["token_uri"] == TOKEN_URI
        assert kwargs["client_id"] == "client-id"
        assert tokens.access_token == "AT2"
        # Unchanged refresh token is reported as "none issued"
        assert tokens.refresh_token == ""

    @patch("auth.provider.Request")
    @patch("auth.provider.Credentials")
    def test_rotated_refresh_token(self, mock_creds_cls, mock_request, provider) -> None:
        creds = mock_creds_cls.return_value
        creds.token = "AT2"
        creds.refresh_token = "RT9"
        creds.expiry = None

        assert provider.refresh("RT1").refresh_token == "RT9"

    @patch("auth.provider.Request")
    @patch("auth.provider.Credentials")
    def test_invalid_grant_is_rejection(self, mock_creds_cls, mock_request, provider) -> None:
        mock_creds_cls.return_value.refresh.side_effect = RefreshError(
            "invalid_grant: Token has been expired or revoked.",
            {"error": "invalid_grant"},
        )
        with pytest.raises(RefreshRejected):
            provider.refresh("RT1")

    @patch("auth.provider.Request")
    @patch("auth.provider.Credentials")
    def test_other_refresh_error(self, mock_creds_cls, mock_request, provider) -> None:
        mock_creds_cls.return_value.refresh.side_effect = RefreshError("invalid_client")
        with pytest.raises(ProviderRefreshError) as exc_info:
            provider.refresh("RT1")
        assert not isinstance(exc_info.value, RefreshRejected)

    @patch("auth.provider.Request")
    @patch("auth.provider.Credentials")
    def test_transport_error(self, mock_creds_cls, mock_request, provider) -> None:
        mock_creds_cls.return_value.refresh.side_effect = TransportError("connection reset")
        with pytest.raises(ProviderRefreshError):
            provider.refresh("RT1")
