"""Tests for the token endpoint client and the authorization flow."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest

from oauthview.authorize import PendingAuthorization
from oauthview.exceptions import AuthError, ConfigError, ConnectionError_
from oauthview.models import AuthorizationRequest, TokenSet
from oauthview.token_store import TokenStore
from oauthview.tokens import AuthorizationFlow, TokenClient

from conftest import REDIRECT_URI

_POST = "oauthview.tokens.httpx.post"
_GET = "oauthview.tokens.httpx.get"
_USERINFO_URL = "https://auth.example.com/userinfo"


def _mock_response(data: dict | None = None, status_code: int = 200, text: str | None = None) -> httpx.Response:
    """Create an httpx.Response bound to the token endpoint."""
    request = httpx.Request("POST", "https://auth.example.com/token")
    if text is not None:
        return httpx.Response(status_code=status_code, text=text, request=request)
    return httpx.Response(status_code=status_code, json=data or {}, request=request)


def _pending() -> PendingAuthorization:
    return PendingAuthorization(
        request=AuthorizationRequest(authorize_url="https://auth.example.com/authorize", redirect_uri=REDIRECT_URI),
        state="s1",
        code_verifier="verifier-123",
    )


class TestTokenClient:
    def test_exchange_code(self, provider) -> None:
        response = _mock_response(
            {"access_token": "at", "refresh_token": "rt", "expires_in": 3600, "token_type": "Bearer"}
        )
        with patch(_POST, return_value=response) as mock_post:
            tokens = TokenClient(provider).exchange_code("abc123", code_verifier="v")

        assert tokens.access_token == "at"
        assert tokens.refresh_token == "rt"
        assert tokens.expires_at is not None
        assert not tokens.is_expired()

        args, kwargs = mock_post.call_args
        assert args[0] == "https://auth.example.com/token"
        assert kwargs["data"] == {
            "grant_type": "authorization_code",
            "code": "abc123",
            "redirect_uri": REDIRECT_URI,
            "code_verifier": "v",
            "client_id": "my-client",
        }
        assert kwargs["headers"] == {"Accept": "application/json"}
        assert kwargs["timeout"] == 30.0

    def test_client_secret_sent(self, provider, monkeypatch) -> None:
        monkeypatch.setenv("EXAMPLE_SECRET", "s3cret")
        provider = provider.model_copy(update={"client_secret_source": "env:EXAMPLE_SECRET"})
        with patch(_POST, return_value=_mock_response({"access_token": "at"})) as mock_post:
            TokenClient(provider).exchange_code("abc")
        assert mock_post.call_args.kwargs["data"]["client_secret"] == "s3cret"
        assert "code_verifier" not in mock_post.call_args.kwargs["data"]

    def test_refresh_keeps_refresh_token(self, provider) -> None:
        with patch(_POST, return_value=_mock_response({"access_token": "new"})) as mock_post:
            tokens = TokenClient(provider).refresh("rt-old")
        assert tokens.access_token == "new"
        assert tokens.refresh_token == "rt-old"
        assert mock_post.call_args.kwargs["data"]["grant_type"] == "refresh_token"

    def test_http_error(self, provider) -> None:
        response = _mock_response({"error": "invalid_grant"}, status_code=400)
        with patch(_POST, return_value=response):
            with pytest.raises(AuthError, match="status 400"):
                TokenClient(provider).exchange_code("bad")

    def test_connection_error(self, provider) -> None:
        with patch(_POST, side_effect=httpx.ConnectError("Connection refused")):
            with pytest.raises(ConnectionError_):
                TokenClient(provider).exchange_code("abc")

    def test_non_json_response(self, provider) -> None:
        with patch(_POST, return_value=_mock_response(text="<html>oops</html>")):
            with pytest.raises(AuthError, match="non-JSON"):
                TokenClient(provider).exchange_code("abc")

    def test_missing_access_token(self, provider) -> None:
        with patch(_POST, return_value=_mock_response({"token_type": "Bearer"})):
            with pytest.raises(AuthError, match="access_token"):
                TokenClient(provider).exchange_code("abc")

    def test_missing_token_url(self, provider) -> None:
        provider = provider.model_copy(update={"token_url": None})
        with pytest.raises(ConfigError, match="token_url"):
            TokenClient(provider).exchange_code("abc")

    def test_revoke(self, provider) -> None:
        with patch(_POST, return_value=_mock_response(text="")) as mock_post:
            TokenClient(provider).revoke("at")
        assert mock_post.call_args.args[0] == "https://auth.example.com/revoke"
        assert mock_post.call_args.kwargs["data"]["token"] == "at"

    def test_revoke_without_endpoint(self, provider) -> None:
        provider = provider.model_copy(update={"revoke_url": None})
        with pytest.raises(ConfigError, match="revoke_url"):
            TokenClient(provider).revoke("at")

    def test_userinfo(self, provider) -> None:
        provider = provider.model_copy(update={"userinfo_url": _USERINFO_URL})
        claims = {"sub": "248289761001", "email": "jane@example.com"}
        with patch(_GET, return_value=_mock_response(claims)) as mock_get:
            result = TokenClient(provider).userinfo("at")

        assert result == claims
        assert mock_get.call_args.args[0] == _USERINFO_URL
        assert mock_get.call_args.kwargs["headers"]["Authorization"] == "Bearer at"
        assert mock_get.call_args.kwargs["timeout"] == provider.timeout

    def test_userinfo_without_endpoint(self, provider) -> None:
        with patch(_GET) as mock_get:
            with pytest.raises(ConfigError, match="userinfo_url"):
                TokenClient(provider).userinfo("at")
        mock_get.assert_not_called()

    def test_userinfo_rejected_token(self, provider) -> None:
        provider = provider.model_copy(update={"userinfo_url": _USERINFO_URL})
        with patch(_GET, return_value=_mock_response({"error": "invalid_token"}, status_code=401)):
            with pytest.raises(AuthError, match="status 401"):
                TokenClient(provider).userinfo("expired")

    def test_userinfo_non_json(self, provider) -> None:
        provider = provider.model_copy(update={"userinfo_url": _USERINFO_URL})
        with patch(_GET, return_value=_mock_response(text="<html>login</html>")):
            with pytest.raises(AuthError, match="non-JSON"):
                TokenClient(provider).userinfo("at")


@pytest.fixture
def store(isolated_config) -> TokenStore:
    return TokenStore("example")


class TestAuthorizationFlow:
    def test_complete_saves_tokens(self, provider, store) -> None:
        client = MagicMock(spec=TokenClient)
        client.exchange_code.return_value = TokenSet(access_token="at")
        flow = AuthorizationFlow("example", provider, client=client, store=store)

        tokens = flow.complete(_pending(), "abc123")

        client.exchange_code.assert_called_once_with("abc123", code_verifier="verifier-123")
        assert tokens.access_token == "at"
        assert store.load() == tokens
        assert flow.is_authorized()
        assert flow.authorization_fields() == {"Authorization": "Bearer at"}

    def test_request_access_returns_valid_token(self, provider, store) -> None:
        store.save(TokenSet(access_token="at"))
        client = MagicMock(spec=TokenClient)
        flow = AuthorizationFlow("example", provider, client=client, store=store)
        assert flow.request_access().access_token == "at"
        client.refresh.assert_not_called()

    def test_request_access_refreshes(self, provider, store) -> None:
        store.save(
            TokenSet(
                access_token="old",
                refresh_token="rt",
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            )
        )
        client = MagicMock(spec=TokenClient)
        client.refresh.return_value = TokenSet(access_token="new", refresh_token="rt")
        flow = AuthorizationFlow("example", provider, client=client, store=store)

        assert flow.request_access().access_token == "new"
        client.refresh.assert_called_once_with("rt")
        assert store.load().access_token == "new"

    def test_request_access_failed_refresh(self, provider, store) -> None:
        store.save(
            TokenSet(
                access_token="old",
                refresh_token="rt",
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            )
        )
        client = MagicMock(spec=TokenClient)
        client.refresh.side_effect = AuthError("invalid_grant")
        flow = AuthorizationFlow("example", provider, client=client, store=store)
        with pytest.raises(AuthError, match="Authorization required"):
            flow.request_access()

    def test_request_access_without_tokens(self, provider, store) -> None:
        flow = AuthorizationFlow("example", provider, client=MagicMock(spec=TokenClient), store=store)
        with pytest.raises(AuthError, match="Authorization required"):
            flow.request_access()
        assert flow.authorization_fields() is None

    def test_begin_builds_request(self, provider, store) -> None:
        flow = AuthorizationFlow("example", provider, client=MagicMock(spec=TokenClient), store=store)
        pending = flow.begin(header_text="Sign in")
        assert pending.request.redirect_uri == REDIRECT_URI
        assert pending.request.header_text == "Sign in"
        assert pending.code_verifier

    def test_revoke_clears_store(self, provider, store) -> None:
        store.save(TokenSet(access_token="at"))
        client = MagicMock(spec=TokenClient)
        flow = AuthorizationFlow("example", provider, client=client, store=store)
        flow.revoke()
        client.revoke.assert_called_once_with("at")
        assert store.load() is None

    def test_revoke_without_tokens_is_noop(self, provider, store) -> None:
        client = MagicMock(spec=TokenClient)
        AuthorizationFlow("example", provider, client=client, store=store).revoke()
        client.revoke.assert_not_called()

    def test_login_returns_tokens_and_claims(self, provider, store) -> None:
        provider = provider.model_copy(update={"userinfo_url": _USERINFO_URL})
        store.save(TokenSet(access_token="at"))
        client = MagicMock(spec=TokenClient)
        client.userinfo.return_value = {"sub": "42"}
        flow = AuthorizationFlow("example", provider, client=client, store=store)

        tokens, claims = flow.login()

        assert tokens.access_token == "at"
        assert claims == {"sub": "42"}
        client.userinfo.assert_called_once_with("at")

    def test_login_without_userinfo_endpoint(self, provider, store) -> None:
        store.save(TokenSet(access_token="at"))
        client = MagicMock(spec=TokenClient)
        flow = AuthorizationFlow("example", provider, client=client, store=store)
        with pytest.raises(ConfigError, match="No UserInfo endpoint"):
            flow.login()
        client.userinfo.assert_not_called()

    def test_login_without_tokens(self, provider, store) -> None:
        provider = provider.model_copy(update={"userinfo_url": _USERINFO_URL})
        client = MagicMock(spec=TokenClient)
        flow = AuthorizationFlow("example", provider, client=client, store=store)
        with pytest.raises(AuthError, match="Authorization required"):
            flow.login()
        client.userinfo.assert_not_called()
