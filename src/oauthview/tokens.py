"""Token endpoint client and the end-to-end authorization flow.

:class:`TokenClient` talks to a provider's token and revocation endpoints
with :mod:`httpx`:

* :meth:`~TokenClient.exchange_code` -- ``authorization_code`` grant,
  including the PKCE ``code_verifier`` when one was used.
* :meth:`~TokenClient.refresh` -- ``refresh_token`` grant.
* :meth:`~TokenClient.revoke` -- :rfc:`7009` token revocation.
* :meth:`~TokenClient.userinfo` -- OpenID Connect UserInfo claims.

:class:`AuthorizationFlow` ties a profile's provider, token client, and
:class:`~oauthview.token_store.TokenStore` together: hand out a stored token
while it is valid, refresh it silently when possible, and otherwise ask the
caller to run an interactive browser session (:meth:`~AuthorizationFlow.begin`
then :meth:`~AuthorizationFlow.complete`). :meth:`~AuthorizationFlow.login`
adds the signed-in user's OpenID Connect claims on top.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from oauthview.authorize import PendingAuthorization, build_request
from oauthview.config import resolve_credential
from oauthview.exceptions import AuthError, ConfigError, ConnectionError_
from oauthview.models import ProviderConfig, TokenSet
from oauthview.token_store import TokenStore

logger = logging.getLogger(__name__)


class TokenClient:
    """Call a provider's token endpoints.

    Args:
        provider: Endpoint URLs, redirect URI, and client credential sources.
    """

    def __init__(self, provider: ProviderConfig) -> None:
        self._provider = provider

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenSet:
        """Exchange an authorization code for tokens.

        Raises:
            AuthError: On HTTP errors or if ``access_token`` is missing.
            ConnectionError_: If the token endpoint is unreachable.
        """
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._provider.redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
        token_data = self._post(self._require_token_url(), data, "Token exchange")
        return TokenSet.from_response(token_data)

    def refresh(self, refresh_token: str) -> TokenSet:
        """Obtain a fresh access token.

        The previous refresh token is kept when the provider does not issue
        a new one.
        """
        data: dict[str, str] = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        token_data = self._post(self._require_token_url(), data, "Token refresh")
        return TokenSet.from_response(token_data, previous_refresh_token=refresh_token)

    def revoke(self, token: str) -> None:
        """Revoke *token* at the provider's revocation endpoint.

        Raises:
            ConfigError: If the provider has no ``revoke_url``.
        """
        if not self._provider.revoke_url:
            raise ConfigError("revoke_url is required to revoke tokens")
        self._post(self._provider.revoke_url, {"token": token}, "Token revocation", expect_json=False)

    def _require_token_url(self) -> str:
        if not self._provider.token_url:
            raise ConfigError("token_url is required for the token exchange")
        return self._provider.token_url

    def _client_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self._provider.client_id_source:
            params["client_id"] = resolve_credential(self._provider.client_id_source)
        if self._provider.client_secret_source:
            params["client_secret"] = resolve_credential(self._provider.client_secret_source)
        return params

    def userinfo(self, access_token: str) -> dict[str, Any]:
        """Fetch the OpenID Connect claims for the user behind *access_token*.

        Raises:
            ConfigError: If the provider has no ``userinfo_url``.
            AuthError: On HTTP errors or a body that is not a JSON object.
        """
        if not self._provider.userinfo_url:
            raise ConfigError("userinfo_url is required for OpenID Connect login")
        response = self._send(
            "UserInfo request",
            httpx.get,
            self._provider.userinfo_url,
            headers={"Accept": "application/json", "Authorization": f"Bearer {access_token}"},
        )
        try:
            claims = response.json()
        except ValueError as exc:
            raise AuthError("UserInfo request returned a non-JSON response") from exc
        if not isinstance(claims, dict):
            raise AuthError("UserInfo response is not a JSON object")
        return claims

    def _send(self, action: str, method: Callable[..., httpx.Response], url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = method(url, timeout=self._provider.timeout, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                f"{action} failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(f"{action} failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise AuthError(f"{action} failed: {exc}") from exc
        return response

    def _post(
        self,
        url: str,
        data: dict[str, str],
        action: str,
        expect_json: bool = True,
    ) -> dict[str, Any]:
        response = self._send(
            action,
            httpx.post,
            url,
            data={**data, **self._client_params()},
            headers={"Accept": "application/json"},
        )
        if not expect_json:
            return {}
        try:
            token_data: dict[str, Any] = response.json()
        except ValueError as exc:
            raise AuthError(f"{action} returned a non-JSON response") from exc
        if "access_token" not in token_data:
            raise AuthError(f"{action} response missing 'access_token' field")
        return token_data


class AuthorizationFlow:
    """Token lifecycle for one profile.

    Args:
        profile_name: Name used for the token store file.
        provider: The profile's provider configuration.
        client: Token client; defaults to one built from *provider*.
        store: Token store; defaults to the profile's store.
    """

    def __init__(
        self,
        profile_name: str,
        provider: ProviderConfig,
        client: Optional[TokenClient] = None,
        store: Optional[TokenStore] = None,
    ) -> None:
        self._provider = provider
        self._client = client or TokenClient(provider)
        self._store = store or TokenStore(profile_name)

    @property
    def store(self) -> TokenStore:
        return self._store

    def request_access(self) -> TokenSet:
        """Return usable tokens without user interaction.

        Returns the stored token while it is valid, otherwise refreshes it
        when a refresh token is available.

        Raises:
            AuthError: If an interactive browser session is required.
        """
        tokens = self._store.load()
        if tokens is not None and not tokens.is_expired():
            return tokens
        if tokens is not None and tokens.refresh_token and self._provider.token_url:
            try:
                refreshed = self._client.refresh(tokens.refresh_token)
            except AuthError as exc:
                logger.info("Refresh failed, interactive authorization needed: %s", exc)
            else:
                self._store.save(refreshed)
                return refreshed
        raise AuthError("Authorization required: run an interactive sign-in session")

    def begin(self, header_text: Optional[str] = None) -> PendingAuthorization:
        """Prepare the browser session for an interactive sign-in."""
        return build_request(self._provider, header_text=header_text)

    def complete(self, pending: PendingAuthorization, code: str) -> TokenSet:
        """Redeem the code produced by *pending*'s session and persist the tokens."""
        tokens = self._client.exchange_code(code, code_verifier=pending.code_verifier)
        self._store.save(tokens)
        return tokens

    def login(self) -> tuple[TokenSet, dict[str, Any]]:
        """Return usable tokens and the signed-in user's OpenID Connect claims.

        Tokens come from :meth:`request_access`; the claims from the
        provider's UserInfo endpoint.

        Raises:
            ConfigError: If the provider has no ``userinfo_url``.
            AuthError: If an interactive session is required or the
                UserInfo request is refused.
        """
        if not self._provider.userinfo_url:
            raise ConfigError("No UserInfo endpoint configured: set userinfo_url on the profile")
        tokens = self.request_access()
        return tokens, self._client.userinfo(tokens.access_token)

    def is_authorized(self) -> bool:
        return self._store.is_valid()

    def authorization_fields(self) -> Optional[dict[str, str]]:
        """Headers for an authorized request, or ``None`` without a stored token."""
        tokens = self._store.load()
        if tokens is None:
            return None
        return tokens.authorization_header()

    def revoke(self) -> None:
        """Revoke the stored access token at the provider and forget it locally."""
        tokens = self._store.load()
        if tokens is None:
            return
        self._client.revoke(tokens.access_token)
        self._store.clear()

    def clear(self) -> None:
        self._store.clear()
