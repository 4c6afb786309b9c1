"""Authorization URL construction with ``state`` and PKCE (:rfc:`7636`).

:func:`build_request` turns a :class:`~oauthview.models.ProviderConfig`
into everything a session needs: the
:class:`~oauthview.models.AuthorizationRequest` to load in the browser plus
the ``state`` and PKCE ``code_verifier`` that must be kept for the token
exchange.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from oauthview.config import resolve_credential
from oauthview.exceptions import ConfigError
from oauthview.models import AuthorizationRequest, ProviderConfig


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


def generate_state() -> str:
    """Return an unguessable value for the ``state`` parameter."""
    return secrets.token_urlsafe(24)


def build_authorize_url(
    provider: ProviderConfig,
    client_id: Optional[str] = None,
    state: Optional[str] = None,
    code_challenge: Optional[str] = None,
) -> str:
    """Return the provider's authorization endpoint with the code-flow parameters.

    Query parameters already present on ``provider.authorization_url`` are
    kept; the code-flow parameters are appended after them.

    Args:
        provider: Provider endpoints, redirect URI, and scopes.
        client_id: The resolved client identifier, if the provider needs one.
        state: Opaque ``state`` value echoed back by the provider.
        code_challenge: S256 PKCE challenge.
    """
    if not provider.authorization_url:
        raise ConfigError("authorization_url is required to build an authorize URL")

    params: list[tuple[str, str]] = [
        ("response_type", "code"),
        ("redirect_uri", provider.redirect_uri),
    ]
    if client_id:
        params.append(("client_id", client_id))
    if provider.scopes:
        params.append(("scope", " ".join(provider.scopes)))
    if state:
        params.append(("state", state))
    if code_challenge:
        params.append(("code_challenge", code_challenge))
        params.append(("code_challenge_method", "S256"))

    parts = urlsplit(provider.authorization_url)
    existing = parse_qsl(parts.query, keep_blank_values=True)
    query = urlencode(existing + params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


@dataclass(frozen=True)
class PendingAuthorization:
    """An authorization request plus the secrets needed to redeem its code.

    Attributes:
        request: What the browser session loads and watches for.
        state: The ``state`` value sent to the provider.
        code_verifier: PKCE verifier for the token exchange, or ``None``
            when PKCE is disabled for the provider.
    """

    request: AuthorizationRequest
    state: str
    code_verifier: Optional[str] = None


def build_request(
    provider: ProviderConfig, header_text: Optional[str] = None
) -> PendingAuthorization:
    """Prepare a new authorization attempt for *provider*.

    Raises:
        ConfigError: If the client id source cannot be resolved.
    """
    client_id = None
    if provider.client_id_source:
        client_id = resolve_credential(provider.client_id_source)

    state = generate_state()
    code_verifier: Optional[str] = None
    code_challenge: Optional[str] = None
    if provider.use_pkce:
        code_verifier, code_challenge = generate_pkce_pair()

    url = build_authorize_url(
        provider, client_id=client_id, state=state, code_challenge=code_challenge
    )
    request = AuthorizationRequest(
        authorize_url=url,
        redirect_uri=provider.redirect_uri,
        header_text=header_text or provider.header_text,
    )
    return PendingAuthorization(request=request, state=state, code_verifier=code_verifier)
