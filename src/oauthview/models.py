"""Canonical Pydantic models shared across all oauthview modules.

The models fall into three groups:

**Session models** -- the values flowing through one authorization attempt:
    :class:`AuthorizationRequest`, :class:`NavigationEvent`,
    :class:`OutcomeKind`, and :class:`Outcome`.

**Token models** -- produced by :mod:`oauthview.tokens`:
    :class:`TokenSet`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ProviderConfig`, :class:`OutputConfig`, :class:`GlobalConfig`,
    and :class:`Profile`.

Session models are frozen: a request never changes once a session starts and
an outcome is a value, not a mutable record.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DISMISS_ERROR = "dialog_dismissed"
"""Error value reported to receivers when the user closes the browser view."""

PROFILE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"
"""Profile names double as file names, so path separators are not allowed."""


# --- Session models ---


class AuthorizationRequest(BaseModel):
    """One authorization attempt: where to send the user and where they come back.

    Example::

        AuthorizationRequest(
            authorize_url="https://accounts.example/o/oauth2/auth?client_id=abc",
            redirect_uri="https://app.example/cb",
        )
    """

    model_config = ConfigDict(frozen=True)

    authorize_url: str
    redirect_uri: str
    header_text: str = "Log in"


class NavigationEvent(BaseModel):
    """A single page-load or navigation reported by the embedded browser."""

    model_config = ConfigDict(frozen=True)

    url: str


class OutcomeKind(str, enum.Enum):
    """The three terminal results a session can produce."""

    CODE = "code"
    ERROR = "error"
    DISMISSED = "dismissed"


class Outcome(BaseModel):
    """Terminal result of a session.

    Use the :meth:`code`, :meth:`error`, and :meth:`dismissed` constructors
    rather than building instances directly.
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    value: str

    @classmethod
    def code(cls, value: str) -> Outcome:
        return cls(kind=OutcomeKind.CODE, value=value)

    @classmethod
    def error(cls, value: str) -> Outcome:
        return cls(kind=OutcomeKind.ERROR, value=value)

    @classmethod
    def dismissed(cls) -> Outcome:
        return cls(kind=OutcomeKind.DISMISSED, value=DISMISS_ERROR)

    @property
    def is_success(self) -> bool:
        return self.kind == OutcomeKind.CODE


# --- Token models ---


class TokenSet(BaseModel):
    """Access and refresh tokens returned by a provider's token endpoint."""

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = Field(
        default=None, description="UTC expiry of the access token (None = unknown)"
    )
    scope: Optional[str] = None

    @classmethod
    def from_response(
        cls, data: dict[str, Any], previous_refresh_token: Optional[str] = None
    ) -> TokenSet:
        """Build a token set from a token endpoint JSON response.

        Args:
            data: Parsed JSON body. Must contain ``access_token``.
            previous_refresh_token: Kept when the response carries no
                new ``refresh_token`` (common on refresh grants).
        """
        expires_at = None
        expires_in = data.get("expires_in")
        if expires_in is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            expires_at=expires_at,
            scope=data.get("scope"),
        )

    def is_expired(self, margin: float = 30.0) -> bool:
        """Return True once the access token is within *margin* seconds of expiry."""
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires - timedelta(seconds=margin)

    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


# --- Configuration models ---


class ProviderConfig(BaseModel):
    """OAuth2 provider endpoints and client settings embedded in a :class:`Profile`.

    Client credentials are never stored directly; ``client_id_source`` and
    ``client_secret_source`` hold source descriptors resolved at runtime by
    :func:`~oauthview.config.resolve_credential` (``env:VAR``,
    ``file:/path``, ``prompt``, or ``value:literal``).

    Example::

        ProviderConfig(
            authorization_url="https://accounts.example/o/oauth2/auth",
            token_url="https://accounts.example/o/oauth2/token",
            redirect_uri="https://app.example/cb",
            client_id_source="env:EXAMPLE_CLIENT_ID",
            scopes=["openid", "email"],
        )
    """

    model_config = ConfigDict(extra="allow")

    authorization_url: str
    token_url: Optional[str] = None
    revoke_url: Optional[str] = None
    userinfo_url: Optional[str] = Field(
        default=None, description="OpenID Connect UserInfo endpoint"
    )
    redirect_uri: str
    client_id_source: Optional[str] = None
    client_secret_source: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)
    use_pkce: bool = Field(default=True, description="Send an S256 PKCE challenge")
    header_text: str = Field(default="Log in", description="Title shown above the browser view")
    max_load_retries: int = Field(
        default=4, ge=0, description="Reloads of the authorize page before giving up"
    )
    timeout: float = Field(default=30.0, description="Token endpoint timeout in seconds")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/oauthview/config.json``.

    Loaded and saved by :func:`~oauthview.config.load_global_config` and
    :func:`~oauthview.config.save_global_config`. See
    :func:`~oauthview.config.resolve_config` for the precedence chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)


class Profile(BaseModel):
    """A named OAuth2 provider setup stored under the ``profiles/`` config directory.

    See Also:
        :func:`~oauthview.config.load_profile`: Deserialise a profile by name.
        :func:`~oauthview.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(pattern=PROFILE_NAME_PATTERN)
    provider: ProviderConfig
