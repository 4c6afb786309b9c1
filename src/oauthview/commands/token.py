"""Token commands -- redeem, refresh, revoke, and inspect stored tokens.

Provides the ``oauthview token`` sub-command group, operating on the
active profile's :class:`~oauthview.token_store.TokenStore`::

    oauthview token exchange CODE --verifier VERIFIER
    oauthview token status
    oauthview token refresh
    oauthview token revoke
    oauthview token userinfo
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import typer

from oauthview.output import error, format_result, success, suggest

if TYPE_CHECKING:
    from oauthview.models import Profile, TokenSet
    from oauthview.tokens import AuthorizationFlow


token_app = typer.Typer(no_args_is_help=True)


def _flow(ctx: typer.Context) -> tuple[Profile, AuthorizationFlow]:
    from oauthview.config import require_profile
    from oauthview.exceptions import OAuthViewError
    from oauthview.tokens import AuthorizationFlow

    try:
        profile = require_profile(ctx.obj.get("profile") if ctx.obj else None)
    except OAuthViewError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None
    return profile, AuthorizationFlow(profile.name, profile.provider)


def _token_summary(tokens: TokenSet) -> dict[str, object]:
    return {
        "token_type": tokens.token_type,
        "expires_at": tokens.expires_at.isoformat() if tokens.expires_at else None,
        "expired": tokens.is_expired(),
        "has_refresh_token": tokens.refresh_token is not None,
        "scope": tokens.scope,
    }


@token_app.command("exchange")
def token_exchange(
    ctx: typer.Context,
    code: str = typer.Argument(help="Authorization code from the redirect."),
    verifier: Optional[str] = typer.Option(
        None, "--verifier", help="PKCE code_verifier printed by 'authorize-url'."
    ),
) -> None:
    """Exchange an authorization code for tokens and store them."""
    from oauthview.authorize import PendingAuthorization
    from oauthview.exceptions import OAuthViewError
    from oauthview.models import AuthorizationRequest

    profile, flow = _flow(ctx)
    pending = PendingAuthorization(
        request=AuthorizationRequest(
            authorize_url=profile.provider.authorization_url,
            redirect_uri=profile.provider.redirect_uri,
        ),
        state="",
        code_verifier=verifier,
    )
    try:
        tokens = flow.complete(pending, code)
    except OAuthViewError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f'Tokens stored for "{profile.name}".')
    format_result(_token_summary(tokens))


@token_app.command("status")
def token_status(ctx: typer.Context) -> None:
    """Show whether the active profile holds a usable token."""
    profile, flow = _flow(ctx)
    tokens = flow.store.load()
    if tokens is None:
        format_result({"profile": profile.name, "authorized": False})
        suggest("Sign in, then: oauthview token exchange CODE --verifier VERIFIER")
        return
    format_result({"profile": profile.name, "authorized": not tokens.is_expired(), **_token_summary(tokens)})


@token_app.command("refresh")
def token_refresh(ctx: typer.Context) -> None:
    """Refresh the stored token if needed; fails when a new sign-in is required."""
    from oauthview.exceptions import OAuthViewError

    profile, flow = _flow(ctx)
    try:
        tokens = flow.request_access()
    except OAuthViewError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_result({"profile": profile.name, **_token_summary(tokens)})


@token_app.command("revoke")
def token_revoke(ctx: typer.Context) -> None:
    """Revoke the stored token at the provider and delete it locally."""
    from oauthview.exceptions import OAuthViewError

    profile, flow = _flow(ctx)
    try:
        flow.revoke()
    except OAuthViewError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f'Tokens revoked for "{profile.name}".')


@token_app.command("userinfo")
def token_userinfo(ctx: typer.Context) -> None:
    """Print the signed-in user's OpenID Connect claims."""
    from oauthview.exceptions import OAuthViewError

    _, flow = _flow(ctx)
    try:
        _, claims = flow.login()
    except OAuthViewError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_result(claims)
