"""Flow commands -- build authorize URLs and exercise redirect interception.

* ``oauthview authorize-url`` -- the URL to open for the active profile,
  with the ``state`` and PKCE verifier needed to redeem the code later.
* ``oauthview intercept URL`` -- classify a single navigation URL.
* ``oauthview replay URL...`` -- run a headless session over a sequence of
  navigation URLs and report the single outcome it produces.

``replay`` drives the same :class:`~oauthview.session.SessionController`
a host app uses, with a :class:`~oauthview.session.RecordingView` in place
of a real browser.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from oauthview.exit_codes import EXIT_AUTH_FAILURE
from oauthview.output import error, format_result, info


def _profile_from_ctx(ctx: typer.Context) -> Optional[str]:
    return ctx.obj.get("profile") if ctx.obj else None


def _redirect_uri_or_profile(ctx: typer.Context, redirect_uri: Optional[str]) -> str:
    """Use the explicit redirect URI, else the active profile's."""
    if redirect_uri:
        return redirect_uri
    from oauthview.config import require_profile
    from oauthview.exceptions import OAuthViewError

    try:
        return require_profile(_profile_from_ctx(ctx)).provider.redirect_uri
    except OAuthViewError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None


def authorize_url_command(
    ctx: typer.Context,
    header_text: Optional[str] = typer.Option(None, "--header-text", help="Override the view title."),
) -> None:
    """Build the authorize URL for the active profile.

    Prints the URL together with the ``state`` value and PKCE
    ``code_verifier``; keep the verifier for ``oauthview token exchange``.
    """
    from oauthview.authorize import build_request
    from oauthview.config import require_profile
    from oauthview.exceptions import OAuthViewError

    try:
        profile = require_profile(_profile_from_ctx(ctx))
        pending = build_request(profile.provider, header_text=header_text)
    except OAuthViewError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_result(
        {
            "profile": profile.name,
            "authorize_url": pending.request.authorize_url,
            "redirect_uri": pending.request.redirect_uri,
            "state": pending.state,
            "code_verifier": pending.code_verifier,
        }
    )


def intercept_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Navigation URL to classify."),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Redirect prefix (defaults to the active profile's)."
    ),
) -> None:
    """Classify one URL as code, error, or no match."""
    from oauthview.exceptions import MalformedRedirectURLError
    from oauthview.interceptor import RedirectInterceptor

    interceptor = RedirectInterceptor(_redirect_uri_or_profile(ctx, redirect_uri))
    try:
        outcome = interceptor.intercept(url)
    except MalformedRedirectURLError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if outcome is None:
        format_result({"match": False, "kind": None, "value": None})
    else:
        format_result({"match": True, "kind": outcome.kind.value, "value": outcome.value})


def replay_command(
    ctx: typer.Context,
    urls: list[str] = typer.Argument(help="Navigation URLs, in the order the browser reports them."),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Redirect prefix (defaults to the active profile's)."
    ),
    authorize_url: str = typer.Option(
        "about:blank", "--authorize-url", help="URL the session loads first."
    ),
    dismiss: bool = typer.Option(
        False, "--dismiss", help="Close the view after the last URL."
    ),
    no_receiver: bool = typer.Option(
        False, "--no-receiver", help="Unregister the receiver before replaying."
    ),
) -> None:
    """Replay navigation events through a headless session.

    Exits non-zero when the session ends with an error or a dismissal.
    """
    from oauthview.delivery import CallbackReceiver
    from oauthview.models import AuthorizationRequest, OutcomeKind
    from oauthview.session import RecordingView, SessionController

    request = AuthorizationRequest(
        authorize_url=authorize_url,
        redirect_uri=_redirect_uri_or_profile(ctx, redirect_uri),
    )
    received: dict[str, Any] = {}
    receiver = CallbackReceiver(
        on_code=lambda code: received.update(kind="code", value=code),
        on_error=lambda err: received.update(kind="error", value=err),
    )

    session: Optional[SessionController] = None

    def _view_closed() -> None:
        if session is not None:
            session.dismiss()

    view = RecordingView(on_close=_view_closed)
    session = SessionController(request, view, receiver=receiver)
    if no_receiver:
        session.remove_receiver()
    session.start()

    intercepted_at: Optional[int] = None
    for index, url in enumerate(urls):
        if session.finished:
            info(f"Ignoring event after session end: {url}")
            continue
        if session.handle_navigation(url):
            intercepted_at = index

    if dismiss:
        view.close()

    outcome = session.outcome
    format_result(
        {
            "state": session.state.value,
            "outcome": outcome.kind.value if outcome else None,
            "value": outcome.value if outcome else None,
            "intercepted_at": intercepted_at,
            "received": received or None,
        }
    )
    if outcome is not None and outcome.kind != OutcomeKind.CODE:
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
