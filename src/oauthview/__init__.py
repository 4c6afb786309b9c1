"""oauthview -- embedded-browser OAuth2 sign-in with redirect interception.

A host app shows the provider's authorize page in an embedded browser and
forwards the browser's navigation events to oauthview. As soon as the
browser reaches the registered redirect URI, the authorization code (or the
provider's error) is extracted and exactly one result is handed to the
caller's receiver. Closing the view first reports ``"dialog_dismissed"``.

Typical usage::

    from oauthview.bridge import SessionBridge
    from oauthview.delivery import FutureReceiver

    bridge = SessionBridge(view_factory=make_native_view)
    receiver = FutureReceiver()
    handle = bridge.start_session(authorize_url, redirect_uri, "Log in", receiver)
    # host forwards callbacks: bridge.on_navigate(handle, url), bridge.on_dismiss(handle)
    code = receiver.result(timeout=300)

Modules:
    bridge: Handle-keyed entry point for host shells.
    session: Session controller and the browser view interface.
    interceptor: Redirect URL classification.
    delivery: Receivers, dispatchers, and the at-most-once delivery gate.
    urlparams: Query-string extraction.
    authorize: Authorize URL construction with state and PKCE.
    tokens: Token endpoint client and the token lifecycle.
    token_store: Per-profile token persistence.
    config: XDG-aware configuration and profile management.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"
