"""Host-facing bridge that keys running sessions by view handle.

A host shell (a hybrid-app runtime, a desktop toolkit, a test harness) talks
to oauthview through a :class:`SessionBridge`:

* :meth:`~SessionBridge.start_session` creates a :class:`~oauthview.session.BrowserView`
  through the host's ``view_factory``, starts a
  :class:`~oauthview.session.SessionController`, and returns an opaque handle.
* The host forwards its browser callbacks with that handle --
  :meth:`~SessionBridge.on_navigate`, :meth:`~SessionBridge.on_page_finished`,
  :meth:`~SessionBridge.on_load_error`, :meth:`~SessionBridge.on_dismiss`.

Sessions are forgotten as soon as they finish. Late callbacks for a finished
or unknown handle are ignored.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Callable, Optional

from oauthview.delivery import Dispatcher, OAuthReceiver, call_immediately
from oauthview.exceptions import ActivityUnavailableError
from oauthview.models import AuthorizationRequest
from oauthview.session import BrowserView, SessionController

logger = logging.getLogger(__name__)

ViewFactory = Callable[[str, AuthorizationRequest], BrowserView]
"""Called with ``(handle, request)``; returns the view for that session."""


class SessionBridge:
    """Registry of live sessions addressed by string handles.

    Args:
        view_factory: Builds the host's browser view for a new session.
        dispatch: Dispatcher used for every session's receiver calls.
        max_load_retries: Passed to each :class:`SessionController`.
    """

    def __init__(
        self,
        view_factory: ViewFactory,
        dispatch: Dispatcher = call_immediately,
        max_load_retries: int = 4,
    ) -> None:
        self._view_factory = view_factory
        self._dispatch = dispatch
        self._max_load_retries = max_load_retries
        self._sessions: dict[str, SessionController] = {}
        self._lock = threading.Lock()

    def start_session(
        self,
        authorize_url: str,
        redirect_uri: str,
        header_text: str = "Log in",
        receiver: Optional[OAuthReceiver] = None,
    ) -> str:
        """Open a browser view at *authorize_url* and watch for *redirect_uri*.

        Returns:
            The view handle to pass with every later callback.

        Raises:
            ActivityUnavailableError: The host could not create or load the
                view. No session is registered.
        """
        request = AuthorizationRequest(
            authorize_url=authorize_url,
            redirect_uri=redirect_uri,
            header_text=header_text,
        )
        handle = uuid.uuid4().hex
        try:
            view = self._view_factory(handle, request)
        except Exception as exc:
            raise ActivityUnavailableError(f"Host could not create a browser view: {exc}") from exc

        session = SessionController(
            request,
            view,
            receiver=receiver,
            dispatch=self._dispatch,
            max_load_retries=self._max_load_retries,
        )
        # Registered before start() so callbacks fired during load find it.
        with self._lock:
            self._sessions[handle] = session
        try:
            session.start()
        except Exception:
            self._forget(handle)
            raise
        logger.debug("Started session %s for %s", handle, redirect_uri)
        return handle

    def get(self, handle: str) -> Optional[SessionController]:
        with self._lock:
            return self._sessions.get(handle)

    def active_handles(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def on_navigate(self, handle: str, url: str) -> bool:
        """Forward a navigation event; returns True if the URL was intercepted."""
        session = self._lookup(handle)
        if session is None:
            return False
        intercepted = session.handle_navigation(url)
        self._reap(handle, session)
        return intercepted

    def on_page_finished(self, handle: str, url: str) -> bool:
        session = self._lookup(handle)
        if session is None:
            return False
        intercepted = session.handle_page_finished(url)
        self._reap(handle, session)
        return intercepted

    def on_load_error(self, handle: str, url: str, description: str = "") -> None:
        session = self._lookup(handle)
        if session is None:
            return
        session.handle_load_error(url, description)
        self._reap(handle, session)

    def on_dismiss(self, handle: str) -> None:
        """The user closed the view identified by *handle*."""
        session = self._lookup(handle)
        if session is None:
            return
        session.dismiss()
        self._reap(handle, session)

    def set_receiver(self, handle: str, receiver: OAuthReceiver) -> None:
        session = self._lookup(handle)
        if session is not None:
            session.set_receiver(receiver)

    def remove_receiver(self, handle: str) -> None:
        session = self._lookup(handle)
        if session is not None:
            session.remove_receiver()

    def _lookup(self, handle: str) -> Optional[SessionController]:
        session = self.get(handle)
        if session is None:
            logger.debug("Ignoring callback for unknown view handle %s", handle)
        return session

    def _reap(self, handle: str, session: SessionController) -> None:
        if session.finished:
            self._forget(handle)

    def _forget(self, handle: str) -> None:
        with self._lock:
            self._sessions.pop(handle, None)
