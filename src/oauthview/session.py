"""Session controller for one embedded-browser authorization attempt.

A :class:`SessionController` owns one
:class:`~oauthview.models.AuthorizationRequest` and one :class:`BrowserView`.
It opens the view at the authorize URL, routes every navigation event through
a :class:`~oauthview.interceptor.RedirectInterceptor`, and hands the first
terminal outcome to a :class:`~oauthview.delivery.DeliveryGate`.

State machine::

    IDLE --start()--> LOADING <--no match-- INTERCEPTING
                        |  \\--navigation-->     |
                        |                       match
                        |                        v
                        |                    DELIVERED --view closed--> CLOSED
                        \\--dismiss()--> DISMISSED -------------------> CLOSED

Once a session leaves LOADING every further navigation, load error, or
dismissal is ignored.

The browser itself is a collaborator supplied by the host: anything that
implements :class:`BrowserView`. :class:`RecordingView` is a headless
implementation used by the ``replay`` command and the test-suite.
"""

from __future__ import annotations

import enum
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from oauthview.delivery import DeliveryGate, Dispatcher, OAuthReceiver, call_immediately
from oauthview.exceptions import (
    ActivityUnavailableError,
    InvalidUsageError,
    MalformedRedirectURLError,
)
from oauthview.interceptor import RedirectInterceptor
from oauthview.models import AuthorizationRequest, NavigationEvent, Outcome

logger = logging.getLogger(__name__)

MALFORMED_REDIRECT_ERROR = "malformed_redirect_url"
INTERNAL_ERROR = "internal_error"
CONNECTION_ERROR = "connection_error"


class BrowserView(ABC):
    """The embedded browser as seen by a session.

    Hosts wrap their native web view in this interface and forward its
    navigation, page-finished, load-error, and closed callbacks to the
    controller (usually through :class:`~oauthview.bridge.SessionBridge`).
    """

    @abstractmethod
    def load(self, url: str) -> None:
        """Start loading *url*. Raise if the view cannot be shown."""
        ...

    @abstractmethod
    def stop_loading(self) -> None:
        """Abort the navigation currently in progress."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Dismiss the view."""
        ...

    def set_header(self, text: str) -> None:
        """Show *text* above the page. Optional for headless views."""


class RecordingView(BrowserView):
    """Headless :class:`BrowserView` that records what the session asked of it.

    Args:
        on_close: Called once when the view is closed, mirroring the
            "view closed" callback a real host would fire.
        fail_load: Make :meth:`load` raise, simulating a host that cannot
            launch the browser.
    """

    def __init__(
        self,
        on_close: Optional[Callable[[], None]] = None,
        fail_load: bool = False,
    ) -> None:
        self.loaded: list[str] = []
        self.stopped = 0
        self.closed = False
        self.header: Optional[str] = None
        self._on_close = on_close
        self._fail_load = fail_load

    def load(self, url: str) -> None:
        if self._fail_load:
            raise RuntimeError("no browser available")
        self.loaded.append(url)

    def stop_loading(self) -> None:
        self.stopped += 1

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()

    def set_header(self, text: str) -> None:
        self.header = text


class SessionState(str, enum.Enum):
    """Lifecycle states of a :class:`SessionController`."""

    IDLE = "idle"
    LOADING = "loading"
    INTERCEPTING = "intercepting"
    DELIVERED = "delivered"
    DISMISSED = "dismissed"
    CLOSED = "closed"


class SessionController:
    """Drive one authorization attempt from authorize page to single outcome.

    Args:
        request: What to load and which redirect to watch for.
        view: The host's browser view.
        receiver: Initial receiver; may also be set later with
            :meth:`set_receiver`.
        dispatch: How receiver calls reach the caller's context.
        max_load_retries: How many times a failed page load reloads the
            authorize URL before the session fails with
            ``"connection_error"``.

    Example::

        session = SessionController(request, view, receiver)
        session.start()
        # host callbacks:
        session.handle_navigation("https://accounts.example/signin")   # False
        session.handle_navigation("https://app.example/cb?code=abc")   # True
    """

    def __init__(
        self,
        request: AuthorizationRequest,
        view: BrowserView,
        receiver: Optional[OAuthReceiver] = None,
        dispatch: Dispatcher = call_immediately,
        max_load_retries: int = 4,
    ) -> None:
        self._request = request
        self._view = view
        self._interceptor = RedirectInterceptor(request.redirect_uri)
        self._gate = DeliveryGate(receiver, dispatch)
        self._max_load_retries = max_load_retries
        self._load_retries = 0
        self._state = SessionState.IDLE
        self._outcome: Optional[Outcome] = None
        self._lock = threading.Lock()

    @property
    def request(self) -> AuthorizationRequest:
        return self._request

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def outcome(self) -> Optional[Outcome]:
        """The terminal outcome, once one has been produced."""
        return self._outcome

    @property
    def delivered(self) -> bool:
        """Whether a receiver was actually handed the outcome."""
        return self._gate.delivered

    @property
    def finished(self) -> bool:
        return self._state in (
            SessionState.DELIVERED,
            SessionState.DISMISSED,
            SessionState.CLOSED,
        )

    def set_receiver(self, receiver: OAuthReceiver) -> None:
        self._gate.register(receiver)

    def remove_receiver(self) -> None:
        """Unregister the receiver. Outcomes produced afterwards are dropped."""
        self._gate.unregister()

    def start(self) -> SessionController:
        """Show the view and load the authorize URL.

        Raises:
            InvalidUsageError: The session was already started.
            ActivityUnavailableError: The view could not load the page. The
                session stays IDLE and nothing is delivered.
        """
        if self._state != SessionState.IDLE:
            raise InvalidUsageError(f"Session already started (state: {self._state.value})")
        try:
            self._view.set_header(self._request.header_text)
            self._view.load(self._request.authorize_url)
        except ActivityUnavailableError:
            raise
        except Exception as exc:
            raise ActivityUnavailableError(f"Could not open browser view: {exc}") from exc
        self._state = SessionState.LOADING
        logger.debug("Session loading %s", self._request.authorize_url)
        return self

    def handle_navigation(self, url: str) -> bool:
        """Process one navigation event.

        Returns:
            ``True`` if the URL was intercepted and the browser was told
            to stop loading it, ``False`` if navigation should proceed.
        """
        with self._lock:
            if self._state != SessionState.LOADING:
                logger.debug("Ignoring navigation in state %s: %s", self._state.value, url)
                return False
            self._state = SessionState.INTERCEPTING

        try:
            outcome = self._interceptor.intercept(url)
        except MalformedRedirectURLError as exc:
            logger.warning("%s", exc)
            outcome = Outcome.error(MALFORMED_REDIRECT_ERROR)
        except Exception:
            logger.exception("Interceptor failed on %s", url)
            outcome = Outcome.error(INTERNAL_ERROR)

        if outcome is None:
            with self._lock:
                if self._state == SessionState.INTERCEPTING:
                    self._state = SessionState.LOADING
            return False

        return self._complete(outcome, stop_loading=True)

    # Page-finished callbacks carry the same contract as navigation ones.
    handle_page_finished = handle_navigation

    def handle_event(self, event: NavigationEvent) -> bool:
        return self.handle_navigation(event.url)

    def handle_load_error(self, url: str, description: str = "") -> None:
        """React to a page that failed to load.

        A failure on the redirect URL itself (the redirect target often is
        not a reachable server) is treated as a navigation to it. Any other
        failure reloads the authorize URL until ``max_load_retries`` is
        exhausted, then fails the session with ``"connection_error"``.
        """
        if self._state != SessionState.LOADING:
            return
        if self._interceptor.matches(url):
            self.handle_navigation(url)
            return

        if self._load_retries < self._max_load_retries:
            self._load_retries += 1
            logger.warning(
                "Load of %s failed (%s), retry %d/%d",
                url, description or "unknown error", self._load_retries, self._max_load_retries,
            )
            try:
                self._view.load(self._request.authorize_url)
                return
            except Exception:
                logger.exception("Reloading the authorize page failed")

        self._complete(Outcome.error(CONNECTION_ERROR))

    def dismiss(self) -> None:
        """The user closed the view before any redirect matched.

        Delivers the dismissal outcome unless the session already finished.
        """
        outcome = Outcome.dismissed()
        if not self._claim(outcome, SessionState.DISMISSED):
            logger.debug("Dismissal ignored, session already %s", self._state.value)
            return
        self._gate.deliver(outcome)
        self._state = SessionState.CLOSED

    def cancel(self) -> None:
        """Close the view from the host side and report a dismissal."""
        if self.finished:
            return
        self.dismiss()
        self._call_view(self._view.close)

    def _claim(self, outcome: Outcome, state: SessionState) -> bool:
        """Record *outcome* as terminal unless another one got there first."""
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
            self._state = state
            return True

    def _complete(self, outcome: Outcome, stop_loading: bool = False) -> bool:
        # Claim and deliver before touching the view: hosts may fire their
        # "closed" callback from inside stop_loading() or close().
        if not self._claim(outcome, SessionState.DELIVERED):
            logger.debug("Outcome %s ignored, session already %s", outcome.kind.value, self._state.value)
            return False
        self._gate.deliver(outcome)
        if stop_loading:
            self._call_view(self._view.stop_loading)
        self._call_view(self._view.close)
        self._state = SessionState.CLOSED
        return True

    def _call_view(self, method: Callable[[], None]) -> None:
        try:
            method()
        except Exception:
            logger.exception("Browser view call %s failed", getattr(method, "__name__", method))
