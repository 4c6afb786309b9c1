"""Receivers, dispatchers, and the at-most-once delivery gate.

This module provides the outbound half of a session:

* :class:`OAuthReceiver` -- the interface a caller implements to learn the
  result of an authorization attempt, plus two ready-made receivers,
  :class:`CallbackReceiver` and :class:`FutureReceiver`.
* Dispatchers -- callables that hand a zero-argument function off to the
  execution context the caller expects. :func:`call_immediately` runs it
  inline, :func:`loop_dispatcher` marshals it onto an :mod:`asyncio` event
  loop, and :func:`executor_dispatcher` submits it to an executor.
  Delivery through a dispatcher is fire-and-forget.
* :class:`DeliveryGate` -- guarantees that at most one outcome per session
  reaches the receiver, whatever order the navigation and dismissal
  callbacks arrive in.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from typing import Callable, Optional

from oauthview.exceptions import AuthError, ProviderError
from oauthview.models import DISMISS_ERROR, Outcome, OutcomeKind

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]


class OAuthReceiver(ABC):
    """Receives the terminal result of an authorization session.

    Exactly one of the two methods is called at most once per session.
    When the user closes the browser view, :meth:`receive_error` is called
    with :data:`~oauthview.models.DISMISS_ERROR`.
    """

    @abstractmethod
    def receive_code(self, code: str) -> None:
        """Called with the authorization code from the redirect URL."""
        ...

    @abstractmethod
    def receive_error(self, error: str) -> None:
        """Called with the provider's ``error`` value or a local error string."""
        ...


class CallbackReceiver(OAuthReceiver):
    """Adapt a pair of plain callables to :class:`OAuthReceiver`."""

    def __init__(
        self,
        on_code: Callable[[str], None],
        on_error: Callable[[str], None],
    ) -> None:
        self._on_code = on_code
        self._on_error = on_error

    def receive_code(self, code: str) -> None:
        self._on_code(code)

    def receive_error(self, error: str) -> None:
        self._on_error(error)


class FutureReceiver(OAuthReceiver):
    """Resolve a :class:`concurrent.futures.Future` with the session result.

    The code becomes the future's result. A dismissal fails it with
    :class:`~oauthview.exceptions.AuthError`; any other error fails it with
    :class:`~oauthview.exceptions.ProviderError` carrying the raw value.
    Coroutines can await it through :func:`asyncio.wrap_future`.

    Example::

        receiver = FutureReceiver()
        bridge.start_session(url, redirect_uri, "Log in", receiver)
        code = receiver.future.result(timeout=300)
    """

    def __init__(self) -> None:
        self.future: Future[str] = Future()

    def receive_code(self, code: str) -> None:
        if not self.future.done():
            self.future.set_result(code)

    def receive_error(self, error: str) -> None:
        if self.future.done():
            return
        if error == DISMISS_ERROR:
            self.future.set_exception(AuthError("Sign-in window was closed by the user"))
        else:
            self.future.set_exception(ProviderError(error))

    def result(self, timeout: Optional[float] = None) -> str:
        return self.future.result(timeout=timeout)


# --- Dispatchers ---


def call_immediately(fn: Callable[[], None]) -> None:
    """Run *fn* on the calling thread."""
    fn()


def loop_dispatcher(loop: asyncio.AbstractEventLoop) -> Dispatcher:
    """Return a dispatcher that schedules work on *loop* from any thread."""

    def _dispatch(fn: Callable[[], None]) -> None:
        loop.call_soon_threadsafe(fn)

    return _dispatch


def executor_dispatcher(executor: Executor) -> Dispatcher:
    """Return a dispatcher that submits work to *executor*."""

    def _dispatch(fn: Callable[[], None]) -> None:
        executor.submit(fn)

    return _dispatch


class DeliveryGate:
    """Deliver at most one :class:`~oauthview.models.Outcome` to a receiver.

    The ``delivered`` flag is checked and set under a lock in one step, so
    when a redirect match and a user dismissal race each other only the
    first one reaches the receiver. Once set the flag never resets.

    Outcomes arriving while no receiver is registered are dropped, not
    queued, and do not consume the gate.

    Args:
        receiver: Initial receiver, or ``None``.
        dispatch: Hands the receiver call off to the caller's context.
            Defaults to :func:`call_immediately`.
    """

    def __init__(
        self,
        receiver: Optional[OAuthReceiver] = None,
        dispatch: Dispatcher = call_immediately,
    ) -> None:
        self._receiver = receiver
        self._dispatch = dispatch
        self._delivered = False
        self._lock = threading.Lock()

    @property
    def delivered(self) -> bool:
        return self._delivered

    @property
    def receiver(self) -> Optional[OAuthReceiver]:
        return self._receiver

    def register(self, receiver: OAuthReceiver) -> None:
        with self._lock:
            self._receiver = receiver

    def unregister(self) -> None:
        """Remove the receiver; later outcomes are dropped silently."""
        with self._lock:
            self._receiver = None

    def deliver(self, outcome: Outcome) -> bool:
        """Hand *outcome* to the receiver unless the gate is closed.

        Returns:
            ``True`` if the outcome was dispatched, ``False`` if it was
            dropped (already delivered, or no receiver registered).
        """
        with self._lock:
            if self._delivered:
                logger.debug("Outcome %s suppressed: session already delivered", outcome.kind.value)
                return False
            receiver = self._receiver
            if receiver is None:
                logger.debug("Outcome %s dropped: no receiver registered", outcome.kind.value)
                return False
            self._delivered = True

        if outcome.kind == OutcomeKind.CODE:
            call = lambda: receiver.receive_code(outcome.value)  # noqa: E731
        elif outcome.kind == OutcomeKind.ERROR:
            call = lambda: receiver.receive_error(outcome.value)  # noqa: E731
        else:
            call = lambda: receiver.receive_error(DISMISS_ERROR)  # noqa: E731

        logger.info("Delivering %s outcome", outcome.kind.value)
        try:
            self._dispatch(_guarded(call))
        except Exception:
            # e.g. the target event loop is already closed
            logger.exception("Could not dispatch %s outcome", outcome.kind.value)
        return True


def _guarded(call: Callable[[], None]) -> Callable[[], None]:
    """Wrap a receiver call so its exceptions are logged instead of propagated."""

    def _run() -> None:
        try:
            call()
        except Exception:
            logger.exception("Receiver raised while handling an outcome")

    return _run
