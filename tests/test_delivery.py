"""Tests for receivers, dispatchers, and the delivery gate."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from oauthview.delivery import (
    CallbackReceiver,
    DeliveryGate,
    FutureReceiver,
    call_immediately,
    executor_dispatcher,
    loop_dispatcher,
)
from oauthview.exceptions import AuthError, ProviderError
from oauthview.models import DISMISS_ERROR, Outcome

from conftest import RecordingReceiver


class TestDeliveryGate:
    def test_code_outcome(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        assert gate.deliver(Outcome.code("abc123")) is True
        assert receiver.calls == [("code", "abc123")]
        assert gate.delivered is True

    def test_error_outcome(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        gate.deliver(Outcome.error("access_denied"))
        assert receiver.calls == [("error", "access_denied")]

    def test_dismissed_outcome_uses_sentinel(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        gate.deliver(Outcome.dismissed())
        assert receiver.calls == [("error", "dialog_dismissed")]

    def test_second_delivery_is_noop(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        assert gate.deliver(Outcome.code("first")) is True
        assert gate.deliver(Outcome.code("second")) is False
        assert receiver.calls == [("code", "first")]

    def test_dismissal_after_delivery_is_suppressed(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        gate.deliver(Outcome.code("abc"))
        gate.deliver(Outcome.dismissed())
        assert receiver.calls == [("code", "abc")]

    def test_no_receiver_drops_without_consuming(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate()
        assert gate.deliver(Outcome.code("lost")) is False
        assert gate.delivered is False

        gate.register(receiver)
        assert gate.deliver(Outcome.error("later")) is True
        assert receiver.calls == [("error", "later")]

    def test_unregister_drops_outcomes(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        gate.unregister()
        assert gate.receiver is None
        assert gate.deliver(Outcome.code("xyz")) is False
        assert receiver.calls == []

    def test_delivered_flag_never_resets(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        gate.deliver(Outcome.code("abc"))
        gate.unregister()
        gate.register(receiver)
        assert gate.delivered is True
        assert gate.deliver(Outcome.code("again")) is False

    def test_receiver_exception_is_contained(self) -> None:
        def _boom(code: str) -> None:
            raise RuntimeError("receiver bug")

        gate = DeliveryGate(CallbackReceiver(on_code=_boom, on_error=lambda e: None))
        assert gate.deliver(Outcome.code("abc")) is True
        assert gate.delivered is True

    def test_dispatcher_receives_the_call(self, receiver: RecordingReceiver) -> None:
        queued = []
        gate = DeliveryGate(receiver, dispatch=queued.append)
        gate.deliver(Outcome.code("abc"))

        # Fire-and-forget: nothing reaches the receiver until the queue runs.
        assert receiver.calls == []
        assert len(queued) == 1
        queued[0]()
        assert receiver.calls == [("code", "abc")]

    def test_failing_dispatcher_does_not_raise(self, receiver: RecordingReceiver) -> None:
        def _closed_loop(fn):
            raise RuntimeError("Event loop is closed")

        gate = DeliveryGate(receiver, dispatch=_closed_loop)
        assert gate.deliver(Outcome.code("abc")) is True
        assert gate.deliver(Outcome.dismissed()) is False

    def test_concurrent_outcomes_deliver_once(self, receiver: RecordingReceiver) -> None:
        gate = DeliveryGate(receiver)
        barrier = threading.Barrier(8)
        results: list[bool] = []
        lock = threading.Lock()

        def _race(outcome: Outcome) -> None:
            barrier.wait()
            delivered = gate.deliver(outcome)
            with lock:
                results.append(delivered)

        threads = [
            threading.Thread(
                target=_race,
                args=(Outcome.code(str(i)) if i % 2 else Outcome.dismissed(),),
            )
            for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(receiver.calls) == 1


class TestDispatchers:
    def test_call_immediately(self) -> None:
        calls = []
        call_immediately(lambda: calls.append(1))
        assert calls == [1]

    def test_loop_dispatcher_runs_on_loop_thread(self) -> None:
        async def _scenario() -> tuple[str, int]:
            loop = asyncio.get_running_loop()
            loop_thread = threading.get_ident()
            received: asyncio.Future[tuple[str, int]] = loop.create_future()

            receiver = CallbackReceiver(
                on_code=lambda code: received.set_result((code, threading.get_ident())),
                on_error=lambda err: received.set_exception(AssertionError(err)),
            )
            gate = DeliveryGate(receiver, dispatch=loop_dispatcher(loop))

            # Deliver from a foreign thread, as a browser callback would.
            worker = threading.Thread(target=gate.deliver, args=(Outcome.code("abc"),))
            worker.start()
            worker.join()

            code, thread_id = await asyncio.wait_for(received, timeout=5)
            assert thread_id == loop_thread
            return code, thread_id

        code, _ = asyncio.run(_scenario())
        assert code == "abc"

    def test_executor_dispatcher(self, receiver: RecordingReceiver) -> None:
        with ThreadPoolExecutor(max_workers=1) as executor:
            gate = DeliveryGate(receiver, dispatch=executor_dispatcher(executor))
            gate.deliver(Outcome.error("access_denied"))
        assert receiver.calls == [("error", "access_denied")]


class TestFutureReceiver:
    def test_code_resolves_future(self) -> None:
        receiver = FutureReceiver()
        receiver.receive_code("abc")
        assert receiver.result(timeout=1) == "abc"

    def test_provider_error(self) -> None:
        receiver = FutureReceiver()
        receiver.receive_error("access_denied")
        with pytest.raises(ProviderError) as exc_info:
            receiver.result(timeout=1)
        assert exc_info.value.error == "access_denied"

    def test_dismissal_is_auth_error(self) -> None:
        receiver = FutureReceiver()
        receiver.receive_error(DISMISS_ERROR)
        with pytest.raises(AuthError) as exc_info:
            receiver.result(timeout=1)
        assert not isinstance(exc_info.value, ProviderError)

    def test_only_first_result_counts(self) -> None:
        receiver = FutureReceiver()
        receiver.receive_code("first")
        receiver.receive_error("late")
        assert receiver.result(timeout=1) == "first"

    def test_awaitable_through_wrap_future(self) -> None:
        receiver = FutureReceiver()

        async def _wait() -> str:
            threading.Timer(0.01, receiver.receive_code, args=("async-code",)).start()
            return await asyncio.wait_for(asyncio.wrap_future(receiver.future), timeout=5)

        assert asyncio.run(_wait()) == "async-code"
