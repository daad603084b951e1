from __future__ import annotations

import concurrent.futures
import gc
import threading
import weakref
from typing import Any

import pytest

from webhook_dispatch.dispatcher import WebhookRequest
from webhook_dispatch.errors import (
    UnsupportedOperationError,
    WebhookSendError,
    WebhookTransportError,
)
from webhook_dispatch.future import RequestFuture
from webhook_dispatch.message import WebhookMessage


class RecordingHandle:
    def __init__(self) -> None:
        self.cancel_calls = 0

    def cancel(self) -> None:
        self.cancel_calls += 1


class ManualDispatcher:
    def __init__(self) -> None:
        self.handle = RecordingHandle()
        self.requests: list[WebhookRequest] = []
        self.on_success: Any = None
        self.on_failure: Any = None

    def submit(self, request: WebhookRequest, on_success: Any, on_failure: Any) -> RecordingHandle:
        self.requests.append(request)
        self.on_success = on_success
        self.on_failure = on_failure
        return self.handle


class ClosedDispatcher:
    def submit(self, request: WebhookRequest, on_success: Any, on_failure: Any) -> RecordingHandle:
        raise WebhookTransportError("Dispatcher is closed")


def _request() -> WebhookRequest:
    return WebhookRequest(
        url="https://discord.com/api/webhooks/1/token",
        message=WebhookMessage(content="hi"),
    )


def test_pending_future_submits_request() -> None:
    dispatcher = ManualDispatcher()
    request = _request()

    future: RequestFuture[str] = RequestFuture(dispatcher, request)

    assert dispatcher.requests == [request]
    assert future.request is request
    assert not future.done()
    assert "pending" in repr(future)


def test_dispatcher_success_completes_future() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())

    dispatcher.on_success("sent")

    assert future.done()
    assert future.result(timeout=1) == "sent"
    assert future.exception(timeout=1) is None


def test_dispatcher_failure_fails_future() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())
    error = WebhookSendError("boom", status_code=500)

    dispatcher.on_failure(error)

    assert future.exception(timeout=1) is error
    with pytest.raises(WebhookSendError):
        future.result(timeout=1)
    assert "failed" in repr(future)


def test_completion_is_one_shot() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())

    dispatcher.on_success("first")
    dispatcher.on_success("second")
    dispatcher.on_failure(WebhookTransportError("late"))

    assert future.result(timeout=1) == "first"
    assert future.cancel() is False


def test_cancel_pending_future_once() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())

    assert future.cancel() is True
    assert future.cancelled()
    assert future.done()
    assert dispatcher.handle.cancel_calls == 1

    assert future.cancel() is False
    assert future.cancelled()
    assert dispatcher.handle.cancel_calls == 1


def test_cancelled_future_ignores_late_results() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())
    future.cancel()

    dispatcher.on_success("too late")
    dispatcher.on_failure(WebhookTransportError("too late"))

    assert future.cancelled()
    with pytest.raises(concurrent.futures.CancelledError):
        future.result(timeout=1)


def test_cancellation_is_distinguishable_from_failure() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())
    future.cancel()

    with pytest.raises(concurrent.futures.CancelledError):
        future.exception(timeout=1)


def test_completed_and_failed_constructors() -> None:
    completed = RequestFuture.completed("value")
    error = WebhookTransportError("offline")
    failed: RequestFuture[str] = RequestFuture.failed(error)

    assert completed.result() == "value"
    assert completed.request is None
    assert failed.exception() is error
    assert completed.cancel() is False
    assert failed.cancel() is False
    assert "completed" in repr(completed)


def test_submit_failure_is_delivered_through_future() -> None:
    future: RequestFuture[str] = RequestFuture(ClosedDispatcher(), _request())

    assert future.done()
    assert isinstance(future.exception(), WebhookTransportError)


@pytest.mark.parametrize("state", ["pending", "completed", "failed", "cancelled"])
def test_to_future_is_always_unsupported(state: str) -> None:
    if state == "completed":
        future: RequestFuture[str] = RequestFuture.completed("value")
    elif state == "failed":
        future = RequestFuture.failed(WebhookTransportError("offline"))
    else:
        future = RequestFuture(ManualDispatcher(), _request())
        if state == "cancelled":
            future.cancel()

    with pytest.raises(UnsupportedOperationError):
        future.to_future()


def test_done_callbacks_receive_request_future() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())
    seen: list[RequestFuture[str]] = []

    future.add_done_callback(seen.append)
    assert seen == []
    dispatcher.on_success("sent")

    assert seen == [future]

    future.add_done_callback(seen.append)
    assert seen == [future, future]


def test_cancel_runs_done_callbacks() -> None:
    future: RequestFuture[str] = RequestFuture(ManualDispatcher(), _request())
    seen: list[bool] = []
    future.add_done_callback(lambda done: seen.append(done.cancelled()))

    future.cancel()

    assert seen == [True]


def test_dispatcher_does_not_keep_future_alive() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())
    alive = weakref.ref(future)
    del future
    gc.collect()

    assert alive() is None
    dispatcher.on_success("nobody listening")


def test_result_blocks_until_worker_resolves() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())

    timer = threading.Timer(0.05, dispatcher.on_success, args=("sent",))
    timer.start()
    try:
        assert future.result(timeout=5) == "sent"
    finally:
        timer.cancel()


def test_cancel_racing_success_settles_once() -> None:
    for _ in range(200):
        dispatcher = ManualDispatcher()
        future: RequestFuture[str] = RequestFuture(dispatcher, _request())
        callbacks: list[bool] = []
        future.add_done_callback(lambda done: callbacks.append(done.cancelled()))
        barrier = threading.Barrier(2)
        cancel_results: list[bool] = []

        def complete() -> None:
            barrier.wait()
            dispatcher.on_success("sent")

        def cancel() -> None:
            barrier.wait()
            cancel_results.append(future.cancel())

        threads = [threading.Thread(target=complete), threading.Thread(target=cancel)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert future.done()
        assert len(callbacks) == 1
        if cancel_results == [True]:
            assert future.cancelled()
            assert callbacks == [True]
            with pytest.raises(concurrent.futures.CancelledError):
                future.result(timeout=1)
        else:
            assert cancel_results == [False]
            assert not future.cancelled()
            assert callbacks == [False]
            assert future.result(timeout=1) == "sent"


def test_result_timeout() -> None:
    future: RequestFuture[str] = RequestFuture(ManualDispatcher(), _request())

    with pytest.raises(TimeoutError):
        future.result(timeout=0.01)


@pytest.mark.anyio
async def test_await_resolved_future() -> None:
    future = RequestFuture.completed("value")

    assert await future == "value"


@pytest.mark.anyio
async def test_await_future_resolved_from_another_thread() -> None:
    dispatcher = ManualDispatcher()
    future: RequestFuture[str] = RequestFuture(dispatcher, _request())

    timer = threading.Timer(0.05, dispatcher.on_success, args=("sent",))
    timer.start()
    try:
        assert await future == "sent"
    finally:
        timer.cancel()


@pytest.mark.anyio
async def test_await_failed_future_raises() -> None:
    future: RequestFuture[str] = RequestFuture.failed(WebhookTransportError("offline"))

    with pytest.raises(WebhookTransportError):
        await future
