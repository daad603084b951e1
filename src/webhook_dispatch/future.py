from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import weakref
from collections.abc import Callable, Generator
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from webhook_dispatch.errors import UnsupportedOperationError, WebhookTransportError

if TYPE_CHECKING:
    from webhook_dispatch.dispatcher import CancelHandle, Dispatcher, WebhookRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestFuture(Generic[T]):
    """Completion handle for one submitted webhook request.

    Only the dispatcher callbacks registered at construction and ``cancel()``
    can resolve it. The first terminal transition wins; later results from
    the dispatcher are dropped.
    """

    def __init__(self, dispatcher: Dispatcher, request: WebhookRequest) -> None:
        self._future: concurrent.futures.Future[T] = concurrent.futures.Future()
        self._lock = threading.RLock()
        self.request: WebhookRequest | None = request
        self._cancel_handle: CancelHandle | None = None

        # The dispatcher only holds weak references back to this future.
        ref = weakref.ref(self)

        def on_success(value: T) -> None:
            future = ref()
            if future is not None:
                future._set_result(value)

        def on_failure(error: BaseException) -> None:
            future = ref()
            if future is not None:
                future._set_exception(error)

        try:
            self._cancel_handle = dispatcher.submit(request, on_success, on_failure)
        except WebhookTransportError as exc:
            self._set_exception(exc)

    @classmethod
    def completed(cls, value: T) -> RequestFuture[T]:
        future = cls._unbound()
        future._set_result(value)
        return future

    @classmethod
    def failed(cls, error: BaseException) -> RequestFuture[T]:
        future = cls._unbound()
        future._set_exception(error)
        return future

    @classmethod
    def _unbound(cls) -> RequestFuture[T]:
        future = cls.__new__(cls)
        future._future = concurrent.futures.Future()
        future._lock = threading.RLock()
        future.request = None
        future._cancel_handle = None
        return future

    def cancel(self) -> bool:
        """Cancel the request; ``False`` once the future is already resolved.

        The remote service may still deliver a message that was already
        being transmitted.
        """
        with self._lock:
            if self._future.done():
                return False
            if self._cancel_handle is not None:
                self._cancel_handle.cancel()
            cancelled = self._future.cancel()

        if cancelled:
            logger.debug(
                "request_future_cancelled has_request=%s", self.request is not None
            )
        return cancelled

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> T:
        return self._future.result(timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._future.exception(timeout)

    def add_done_callback(self, fn: Callable[[RequestFuture[T]], Any]) -> None:
        self._future.add_done_callback(lambda _: fn(self))

    def to_future(self) -> concurrent.futures.Future[T]:
        raise UnsupportedOperationError(
            "Access to the underlying future is not supported; "
            "only the dispatcher may resolve a request future."
        )

    def __await__(self) -> Generator[Any, None, T]:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()

        def wake(_: RequestFuture[T]) -> None:
            loop.call_soon_threadsafe(_set_waiter_done, waiter)

        self.add_done_callback(wake)
        try:
            yield from waiter.__await__()
        except asyncio.CancelledError:
            self.cancel()
            raise
        return self._future.result()

    def __repr__(self) -> str:
        return f"<RequestFuture state={self._state_name()}>"

    def _set_result(self, value: T) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_result(value)
        return True

    def _set_exception(self, error: BaseException) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_exception(error)
        return True

    def _state_name(self) -> str:
        if not self._future.done():
            return "pending"
        if self._future.cancelled():
            return "cancelled"
        if self._future.exception() is not None:
            return "failed"
        return "completed"


def _set_waiter_done(waiter: asyncio.Future[None]) -> None:
    if not waiter.done():
        waiter.set_result(None)
