from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from webhook_dispatch.config import DEFAULT_MAX_WORKERS
from webhook_dispatch.errors import (
    SourceConsumedError,
    WebhookSendError,
    WebhookTransportError,
)
from webhook_dispatch.message import WebhookMessage
from webhook_dispatch.parsing import as_dict, as_float
from webhook_dispatch.payload import build_request
from webhook_dispatch.types import ReceivedMessage, parse_message_payload

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[BaseException], None]


@dataclass(frozen=True)
class WebhookRequest:
    url: str
    message: WebhookMessage
    params: dict[str, str] = field(default_factory=dict)


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


class Dispatcher(Protocol):
    def submit(
        self,
        request: WebhookRequest,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> CancelHandle: ...


class _PendingSend:
    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._job: Future[None] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def attach(self, job: Future[None]) -> None:
        self._job = job
        if self.cancelled:
            job.cancel()

    def cancel(self) -> None:
        self._cancelled.set()
        if self._job is not None:
            # Fails once the worker has started; the flag still stops it
            # before the request is sent.
            self._job.cancel()


class ThreadPoolDispatcher:
    def __init__(
        self,
        http_client: httpx.Client,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        owns_http_client: bool = False,
    ) -> None:
        self._http_client = http_client
        self._owns_http_client = owns_http_client
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="webhook-dispatch",
        )
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(
        self,
        request: WebhookRequest,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> CancelHandle:
        handle = _PendingSend()
        with self._lock:
            if self._closed:
                raise WebhookTransportError("Dispatcher is closed")
            job = self._executor.submit(
                self._execute, request, handle, on_success, on_failure
            )
        job.add_done_callback(
            lambda done: _on_job_done(done, request, handle, on_failure)
        )
        handle.attach(job)
        return handle

    def close(self, *, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
        if self._owns_http_client:
            self._http_client.close()

    def _execute(
        self,
        request: WebhookRequest,
        handle: _PendingSend,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        if handle.cancelled:
            _close_attachments(request.message)
            return

        try:
            value = self._send(request, handle)
        except WebhookTransportError as exc:
            on_failure(exc)
            return
        except Exception as exc:
            logger.exception("webhook_dispatch_unexpected_error")
            on_failure(exc)
            return

        if not handle.cancelled:
            on_success(value)

    def _send(
        self, request: WebhookRequest, handle: _PendingSend
    ) -> ReceivedMessage | None:
        try:
            http_request = build_request(
                self._http_client,
                request.url,
                request.message,
                params=request.params or None,
            )
        except SourceConsumedError as exc:
            raise WebhookTransportError(str(exc)) from exc
        except OSError as exc:
            raise WebhookTransportError(
                "Webhook send failed while reading an attachment"
            ) from exc

        if handle.cancelled:
            logger.debug("webhook_send_cancelled_before_transmit")
            return None

        try:
            response = self._http_client.send(http_request)
        except httpx.RequestError as exc:
            logger.warning("webhook_send_network_error error=%s", type(exc).__name__)
            raise WebhookTransportError(
                "Webhook send failed due to network error."
            ) from exc

        if response.status_code >= 400:
            detail = _extract_response_detail(response)
            retry_after = _retry_after(response)
            logger.warning(
                "webhook_send_failed status=%d retry_after=%s",
                response.status_code,
                retry_after,
            )
            raise WebhookSendError(
                f"Webhook send failed with status {response.status_code}: {detail}",
                status_code=response.status_code,
                retry_after=retry_after,
            )

        if not response.content:
            return None
        try:
            return parse_message_payload(response.json())
        except ValueError:
            return None


def _on_job_done(
    job: Future[None],
    request: WebhookRequest,
    handle: _PendingSend,
    on_failure: FailureCallback,
) -> None:
    if not job.cancelled():
        return
    _close_attachments(request.message)
    if not handle.cancelled:
        # Dropped from the queue by close().
        on_failure(WebhookTransportError("Dispatcher closed before the request was sent"))


def _close_attachments(message: WebhookMessage) -> None:
    for attachment in message.attachments or ():
        if attachment is not None:
            attachment.close()


def _retry_after(response: httpx.Response) -> float | None:
    header = as_float(response.headers.get("Retry-After"))
    if header is not None:
        return header
    try:
        payload = response.json()
    except ValueError:
        return None
    return as_float(as_dict(payload).get("retry_after"))


def _extract_response_detail(response: httpx.Response) -> str:
    detail = ""
    try:
        payload = response.json()
        if isinstance(payload, dict):
            detail = str(payload.get("message") or payload.get("error") or payload)
        else:
            detail = str(payload)
    except ValueError:
        detail = response.text

    detail = " ".join(detail.strip().split())
    if not detail:
        return "No error detail"
    if len(detail) > 240:
        return f"{detail[:240]}..."
    return detail
