from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from types import TracebackType

import httpx

from webhook_dispatch.config import DEFAULT_API_BASE_URL, Settings
from webhook_dispatch.dispatcher import Dispatcher, ThreadPoolDispatcher, WebhookRequest
from webhook_dispatch.embeds import EmbedLike
from webhook_dispatch.errors import InvalidArgumentError, WebhookTransportError
from webhook_dispatch.future import RequestFuture
from webhook_dispatch.message import WebhookMessage, WebhookMessageBuilder
from webhook_dispatch.types import ReceivedMessage

logger = logging.getLogger(__name__)

_WEBHOOK_URL_PATTERN = re.compile(
    r"^(?P<base>https?://.+?)/webhooks/(?P<id>\d+)/(?P<token>[\w.-]+)/?$"
)


class WebhookClient:
    def __init__(
        self,
        webhook_id: int,
        token: str,
        *,
        dispatcher: Dispatcher,
        base_url: str = DEFAULT_API_BASE_URL,
        wait: bool = True,
        owns_dispatcher: bool = False,
    ) -> None:
        if not token or not token.strip():
            raise InvalidArgumentError("Webhook token may not be blank")
        self.webhook_id = int(webhook_id)
        self._token = token.strip()
        self._dispatcher = dispatcher
        self._base_url = base_url.rstrip("/")
        self._wait = wait
        self._owns_dispatcher = owns_dispatcher
        self._closed = False

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        dispatcher: Dispatcher,
        wait: bool = True,
        owns_dispatcher: bool = False,
    ) -> WebhookClient:
        webhook_id, token, base_url = parse_webhook_url(url)
        return cls(
            webhook_id,
            token,
            dispatcher=dispatcher,
            base_url=base_url,
            wait=wait,
            owns_dispatcher=owns_dispatcher,
        )

    @property
    def url(self) -> str:
        return f"{self._base_url}/webhooks/{self.webhook_id}/{self._token}"

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: WebhookMessage) -> RequestFuture[ReceivedMessage | None]:
        if message is None:
            raise InvalidArgumentError("Message may not be None")
        if self._closed:
            return RequestFuture.failed(
                WebhookTransportError("Webhook client is closed")
            )

        params = {"wait": "true"} if self._wait else {}
        request = WebhookRequest(url=self.url, message=message, params=params)
        logger.debug(
            "webhook_send_queued webhook_id=%s multipart=%s",
            self.webhook_id,
            message.is_file,
        )
        return RequestFuture(self._dispatcher, request)

    def send_text(self, content: str) -> RequestFuture[ReceivedMessage | None]:
        return self.send(WebhookMessageBuilder().set_content(content).build())

    def send_embeds(self, *embeds: EmbedLike) -> RequestFuture[ReceivedMessage | None]:
        return self.send(WebhookMessage.of(*embeds))

    def send_files(
        self, attachments: Mapping[str, object]
    ) -> RequestFuture[ReceivedMessage | None]:
        return self.send(WebhookMessage.files(attachments))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._dispatcher, "close", None)
        if self._owns_dispatcher and callable(close):
            close()

    def __enter__(self) -> WebhookClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<WebhookClient webhook_id={self.webhook_id}>"


def parse_webhook_url(url: str) -> tuple[int, str, str]:
    match = _WEBHOOK_URL_PATTERN.match(url.strip()) if url else None
    if match is None:
        raise InvalidArgumentError(
            "Webhook URL must look like https://host/api/webhooks/<id>/<token>"
        )
    return int(match.group("id")), match.group("token"), match.group("base")


def create_client(
    settings: Settings, *, transport: httpx.BaseTransport | None = None
) -> WebhookClient:
    http_client = httpx.Client(timeout=settings.timeout_seconds, transport=transport)
    dispatcher = ThreadPoolDispatcher(
        http_client,
        max_workers=settings.max_workers,
        owns_http_client=True,
    )
    return WebhookClient.from_url(
        settings.webhook_url,
        dispatcher=dispatcher,
        wait=settings.wait,
        owns_dispatcher=True,
    )
