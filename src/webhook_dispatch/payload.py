from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from webhook_dispatch.message import WebhookMessage

JSON_CONTENT_TYPE = "application/json"
OCTET_STREAM = "application/octet-stream"

# httpx only renders multipart bodies as part of a request.
_RENDER_URL = "http://localhost/"


@dataclass(frozen=True)
class WireBody:
    content: bytes
    content_type: str

    @property
    def is_multipart(self) -> bool:
        return self.content_type.startswith("multipart/form-data")

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Type": self.content_type}


def build_payload(message: WebhookMessage) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if message.content is not None:
        payload["content"] = message.content
    if message.embeds:
        payload["embeds"] = [embed.to_wire() for embed in message.embeds]
    if message.avatar_url is not None:
        payload["avatar_url"] = message.avatar_url
    if message.username is not None:
        payload["username"] = message.username
    payload["tts"] = message.tts
    return payload


def encode_message(
    message: WebhookMessage, *, boundary: str | None = None
) -> WireBody:
    """Render the request body for ``message``.

    Messages with attachments become ``multipart/form-data`` with one
    ``file{n}`` part per attachment followed by ``payload_json``. All
    attachment sources are read and closed, even when encoding fails.
    """
    payload_text = json.dumps(build_payload(message))

    if message.attachments is None:
        return WireBody(
            content=payload_text.encode("utf-8"),
            content_type=JSON_CONTENT_TYPE,
        )

    files: list[tuple[str, tuple[Any, ...]]] = []
    try:
        for index, attachment in enumerate(message.attachments):
            if attachment is None:
                break
            files.append(
                (f"file{index}", (attachment.name, attachment.read(), OCTET_STREAM))
            )
    finally:
        for attachment in message.attachments:
            if attachment is not None:
                attachment.close()

    # No filename and no content type: sent as a plain form field.
    files.append(("payload_json", (None, payload_text.encode("utf-8"))))

    headers: dict[str, str] = {}
    if boundary is not None:
        headers["Content-Type"] = f"multipart/form-data; boundary={boundary}"
    request = httpx.Request("POST", _RENDER_URL, files=files, headers=headers)
    return WireBody(
        content=request.read(),
        content_type=request.headers["Content-Type"],
    )


def build_request(
    http_client: httpx.Client,
    url: str,
    message: WebhookMessage,
    *,
    params: dict[str, str] | None = None,
) -> httpx.Request:
    body = encode_message(message)
    return http_client.build_request(
        "POST",
        url,
        content=body.content,
        headers=body.headers,
        params=params,
    )
