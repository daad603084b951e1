from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from webhook_dispatch.embeds import Embed
from webhook_dispatch.parsing import as_dict, as_snowflake, first_non_empty_str


@dataclass(frozen=True)
class ReceivedMessage:
    id: int
    channel_id: int | None
    webhook_id: int | None
    content: str | None
    embeds: tuple[Embed, ...] = ()
    tts: bool = False
    attachment_names: tuple[str, ...] = ()


def parse_message_payload(payload: Any) -> ReceivedMessage | None:
    message = as_dict(payload)
    message_id = as_snowflake(message.get("id"))
    if message_id is None:
        return None

    embeds: list[Embed] = []
    raw_embeds = message.get("embeds")
    if isinstance(raw_embeds, list):
        embeds.extend(Embed.from_wire(item) for item in raw_embeds if isinstance(item, dict))

    attachment_names: list[str] = []
    raw_attachments = message.get("attachments")
    if isinstance(raw_attachments, list):
        for item in raw_attachments:
            filename = first_non_empty_str(as_dict(item), "filename")
            if filename is not None:
                attachment_names.append(filename)

    content = message.get("content")
    return ReceivedMessage(
        id=message_id,
        channel_id=as_snowflake(message.get("channel_id")),
        webhook_id=as_snowflake(message.get("webhook_id")),
        content=content if isinstance(content, str) else None,
        embeds=tuple(embeds),
        tts=message.get("tts") is True,
        attachment_names=tuple(attachment_names),
    )
