from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from webhook_dispatch.attachments import Attachment, convert_attachment
from webhook_dispatch.config import (
    EMBED_MAX_LENGTH,
    MAX_CONTENT_LENGTH,
    MAX_EMBEDS,
    MAX_FILES,
)
from webhook_dispatch.embeds import EmbedLike
from webhook_dispatch.errors import InvalidArgumentError


class MessageLike(Protocol):
    @property
    def content(self) -> str | None: ...

    @property
    def embeds(self) -> Sequence[EmbedLike]: ...

    @property
    def tts(self) -> bool: ...


@dataclass(frozen=True)
class WebhookMessage:
    """Outbound webhook message.

    Unlike a regular channel message it can override the webhook's display
    name and avatar, and it can carry several embeds at once.
    """

    username: str | None = None
    avatar_url: str | None = None
    content: str | None = None
    embeds: tuple[EmbedLike, ...] = ()
    tts: bool = False
    attachments: tuple[Attachment | None, ...] | None = None

    def __post_init__(self) -> None:
        if self.embeds is None:
            raise InvalidArgumentError("Embeds may not be None")
        if self.attachments is None:
            return
        if not self.attachments or self.attachments[0] is None:
            raise InvalidArgumentError("Attachments must start with a file")
        _check_file_count(len(self.attachments))
        # Empty slots are allowed after the first file; encoding stops there.
        names = [
            attachment.name for attachment in self.attachments if attachment is not None
        ]
        if any(not name.strip() for name in names):
            raise InvalidArgumentError("Attachment name may not be blank")
        if len(set(names)) != len(names):
            raise InvalidArgumentError("Attachment names must be unique")

    @property
    def is_file(self) -> bool:
        return self.attachments is not None

    @classmethod
    def of(cls, *embeds: EmbedLike) -> WebhookMessage:
        return cls.from_embeds(embeds)

    @classmethod
    def from_embeds(cls, embeds: Iterable[EmbedLike] | None) -> WebhookMessage:
        if embeds is None:
            raise InvalidArgumentError("Embeds may not be None")
        items = tuple(embeds)
        if not items:
            raise InvalidArgumentError("Embeds may not be empty")
        if any(embed is None for embed in items):
            raise InvalidArgumentError("Embeds may not contain None")
        return cls(embeds=items)

    @classmethod
    def files(cls, attachments: Mapping[str, object] | None) -> WebhookMessage:
        """Build a message from a mapping of file name to data.

        Supported data: ``pathlib.Path``, binary streams, bytes-like values
        and ready ``ByteSource`` instances. Files are opened here, so a
        missing path fails immediately.
        """
        if attachments is None:
            raise InvalidArgumentError("Attachments may not be None")
        if not attachments:
            raise InvalidArgumentError("Attachments may not be empty")
        _check_file_count(len(attachments))
        return cls(attachments=_convert_pairs(attachments.items()))

    @classmethod
    def files_from_pairs(
        cls, name: str, data: object, *attachments: object
    ) -> WebhookMessage:
        """Build a message from flat ``(name, data)`` pairs.

        ``WebhookMessage.files_from_pairs("dog", Path("dog.png"), "bird", b"...")``
        """
        if len(attachments) % 2 != 0:
            raise InvalidArgumentError("Must provide even number of arguments")
        _check_file_count(1 + len(attachments) // 2)

        pairs: list[tuple[object, object]] = [(name, data)]
        pairs.extend(
            (attachments[index], attachments[index + 1])
            for index in range(0, len(attachments), 2)
        )
        return cls(attachments=_convert_pairs(pairs))

    @classmethod
    def from_message(cls, message: MessageLike | None) -> WebhookMessage:
        """Copy content, embeds and TTS flag. Attachments are never copied."""
        if message is None:
            raise InvalidArgumentError("Message may not be None")
        return cls(
            content=message.content,
            embeds=tuple(message.embeds or ()),
            tts=bool(message.tts),
        )


class WebhookMessageBuilder:
    def __init__(self) -> None:
        self._content: list[str] = []
        self._embeds: list[EmbedLike] = []
        self._files: list[Attachment] = []
        self._username: str | None = None
        self._avatar_url: str | None = None
        self._tts = False

    @classmethod
    def from_message(cls, message: WebhookMessage) -> WebhookMessageBuilder:
        if message is None:
            raise InvalidArgumentError("Message may not be None")
        builder = cls()
        if message.content:
            builder.set_content(message.content)
        if message.embeds:
            builder.add_embeds(*message.embeds)
        for attachment in message.attachments or ():
            if attachment is None:
                break
            builder._append_file(attachment)
        builder.set_username(message.username)
        builder.set_avatar_url(message.avatar_url)
        builder.set_tts(message.tts)
        return builder

    @property
    def file_count(self) -> int:
        return len(self._files)

    def is_empty(self) -> bool:
        return not self._content and not self._embeds and not self._files

    def reset(self) -> WebhookMessageBuilder:
        self._content.clear()
        self.reset_embeds()
        self.reset_files()
        self._username = None
        self._avatar_url = None
        self._tts = False
        return self

    def reset_embeds(self) -> WebhookMessageBuilder:
        self._embeds.clear()
        return self

    def reset_files(self) -> WebhookMessageBuilder:
        self._files.clear()
        return self

    def set_content(self, content: str | None) -> WebhookMessageBuilder:
        self._content.clear()
        if content:
            self.append(content)
        return self

    def append(self, content: str) -> WebhookMessageBuilder:
        if content is None:
            raise InvalidArgumentError("Content may not be None")
        current = "".join(self._content)
        if len(current) + len(content) > MAX_CONTENT_LENGTH:
            raise InvalidArgumentError(
                f"Content may not exceed {MAX_CONTENT_LENGTH} characters"
            )
        if content:
            self._content.append(content)
        return self

    def add_embeds(self, *embeds: EmbedLike) -> WebhookMessageBuilder:
        if any(embed is None for embed in embeds):
            raise InvalidArgumentError("Embeds may not contain None")
        if len(self._embeds) + len(embeds) > MAX_EMBEDS:
            raise InvalidArgumentError(
                f"Cannot add more than {MAX_EMBEDS} embeds to a message"
            )
        for embed in embeds:
            length = getattr(embed, "length", None)
            if isinstance(length, int) and length > EMBED_MAX_LENGTH:
                raise InvalidArgumentError(
                    f"Embed exceeds the maximum of {EMBED_MAX_LENGTH} characters"
                )
        self._embeds.extend(embeds)
        return self

    def set_username(self, username: str | None) -> WebhookMessageBuilder:
        self._username = _blank_to_none(username)
        return self

    def set_avatar_url(self, avatar_url: str | None) -> WebhookMessageBuilder:
        self._avatar_url = _blank_to_none(avatar_url)
        return self

    def set_tts(self, tts: bool) -> WebhookMessageBuilder:
        self._tts = tts
        return self

    def add_file(self, name: str, data: object) -> WebhookMessageBuilder:
        if len(self._files) >= MAX_FILES:
            raise InvalidArgumentError(
                f"Cannot add more than {MAX_FILES} files to a message"
            )
        if any(attachment.name == name for attachment in self._files):
            raise InvalidArgumentError(f"Duplicate attachment name: {name}")
        self._files.append(convert_attachment(name, data))
        return self

    def build(self) -> WebhookMessage:
        if self.is_empty():
            raise InvalidArgumentError("Cannot build an empty message")
        content = "".join(self._content)
        return WebhookMessage(
            username=self._username,
            avatar_url=self._avatar_url,
            content=content or None,
            embeds=tuple(self._embeds),
            tts=self._tts,
            attachments=tuple(self._files) if self._files else None,
        )

    def _append_file(self, attachment: Attachment) -> None:
        if len(self._files) >= MAX_FILES:
            raise InvalidArgumentError(
                f"Cannot add more than {MAX_FILES} files to a message"
            )
        self._files.append(attachment)


def _convert_pairs(pairs: Iterable[tuple[object, object]]) -> tuple[Attachment, ...]:
    seen: set[str] = set()
    files: list[Attachment] = []
    try:
        for name, data in pairs:
            attachment = convert_attachment(name, data)
            files.append(attachment)
            if attachment.name in seen:
                raise InvalidArgumentError(
                    f"Duplicate attachment name: {attachment.name}"
                )
            seen.add(attachment.name)
    except InvalidArgumentError:
        for opened in files:
            opened.close()
        raise
    return tuple(files)


def _check_file_count(count: int) -> None:
    if count > MAX_FILES:
        raise InvalidArgumentError(
            f"Cannot add more than {MAX_FILES} files to a message"
        )


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value
