from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from webhook_dispatch.config import EMBED_MAX_LENGTH
from webhook_dispatch.parsing import as_dict, first_non_empty_str


@runtime_checkable
class EmbedLike(Protocol):
    def to_wire(self) -> dict[str, Any]: ...


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False

    def to_wire(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value, "inline": self.inline}


@dataclass(frozen=True)
class Embed:
    title: str | None = None
    description: str | None = None
    url: str | None = None
    color: int | None = None
    timestamp: str | None = None
    footer_text: str | None = None
    author_name: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    fields: tuple[EmbedField, ...] = ()

    @property
    def length(self) -> int:
        """Character count that counts against the service's embed length limit."""
        total = 0
        for text in (self.title, self.description, self.footer_text, self.author_name):
            if text:
                total += len(text)
        for field in self.fields:
            total += len(field.name) + len(field.value)
        return total

    def is_sendable(self) -> bool:
        length = self.length
        if length > EMBED_MAX_LENGTH:
            return False
        return length > 0 or self._has_media()

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "rich"}
        if self.title is not None:
            payload["title"] = self.title
        if self.description is not None:
            payload["description"] = self.description
        if self.url is not None:
            payload["url"] = self.url
        if self.color is not None:
            payload["color"] = self.color
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        if self.footer_text is not None:
            payload["footer"] = {"text": self.footer_text}
        if self.author_name is not None:
            payload["author"] = {"name": self.author_name}
        if self.image_url is not None:
            payload["image"] = {"url": self.image_url}
        if self.thumbnail_url is not None:
            payload["thumbnail"] = {"url": self.thumbnail_url}
        if self.fields:
            payload["fields"] = [field.to_wire() for field in self.fields]
        return payload

    @classmethod
    def from_wire(cls, payload: dict[str, Any]) -> Embed:
        fields: list[EmbedField] = []
        raw_fields = payload.get("fields")
        if isinstance(raw_fields, list):
            for item in raw_fields:
                field = as_dict(item)
                name = field.get("name")
                value = field.get("value")
                if isinstance(name, str) and isinstance(value, str):
                    fields.append(
                        EmbedField(
                            name=name,
                            value=value,
                            inline=bool(field.get("inline", False)),
                        )
                    )

        color = payload.get("color")
        return cls(
            title=first_non_empty_str(payload, "title"),
            description=first_non_empty_str(payload, "description"),
            url=first_non_empty_str(payload, "url"),
            color=color if isinstance(color, int) else None,
            timestamp=first_non_empty_str(payload, "timestamp"),
            footer_text=first_non_empty_str(as_dict(payload.get("footer")), "text"),
            author_name=first_non_empty_str(as_dict(payload.get("author")), "name"),
            image_url=first_non_empty_str(as_dict(payload.get("image")), "url"),
            thumbnail_url=first_non_empty_str(
                as_dict(payload.get("thumbnail")), "url"
            ),
            fields=tuple(fields),
        )

    def _has_media(self) -> bool:
        return self.image_url is not None or self.thumbnail_url is not None
