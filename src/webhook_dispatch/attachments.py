from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import BinaryIO, Union

from webhook_dispatch.errors import (
    InvalidArgumentError,
    SourceConsumedError,
    UnreadableSourceError,
)

BytesLike = Union[bytes, bytearray, memoryview]


class ByteSource:
    """Read-once binary source backing an attachment.

    The underlying stream is opened when the source is created and closed
    after the first full read. Sources are not safe for concurrent reads.
    """

    kind = "stream"

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def closed(self) -> bool:
        return bool(getattr(self._stream, "closed", False))

    def read_all(self) -> bytes:
        if self._consumed:
            raise SourceConsumedError(
                f"{self.kind} source was already read; attachments cannot be reused"
            )
        self._consumed = True
        try:
            data = self._stream.read()
        finally:
            self.close()
        if data is None:
            return b""
        if isinstance(data, str):
            raise SourceConsumedError(f"{self.kind} source returned text, not bytes")
        return bytes(data)

    def close(self) -> None:
        if not self.closed:
            self._stream.close()


class FileSource(ByteSource):
    kind = "file"

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        try:
            stream = open(self.path, "rb")
        except OSError as exc:
            raise UnreadableSourceError(
                f"Attachment file is not readable: {self.path}",
                path=self.path,
            ) from exc
        super().__init__(stream)


class StreamSource(ByteSource):
    kind = "stream"

    def __init__(self, stream: BinaryIO) -> None:
        if stream is None or not callable(getattr(stream, "read", None)):
            raise InvalidArgumentError("Stream attachments must provide read()")
        if isinstance(stream, io.TextIOBase):
            raise InvalidArgumentError("Stream attachments must be opened in binary mode")
        super().__init__(stream)


class BytesSource(ByteSource):
    kind = "bytes"

    def __init__(self, data: BytesLike) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidArgumentError("Bytes attachments require a bytes-like value")
        super().__init__(io.BytesIO(bytes(data)))


@dataclass(frozen=True)
class Attachment:
    name: str
    source: ByteSource

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidArgumentError("Attachment name may not be blank")

    @classmethod
    def from_path(
        cls, name: str, path: str | os.PathLike[str]
    ) -> Attachment:
        _require_name(name)
        return cls(name=name, source=FileSource(path))

    @classmethod
    def from_stream(cls, name: str, stream: BinaryIO) -> Attachment:
        _require_name(name)
        return cls(name=name, source=StreamSource(stream))

    @classmethod
    def from_bytes(cls, name: str, data: BytesLike) -> Attachment:
        _require_name(name)
        return cls(name=name, source=BytesSource(data))

    def read(self) -> bytes:
        return self.source.read_all()

    def close(self) -> None:
        self.source.close()


def convert_attachment(name: object, data: object) -> Attachment:
    if not isinstance(name, str):
        raise InvalidArgumentError(
            "Provided arguments must be pairs for (str, data)"
        )
    _require_name(name)
    if data is None:
        raise InvalidArgumentError("Attachment data may not be None")
    return Attachment(name=name, source=as_source(data))


def as_source(data: object) -> ByteSource:
    if isinstance(data, ByteSource):
        return data
    if isinstance(data, os.PathLike):
        return FileSource(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return BytesSource(data)
    if isinstance(data, str):
        # A bare string is ambiguous between a path and text content.
        raise InvalidArgumentError(
            "Use pathlib.Path for file attachments or encode text to bytes"
        )
    if callable(getattr(data, "read", None)):
        return StreamSource(data)  # type: ignore[arg-type]
    raise InvalidArgumentError(
        "Provided arguments must be pairs for (str, data). "
        f"Unexpected data type {type(data).__name__}"
    )


def _require_name(name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError("Attachment name may not be blank")
