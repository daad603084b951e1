from __future__ import annotations

import os
from dataclasses import dataclass

MAX_FILES = 20
MAX_CONTENT_LENGTH = 2000
MAX_EMBEDS = 10
EMBED_MAX_LENGTH = 6000

DEFAULT_API_BASE_URL = "https://discord.com/api"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class Settings:
    webhook_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS
    wait: bool = True
    username: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        webhook_url = os.getenv("WEBHOOK_URL")
        if not webhook_url or not webhook_url.strip():
            raise RuntimeError("Missing required environment variables: WEBHOOK_URL")

        max_workers = int(os.getenv("WEBHOOK_MAX_WORKERS", str(DEFAULT_MAX_WORKERS)))
        if max_workers < 1:
            raise RuntimeError("Invalid WEBHOOK_MAX_WORKERS. Expected at least 1.")

        return cls(
            webhook_url=webhook_url.strip(),
            timeout_seconds=float(
                os.getenv("WEBHOOK_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))
            ),
            max_workers=max_workers,
            wait=_parse_bool(os.getenv("WEBHOOK_WAIT", "true")),
            username=_optional_str(os.getenv("WEBHOOK_USERNAME")),
            avatar_url=_optional_str(os.getenv("WEBHOOK_AVATAR_URL")),
        )


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        return None
    return stripped
