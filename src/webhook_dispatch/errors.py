from __future__ import annotations


class WebhookError(Exception):
    pass


class InvalidArgumentError(WebhookError, ValueError):
    pass


class UnreadableSourceError(InvalidArgumentError):
    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class UnsupportedOperationError(WebhookError, NotImplementedError):
    pass


class SourceConsumedError(WebhookError):
    pass


class WebhookTransportError(WebhookError):
    pass


class WebhookSendError(WebhookTransportError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
