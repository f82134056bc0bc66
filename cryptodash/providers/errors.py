from __future__ import annotations

RATE_LIMIT_MESSAGE = "API rate limit reached. Please wait a moment and try again."


class ProviderError(RuntimeError):
    pass


class RateLimitError(ProviderError):
    def __init__(self, message: str = RATE_LIMIT_MESSAGE) -> None:
        super().__init__(message)


class NotConfiguredError(ProviderError):
    pass
