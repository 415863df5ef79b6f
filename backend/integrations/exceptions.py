"""Typed exception hierarchy for quote provider errors.

Separates transient network failures from API errors and unusable
responses so the market data service can log them differently before
surfacing them as ``QuoteUnavailable``.
"""


class ProviderError(Exception):
    """Base exception for all quote provider errors.

    Carries the provider name so callers can identify which provider failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderConnectionError(ProviderError):
    """Timeouts, DNS failures, refused connections.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the provider."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ProviderDataError(ProviderError):
    """Empty, malformed or unparseable response (e.g., unknown symbol)."""

    pass
