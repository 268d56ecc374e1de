"""Typed exception hierarchy for reporting-source errors.

Provides structured exceptions for differentiated error handling
(auth errors vs throttling vs transient network errors vs data issues).
"""


class ProviderError(Exception):
    """Base exception for all source-related errors.

    Carries the provider name so callers can identify which source failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Credentials missing, expired, or invalid (HTTP 401/403)."""

    pass


class ProviderConnectionError(ProviderError):
    """Network failures such as timeouts, DNS errors or refused connections.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the source API."""

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


class ProviderRateLimitError(ProviderAPIError):
    """The source is throttling requests (HTTP 429).

    The report job engine treats this as a circuit breaker: no further
    calls are made to the source for the rest of the run.
    """

    def __init__(self, message: str, provider_name: str = ""):
        super().__init__(message, provider_name, status_code=429)


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the source."""

    pass


class CursorQueryFailed(Exception):
    """The store could not report the latest persisted date for a source."""

    def __init__(self, source: str, cause: Exception):
        self.source = source
        self.cause = cause
        super().__init__(str(cause))


class SettingsDecryptError(Exception):
    """Stored source settings exist but cannot be decrypted or decoded."""

    pass
