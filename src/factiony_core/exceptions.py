class FactionyException(Exception):
    """Base exception for all Factiony core errors."""


class NetworkError(FactionyException):
    """Raised when a provider cannot be reached (DNS, connection refused, timeout)."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class GameNotFound(FactionyException):
    """Raised when a provider has no record for the identifier (404 or empty result)."""

    def __init__(self, identifier: str, provider: str):
        super().__init__(f"Game '{identifier}' not found on {provider}.")
        self.identifier = identifier
        self.provider = provider


class AccessDenied(FactionyException):
    """
    Raised when a provider refuses the request (401 Unauthorized / 403 Forbidden).
    This usually means a bad or revoked API key.
    """

    def __init__(self, provider: str, status_code: int):
        super().__init__(f"Access denied for {provider} (Status: {status_code}). Check credentials.")
        self.provider = provider
        self.status_code = status_code


class RateLimitExceeded(FactionyException):
    """Raised when a provider rate limit is hit (429)."""

    def __init__(self, provider: str, retry_after: float | None = None):
        msg = f"Rate limit exceeded for {provider}."
        if retry_after:
            msg += f" Retry after {retry_after}s."
        super().__init__(msg)
        self.provider = provider
        self.retry_after = retry_after


class APIError(FactionyException):
    """Raised when a provider returns an unexpected error (5xx, malformed body, etc)."""

    def __init__(self, provider: str, status_code: int | None = None, message: str = "Unknown error"):
        msg = f"{provider} API Error"
        if status_code:
            msg += f" ({status_code})"
        msg += f": {message}"
        super().__init__(msg)
        self.provider = provider
        self.status_code = status_code


class StoreUnavailable(FactionyException):
    """
    Raised by the store adapter when the database cannot serve a read or write.
    Readers treat it as a cache miss.
    """

    def __init__(self, operation: str, original_error: Exception | None = None):
        msg = f"Store unavailable during {operation}"
        if original_error:
            msg += f": {original_error}"
        super().__init__(msg)
        self.operation = operation
        self.original_error = original_error
