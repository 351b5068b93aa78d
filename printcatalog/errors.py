"""Typed failures raised by the Printify resource fetchers."""


class FetchError(Exception):
    """Base class for a failed resource fetch."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.message = message
        self.url = url


class BadURLError(FetchError):
    """Request could not be built (invalid path parameter or URL)."""


class NetworkError(FetchError):
    """Transport failed before a response was received."""


class ServerError(FetchError):
    """Response status outside 200-299."""

    def __init__(
        self,
        status_code: int,
        message: str = "bad server response",
        url: str | None = None,
        code: int | None = None,
        reason: str | None = None,
    ):
        super().__init__(message, url)
        self.status_code = status_code
        self.code = code
        self.reason = reason

    def __str__(self) -> str:
        code = f" (code {self.code})" if self.code is not None else ""
        return f"HTTP {self.status_code}: {self.message}{code}"


class DecodeError(FetchError):
    """Response body did not match the expected schema."""
