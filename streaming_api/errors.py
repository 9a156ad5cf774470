"""Error kinds raised by the streaming core.

All of them subclass RuntimeError so callers that only care about "the
operation failed" can keep catching RuntimeError.
"""

from typing import Optional


class StreamingError(RuntimeError):
    """Base class for every error surfaced by streaming_api."""


class InvalidUrl(StreamingError):
    """The URL does not carry an id for the detected platform."""


class NotAuthenticated(StreamingError):
    """No usable token for the target platform."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Not authenticated with {platform}")


class AuthFailed(StreamingError):
    """A login handshake was rejected (callback error, token exchange, credentials)."""

    def __init__(self, platform: str, message: str):
        self.platform = platform
        super().__init__(message)


class AuthExpired(StreamingError):
    """The session could not be recovered (refresh failed or session rejected)."""

    def __init__(self, platform: str, message: Optional[str] = None):
        self.platform = platform
        super().__init__(message or f"{platform} authentication expired")


class ApiError(StreamingError):
    """Non-2xx response or an error embedded in a platform response body."""

    def __init__(
        self,
        platform: str,
        message: str,
        *,
        status: int = 0,
        code: Optional[int] = None,
    ):
        self.platform = platform
        self.status = int(status)
        self.code = code
        super().__init__(message)


class ResolutionUnreachable(StreamingError):
    """The link-resolution service could not be reached or answered with an error."""


class ResolutionNotFound(StreamingError):
    """The link-resolution service answered, but nothing on a supported platform matched."""


class NoMatch(StreamingError):
    """A search returned zero results."""


class StorageError(StreamingError):
    """A store could not write its file."""
