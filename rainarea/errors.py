"""Errors raised while resolving radar snapshots.

Every error maps to one HTTP status through ``status_code``; the router turns
any ``RainAreaError`` into ``{"error": message}`` without a traceback.
"""


class RainAreaError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    cacheable = False


class FetchError(RainAreaError):
    """An upstream mirror did not return a usable image."""

    status_code = 502

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class FetchTimeout(FetchError):
    """A fetch attempt was cancelled after its hard timeout."""

    status_code = 504


class FetchHTTPError(FetchError):
    """Upstream answered with a non-2xx status (redirects included)."""

    def __init__(self, status: int, url: str | None = None):
        super().__init__(f"HTTP error: {status}", url=url)
        self.status = status


class FetchNetworkError(FetchError):
    """Connection-level failure (DNS, refused, reset) talking to a mirror."""


class FetchContentTypeError(FetchError):
    """Upstream answered 2xx but not with a PNG body."""

    def __init__(self, content_type: str | None, url: str | None = None):
        super().__init__(f"Radar image is not a PNG image ({content_type or 'no content-type'})", url=url)
        self.content_type = content_type


class DecodeError(RainAreaError):
    """The image bytes could not be decoded as PNG."""

    status_code = 502


class FallbackExhausted(RainAreaError):
    """No recent slot could be served from cache or fetched."""

    status_code = 502


class RequestTimeout(RainAreaError):
    """The overall request budget ran out before a snapshot was found."""

    status_code = 504


class InvalidSlotParameter(RainAreaError):
    """An explicit slot parameter is malformed or out of range."""

    status_code = 400
    cacheable = True


class SlotNotYetPublished(InvalidSlotParameter):
    """An explicit slot later than the current slot; valid again within minutes."""

    cacheable = False
