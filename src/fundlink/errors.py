"""Exceptions raised by fundlink."""

from typing import Optional


class FundLinkError(Exception):
    """Base class for fundlink errors."""


class FeedFetchError(FundLinkError):
    """The feed could not be retrieved (transport error or non-2xx status)."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class FeedParseError(FundLinkError):
    """The feed payload could not be interpreted."""


class PersistenceError(FundLinkError):
    """A key-value store rejected a read or write."""


class ConfigError(FundLinkError):
    """Settings are missing or malformed."""


class AccessDeniedError(FundLinkError):
    """The current principal is not approved for platform access."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status
