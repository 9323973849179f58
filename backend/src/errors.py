"""Error taxonomy for the restaurant resolver."""

from __future__ import annotations


class ResolverError(RuntimeError):
    pass


class InvalidInputError(ResolverError, ValueError):
    """Caller broke the contract: non-finite coordinate, negative radius, etc."""


class SourceUnavailableError(ResolverError):
    """The platform has no such search capability (or it is not configured)."""


class SourceFailedError(ResolverError):
    """A search source errored out (network, upstream status, bad payload)."""

    def __init__(self, message: str, *, source: str = "unknown", retryable: bool = False) -> None:
        super().__init__(message)
        self.source = source
        self.retryable = retryable
