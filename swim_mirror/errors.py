"""Error taxonomy shared by the partitioner, workers and storage."""

from __future__ import annotations


class MirrorError(Exception):
    """Base class for every error raised by swim-mirror."""


class InvalidFacet(MirrorError, ValueError):
    """A facet value is outside its domain or a query is malformed."""


class TransportError(MirrorError):
    """The remote round-trip failed (network, HTTP status, rate limiting)."""


class ParseError(MirrorError):
    """The remote answered but the document did not have the expected shape."""


class SinkError(MirrorError):
    """A result sink could not persist a record set."""


class StoreUnavailable(MirrorError):
    """The dedup/resume store could not be read or written."""


class SaturationDetected(MirrorError):
    """A response hit the saturation threshold and is presumed truncated.

    Not a failure: workers react by splitting the query instead of recording it.
    """

    def __init__(self, identity: str, count: int, threshold: float) -> None:
        super().__init__(f"{identity}: {count} results >= threshold {threshold:g}")
        self.identity = identity
        self.count = count
        self.threshold = threshold


__all__ = [
    "InvalidFacet",
    "MirrorError",
    "ParseError",
    "SaturationDetected",
    "SinkError",
    "StoreUnavailable",
    "TransportError",
]
