"""Truncation guard: decide whether a result set hit the remote cap."""

from __future__ import annotations

from ..errors import SaturationDetected
from ..model.query import Query

DEFAULT_SATURATION_FRACTION = 0.98


def saturation_threshold(query: Query, fraction: float = DEFAULT_SATURATION_FRACTION) -> float:
    return fraction * query.result_cap


def is_saturated(query: Query, count: int, fraction: float = DEFAULT_SATURATION_FRACTION) -> bool:
    return count >= saturation_threshold(query, fraction)


def check_saturation(query: Query, count: int, fraction: float = DEFAULT_SATURATION_FRACTION) -> None:
    """Raise :class:`SaturationDetected` when ``count`` reaches the threshold."""

    if is_saturated(query, count, fraction):
        raise SaturationDetected(query.identity(), count, saturation_threshold(query, fraction))


__all__ = [
    "DEFAULT_SATURATION_FRACTION",
    "check_saturation",
    "is_saturated",
    "saturation_threshold",
]
