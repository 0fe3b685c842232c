"""Domain model: facets, queries and result records."""

from .facets import (
    AGE_SENTINEL,
    VALID_EVENTS,
    Course,
    Distance,
    Gender,
    Stroke,
    SwimEvent,
    Zone,
    is_valid_event,
)
from .query import Query, identity, identity_path, parse_identity
from .records import TopTime, parse_swim_time

__all__ = [
    "AGE_SENTINEL",
    "Course",
    "Distance",
    "Gender",
    "Query",
    "Stroke",
    "SwimEvent",
    "TopTime",
    "VALID_EVENTS",
    "Zone",
    "identity",
    "identity_path",
    "is_valid_event",
    "parse_identity",
    "parse_swim_time",
]
