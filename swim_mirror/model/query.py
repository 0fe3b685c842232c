"""The Query unit of work and its deterministic request identity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import PurePosixPath
from typing import Any

from ..errors import InvalidFacet
from .facets import AGE_SENTINEL, MIN_AGE, Course, Distance, Gender, Stroke, Zone

IDENTITY_SEPARATOR = "_"
DEFAULT_RESULT_CAP = 5000
_WILDCARD = "all"
_MEMBERS_SUFFIX = "members"
_BEST_SUFFIX = "best"


def _coerce_date(value: Any, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise InvalidFacet(f"{field_name} must be an ISO date, got {value!r}") from exc


def _coerce_age(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() == _WILDCARD:
        return None
    try:
        age = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidFacet(f"{field_name} must be an integer age, got {value!r}") from exc
    if not MIN_AGE <= age <= AGE_SENTINEL:
        raise InvalidFacet(f"{field_name} must be within {MIN_AGE}..{AGE_SENTINEL}, got {age}")
    return age


@dataclass(frozen=True, slots=True)
class Query:
    """One search request against the remote result database.

    Wildcard facets (``All``; ``Mixed`` for gender) match every record. A
    missing ``age_from`` means 0 and a missing ``age_to`` means unbounded.
    """

    date_from: date
    date_to: date
    gender: Gender = Gender.MIXED
    course: Course = Course.ALL
    stroke: Stroke = Stroke.ALL
    distance: Distance = Distance.ALL
    age_from: int | None = None
    age_to: int | None = None
    zone: Zone = Zone.ALL
    members_only: bool = False
    best_only: bool = False
    result_cap: int = DEFAULT_RESULT_CAP

    def __post_init__(self) -> None:
        set_ = object.__setattr__
        set_(self, "gender", Gender.coerce(self.gender))
        set_(self, "course", Course.coerce(self.course))
        set_(self, "stroke", Stroke.coerce(self.stroke))
        set_(self, "distance", Distance.coerce(self.distance))
        set_(self, "zone", Zone.coerce(self.zone))
        set_(self, "date_from", _coerce_date(self.date_from, "date_from"))
        set_(self, "date_to", _coerce_date(self.date_to, "date_to"))
        set_(self, "age_from", _coerce_age(self.age_from, "age_from"))
        set_(self, "age_to", _coerce_age(self.age_to, "age_to"))
        if self.date_to < self.date_from:
            raise InvalidFacet(f"date_to {self.date_to} is before date_from {self.date_from}")
        if self.age_from is not None and self.age_to is not None and self.age_to < self.age_from:
            raise InvalidFacet(f"age_to {self.age_to} is below age_from {self.age_from}")
        if self.stroke.is_relay:
            raise InvalidFacet(f"relay stroke {self.stroke.code} is not mirrored")
        if int(self.result_cap) <= 0:
            raise InvalidFacet(f"result_cap must be positive, got {self.result_cap}")

    # ------------------------------------------------------------------
    @property
    def age_bounds(self) -> tuple[int, int]:
        """Concrete inclusive age interval, using the sentinel for an open end."""

        start = MIN_AGE if self.age_from is None else self.age_from
        end = AGE_SENTINEL if self.age_to is None else self.age_to
        return start, end

    @property
    def ages_pinned(self) -> bool:
        start, end = self.age_bounds
        return start == end

    @property
    def num_days(self) -> int:
        return (self.date_to - self.date_from).days + 1

    def identity(self) -> str:
        return identity(self)

    def __str__(self) -> str:
        return self.identity()


def _age_code(age: int | None) -> str:
    return _WILDCARD if age is None else str(age)


def identity(query: Query) -> str:
    """Deterministic, lower-cased key for ``query``; stable across restarts."""

    parts = [
        query.gender.code,
        query.course.code,
        query.stroke.code,
        query.distance.code,
        query.date_from.isoformat(),
        query.date_to.isoformat(),
        _age_code(query.age_from),
        _age_code(query.age_to),
        query.zone.code,
    ]
    if query.members_only:
        parts.append(_MEMBERS_SUFFIX)
    if query.best_only:
        parts.append(_BEST_SUFFIX)
    return IDENTITY_SEPARATOR.join(part.lower() for part in parts)


def parse_identity(value: str, result_cap: int = DEFAULT_RESULT_CAP) -> Query:
    """Rebuild the query an identity was derived from."""

    parts = value.strip().lower().split(IDENTITY_SEPARATOR)
    if len(parts) < 9:
        raise InvalidFacet(f"Malformed identity: {value!r}")
    flags = parts[9:]
    unknown = set(flags) - {_MEMBERS_SUFFIX, _BEST_SUFFIX}
    if unknown:
        raise InvalidFacet(f"Malformed identity flags {sorted(unknown)} in {value!r}")
    gender, course, stroke, distance, date_from, date_to, age_from, age_to, zone = parts[:9]
    return Query(
        gender=Gender.from_code(gender),
        course=Course.from_code(course),
        stroke=Stroke.from_code(stroke),
        distance=Distance.from_code(distance),
        date_from=date_from,
        date_to=date_to,
        age_from=age_from,
        age_to=age_to,
        zone=Zone.from_code(zone),
        members_only=_MEMBERS_SUFFIX in flags,
        best_only=_BEST_SUFFIX in flags,
        result_cap=result_cap,
    )


def identity_path(value: str) -> PurePosixPath:
    """Relative output directory for an identity, one segment per field."""

    return PurePosixPath(*value.split(IDENTITY_SEPARATOR))


__all__ = [
    "DEFAULT_RESULT_CAP",
    "IDENTITY_SEPARATOR",
    "Query",
    "identity",
    "identity_path",
    "parse_identity",
]
