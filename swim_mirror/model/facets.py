"""Facet domains of the Top Times search form and the valid-event allow-list."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, NamedTuple

from ..errors import InvalidFacet

# Upper age used for midpoint arithmetic when the end of an age range is open.
AGE_SENTINEL = 51
MIN_AGE = 0


class FacetMixin:
    """Behaviour shared by every facet enumeration.

    Each facet has one wildcard member, an ordered tuple of concrete members,
    a display ``code`` (``"FR"``, ``"LCM"``) and a ``wire`` value posted in the
    search form (``"1"``, ``"Male"``).
    """

    @classmethod
    def wildcard(cls):
        return cls["ALL"]  # type: ignore[index]

    @classmethod
    def concrete(cls) -> tuple:
        wildcard = cls.wildcard()
        return tuple(member for member in cls if member is not wildcard)  # type: ignore[attr-defined]

    @property
    def is_wildcard(self) -> bool:
        return self is type(self).wildcard()

    @property
    def code(self) -> str:
        return "All" if self.is_wildcard else self.name  # type: ignore[attr-defined]

    @property
    def wire(self) -> str:
        return str(self.value)  # type: ignore[attr-defined]

    @classmethod
    def from_wire(cls, value: Any):
        text = str(value).strip()
        for member in cls:  # type: ignore[attr-defined]
            if member.wire == text:
                return member
        raise InvalidFacet(f"{value!r} is not a valid {cls.__name__} wire value")

    @classmethod
    def from_code(cls, value: Any):
        text = str(value).strip().lower()
        for member in cls:  # type: ignore[attr-defined]
            if member.code.lower() == text:
                return member
        raise InvalidFacet(f"{value!r} is not a valid {cls.__name__}")

    @classmethod
    def coerce(cls, value: Any):
        """Accept a member, a display code or a wire value."""

        if isinstance(value, cls):
            return value
        try:
            return cls.from_code(value)
        except InvalidFacet:
            return cls.from_wire(value)


class Gender(FacetMixin, str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    MIXED = "Mixed"

    @classmethod
    def wildcard(cls) -> "Gender":
        return cls.MIXED

    @property
    def code(self) -> str:
        return self.value


class Course(FacetMixin, IntEnum):
    ALL = 0
    SCY = 1
    SCM = 2
    LCM = 3


class Stroke(FacetMixin, IntEnum):
    ALL = 0
    FR = 1
    BK = 2
    BR = 3
    FL = 4
    IM = 5
    FR_R = 6
    MED_R = 7

    @property
    def code(self) -> str:
        return "All" if self is Stroke.ALL else self.name.replace("_", "-")

    @property
    def is_relay(self) -> bool:
        return self in (Stroke.FR_R, Stroke.MED_R)

    @classmethod
    def individual(cls) -> tuple["Stroke", ...]:
        return tuple(stroke for stroke in cls.concrete() if not stroke.is_relay)


class Distance(FacetMixin, IntEnum):
    ALL = 0
    D50 = 50
    D100 = 100
    D200 = 200
    D400 = 400
    D500 = 500
    D800 = 800
    D1000 = 1000
    D1500 = 1500
    D1650 = 1650

    @property
    def code(self) -> str:
        return "All" if self is Distance.ALL else str(self.value)


class Zone(FacetMixin, IntEnum):
    ALL = 0
    CENTRAL = 1
    EASTERN = 2
    SOUTHERN = 3
    WESTERN = 4

    @property
    def code(self) -> str:
        return self.name.title()


class SwimEvent(NamedTuple):
    distance: Distance
    stroke: Stroke
    course: Course

    @classmethod
    def parse(cls, text: str) -> "SwimEvent":
        """Parse a display string such as ``"100 FR SCY"``."""

        parts = text.split()
        if len(parts) != 3:
            raise InvalidFacet(f"Unexpected event string: {text!r}")
        distance, stroke, course = parts
        return cls(Distance.from_code(distance), Stroke.from_code(stroke), Course.from_code(course))

    def __str__(self) -> str:
        return f"{self.distance.code} {self.stroke.code} {self.course.code}"


def _events(course: Course, table: dict[Stroke, tuple[int, ...]]) -> list[SwimEvent]:
    return [
        SwimEvent(Distance(distance), stroke, course)
        for stroke, distances in table.items()
        for distance in distances
    ]


VALID_EVENTS: frozenset[SwimEvent] = frozenset(
    _events(
        Course.SCY,
        {
            Stroke.FR: (50, 100, 200, 500, 1000, 1650),
            Stroke.BK: (50, 100, 200),
            Stroke.BR: (50, 100, 200),
            Stroke.FL: (50, 100, 200),
            Stroke.IM: (100, 200, 400),
        },
    )
    + _events(
        Course.SCM,
        {
            Stroke.FR: (50, 100, 200, 400, 800, 1500),
            Stroke.BK: (50, 100, 200),
            Stroke.BR: (50, 100, 200),
            Stroke.FL: (50, 100, 200),
            Stroke.IM: (100, 200, 400),
        },
    )
    + _events(
        Course.LCM,
        {
            Stroke.FR: (50, 100, 200, 400, 800, 1500),
            Stroke.BK: (50, 100, 200),
            Stroke.BR: (50, 100, 200),
            Stroke.FL: (50, 100, 200),
            Stroke.IM: (200, 400),
        },
    )
)


def is_valid_event(distance: Distance, stroke: Stroke, course: Course) -> bool:
    return SwimEvent(distance, stroke, course) in VALID_EVENTS


__all__ = [
    "AGE_SENTINEL",
    "Course",
    "Distance",
    "FacetMixin",
    "Gender",
    "MIN_AGE",
    "Stroke",
    "SwimEvent",
    "VALID_EVENTS",
    "Zone",
    "is_valid_event",
]
