"""Record types produced by the Top Times source adapter."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from ..errors import ParseError
from .facets import Gender, SwimEvent


def parse_swim_time(text: str) -> tuple[float, bool]:
    """Convert ``"19.79"``, ``"1:04.02"`` or ``"1:04.02r"`` to (seconds, relay)."""

    raw = text.strip()
    relay = "r" in raw
    parts = raw.replace("r", "").split(":")
    try:
        if len(parts) == 1:
            return float(parts[0]), relay
        if len(parts) == 2:
            return 60.0 * float(parts[0]) + float(parts[1]), relay
    except ValueError as exc:
        raise ParseError(f"Unexpected swim time: {text!r}") from exc
    raise ParseError(f"Unexpected swim time: {text!r}")


@dataclass(slots=True)
class TopTime:
    """One row of a Top Times / Event Rank Search result table."""

    rank: int
    time: float
    relay: bool
    swimmer_name: str
    foreign: bool
    age: int
    lsc: str
    event: SwimEvent
    team_name: str
    meet_name: str
    time_standard: str
    sanctioned: bool
    gender: Gender

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["distance"] = self.event.distance.value
        row["stroke"] = self.event.stroke.code
        row["course"] = self.event.course.code
        row["event"] = str(self.event)
        row["gender"] = self.gender.value
        return row

    @classmethod
    def columns(cls) -> list[str]:
        names = [f.name for f in fields(cls)]
        return names + ["distance", "stroke", "course"]


__all__ = ["TopTime", "parse_swim_time"]
