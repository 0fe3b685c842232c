"""Facet-ordered partitioning of queries into disjoint, exhaustive children."""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from datetime import timedelta
from typing import Iterable, Iterator, List

from ..model.facets import Course, Distance, Gender, Stroke, Zone, is_valid_event
from ..model.query import Query


class Partitioner:
    """Split a query along the first facet that still has more than one value.

    The refinement order is course, stroke, distance, date range, age range
    and, when ``split_zones`` is enabled, zone. ``divide`` is pure: the same
    query always yields the same children in the same order.
    """

    def __init__(self, split_zones: bool = False) -> None:
        self.split_zones = split_zones

    def divide(self, query: Query, force: bool = False) -> List[Query]:
        """Return the children of ``query`` or ``[]`` when it is a leaf.

        With ``force`` the zone and gender axes are engaged after the fixed
        order is exhausted; workers use it when a leaf comes back saturated.
        """

        if query.course is Course.ALL:
            return [replace(query, course=course) for course in Course.concrete()]
        if query.stroke is Stroke.ALL:
            return [replace(query, stroke=stroke) for stroke in Stroke.individual()]
        if query.distance is Distance.ALL:
            return [
                replace(query, distance=distance)
                for distance in Distance.concrete()
                if is_valid_event(distance, query.stroke, query.course)
            ]
        if query.date_from != query.date_to:
            return self._split_dates(query)
        if not query.ages_pinned:
            return self._split_ages(query)
        if query.zone is Zone.ALL and (self.split_zones or force):
            return [replace(query, zone=zone) for zone in Zone.concrete()]
        if force and query.gender is Gender.MIXED:
            return [replace(query, gender=gender) for gender in Gender.concrete()]
        return []

    def is_leaf(self, query: Query) -> bool:
        return not self.divide(query)

    # ------------------------------------------------------------------
    @staticmethod
    def _split_dates(query: Query) -> List[Query]:
        half = query.num_days // 2
        pivot = query.date_from + timedelta(days=half)
        return [
            replace(query, date_to=pivot - timedelta(days=1)),
            replace(query, date_from=pivot),
        ]

    @staticmethod
    def _split_ages(query: Query) -> List[Query]:
        start, end = query.age_bounds
        pivot = start + (end - start + 1) // 2
        # An open start stays open on the left, an open end stays open on the right.
        return [
            replace(query, age_to=pivot - 1),
            replace(query, age_from=pivot),
        ]

    # ------------------------------------------------------------------
    def iter_atomize(self, query: Query) -> Iterator[Query]:
        """Breadth-first expansion of ``query`` down to its leaves.

        Leaves whose (distance, stroke, course) is not a valid event are
        proven empty and are not yielded.
        """

        pending = deque([query])
        while pending:
            current = pending.popleft()
            children = self.divide(current)
            if children:
                pending.extend(children)
            elif not is_proven_empty(current):
                yield current

    def atomize(self, query: Query) -> List[Query]:
        return list(self.iter_atomize(query))

    def atomize_all(self, queries: Iterable[Query]) -> List[Query]:
        leaves: List[Query] = []
        for query in queries:
            leaves.extend(self.iter_atomize(query))
        return leaves


def is_proven_empty(query: Query) -> bool:
    """True when every event facet is concrete and the event does not exist."""

    if query.distance is Distance.ALL or query.stroke is Stroke.ALL or query.course is Course.ALL:
        return False
    return not is_valid_event(query.distance, query.stroke, query.course)


__all__ = ["Partitioner", "is_proven_empty"]
