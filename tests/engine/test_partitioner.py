from __future__ import annotations

import random
from dataclasses import replace
from datetime import date, timedelta

from swim_mirror.engine import Partitioner
from swim_mirror.engine.partitioner import is_proven_empty
from swim_mirror.model import VALID_EVENTS, Course, Distance, Gender, Query, Stroke, Zone

DAY = date(2024, 3, 1)


def _leaf(**overrides) -> Query:
    fields = dict(
        date_from=DAY,
        date_to=DAY,
        course=Course.SCY,
        stroke=Stroke.FR,
        distance=Distance.D100,
        age_from=12,
        age_to=12,
    )
    fields.update(overrides)
    return Query(**fields)


def test_course_is_split_first() -> None:
    query = Query(date_from=DAY, date_to=DAY + timedelta(days=1))
    children = Partitioner().divide(query)
    assert [child.course for child in children] == [Course.SCY, Course.SCM, Course.LCM]
    assert all(replace(child, course=Course.ALL) == query for child in children)


def test_freestyle_root_splits_into_one_child_per_course() -> None:
    day = date(2021, 1, 1)
    query = Query(date_from=day, date_to=day, stroke=Stroke.FR, age_from=0, age_to=None)
    children = Partitioner().divide(query)
    assert len(children) == 3
    assert [child.course for child in children] == [Course.SCY, Course.SCM, Course.LCM]
    for child in children:
        assert child.stroke is Stroke.FR
        assert child.distance is Distance.ALL
        assert (child.date_from, child.date_to) == (day, day)
        assert (child.age_from, child.age_to) == (0, None)


def test_stroke_split_skips_relays() -> None:
    query = Query(date_from=DAY, date_to=DAY, course=Course.LCM)
    children = Partitioner().divide(query)
    assert [child.stroke for child in children] == list(Stroke.individual())


def test_distance_split_only_yields_valid_events() -> None:
    query = Query(date_from=DAY, date_to=DAY, course=Course.LCM, stroke=Stroke.FR)
    children = Partitioner().divide(query)
    assert [child.distance.value for child in children] == [50, 100, 200, 400, 800, 1500]
    im = Partitioner().divide(replace(query, stroke=Stroke.IM))
    assert [child.distance for child in im] == [Distance.D200, Distance.D400]


def test_two_day_window_splits_into_single_days() -> None:
    query = _leaf(date_to=DAY + timedelta(days=1), age_from=None, age_to=None)
    left, right = Partitioner().divide(query)
    assert (left.date_from, left.date_to) == (DAY, DAY)
    assert (right.date_from, right.date_to) == (DAY + timedelta(days=1), DAY + timedelta(days=1))


def test_odd_window_puts_the_extra_day_on_the_right() -> None:
    query = _leaf(date_to=DAY + timedelta(days=4))
    left, right = Partitioner().divide(query)
    assert (left.date_from, left.date_to) == (DAY, DAY + timedelta(days=1))
    assert (right.date_from, right.date_to) == (DAY + timedelta(days=2), DAY + timedelta(days=4))


def test_age_split_keeps_open_ends_open() -> None:
    left, right = Partitioner().divide(_leaf(age_from=None, age_to=None))
    assert (left.age_from, left.age_to) == (None, 25)
    assert (right.age_from, right.age_to) == (26, None)

    left, right = Partitioner().divide(_leaf(age_from=10, age_to=13))
    assert (left.age_from, left.age_to) == (10, 11)
    assert (right.age_from, right.age_to) == (12, 13)


def test_pinned_query_is_a_leaf_unless_zones_are_enabled() -> None:
    query = _leaf()
    assert Partitioner().is_leaf(query)
    zones = Partitioner(split_zones=True).divide(query)
    assert [child.zone for child in zones] == list(Zone.concrete())
    assert Partitioner(split_zones=True).is_leaf(_leaf(zone=Zone.EASTERN))


def test_open_top_age_is_pinned_at_the_sentinel() -> None:
    assert Partitioner().is_leaf(_leaf(age_from=51, age_to=None))


def test_force_engages_zone_then_gender() -> None:
    partitioner = Partitioner()
    zones = partitioner.divide(_leaf(), force=True)
    assert [child.zone for child in zones] == list(Zone.concrete())
    genders = partitioner.divide(_leaf(zone=Zone.CENTRAL), force=True)
    assert [child.gender for child in genders] == [Gender.MALE, Gender.FEMALE]
    assert partitioner.divide(_leaf(zone=Zone.CENTRAL, gender=Gender.MALE), force=True) == []


def test_divide_is_pure() -> None:
    query = Query(date_from=DAY, date_to=DAY + timedelta(days=6), course=Course.SCM)
    partitioner = Partitioner()
    assert partitioner.divide(query) == partitioner.divide(query)


def test_atomize_covers_every_record_exactly_once() -> None:
    rng = random.Random(11)
    events = sorted(VALID_EVENTS, key=str)
    rows = [
        (
            DAY + timedelta(days=rng.randrange(3)),
            rng.choice(events),
            rng.randrange(0, 70),
        )
        for _ in range(150)
    ]
    root = Query(date_from=DAY, date_to=DAY + timedelta(days=2), age_from=None, age_to=None)
    leaves = Partitioner().atomize(root)

    assert len(leaves) == len(set(leaves))
    assert all(Partitioner().is_leaf(leaf) for leaf in leaves)
    assert not any(is_proven_empty(leaf) for leaf in leaves)

    def matches(query: Query, row) -> bool:
        day, event, age = row
        if not query.date_from <= day <= query.date_to:
            return False
        if (query.course, query.stroke, query.distance) != (event.course, event.stroke, event.distance):
            return False
        if query.age_from is not None and age < query.age_from:
            return False
        return query.age_to is None or age <= query.age_to

    for row in rows:
        assert sum(1 for leaf in leaves if matches(leaf, row)) == 1


def test_atomize_terminates_with_the_expected_leaf_count() -> None:
    root = Query(date_from=DAY, date_to=DAY + timedelta(days=1), age_from=None, age_to=None)
    leaves = Partitioner().atomize(root)
    # one leaf per valid event, per day, per age 0..51
    assert len(leaves) == len(VALID_EVENTS) * 2 * 52


def test_proven_empty_events() -> None:
    assert is_proven_empty(_leaf(course=Course.LCM, distance=Distance.D1650))
    assert not is_proven_empty(_leaf(course=Course.SCY, distance=Distance.D1650))
    assert not is_proven_empty(_leaf(distance=Distance.ALL))
