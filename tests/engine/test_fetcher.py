from __future__ import annotations

from datetime import date
from urllib.parse import parse_qs

import httpx
import pytest

from swim_mirror.engine import TopTimesClient, build_form
from swim_mirror.engine.fetcher import DIV_ID, URL_API, URL_PAGE
from swim_mirror.errors import TransportError
from swim_mirror.model import Course, Distance, Gender, Query, Stroke, Zone

QUERY = Query(
    date_from=date(2024, 1, 5),
    date_to=date(2024, 2, 17),
    gender=Gender.FEMALE,
    course=Course.SCY,
    stroke=Stroke.BR,
    distance=Distance.D200,
    age_from=11,
    zone=Zone.SOUTHERN,
    best_only=True,
)


def test_build_form_maps_every_facet() -> None:
    form = build_form(QUERY)
    assert form["DivId"] == DIV_ID
    assert form["FromDate"] == "1/5/2024"
    assert form["ToDate"] == "2/17/2024"
    assert form["Gender"] == "Female"
    assert form["CourseId"] == "1"
    assert form["StrokeId"] == "3"
    assert form["DistanceId"] == "200"
    assert form["StartAge"] == "11"
    assert form["EndAge"] == "All"
    assert form["Zone"] == "3"
    assert form["TimesToInclude"] == "Best"
    assert form["IncludeTimesForUsaSwimmingMembersOnly"] == "No"
    assert form["MaxResults"] == "5000"


def _client(handler, **kwargs) -> TopTimesClient:
    return TopTimesClient(name="client-7", transport=httpx.MockTransport(handler), **kwargs)


def test_warm_up_then_fetch_posts_the_form() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "GET":
            return httpx.Response(200, text="<html></html>", headers={"Set-Cookie": "sid=abc; Path=/"})
        return httpx.Response(200, text="<table></table>")

    with _client(handler, user_agent="UA-test") as client:
        client.warm_up()
        raw = client.fetch(QUERY)

    assert [request.method for request in seen] == ["GET", "POST"]
    assert str(seen[0].url) == URL_PAGE
    assert str(seen[1].url) == URL_API
    assert seen[1].headers["User-Agent"] == "UA-test"
    assert "sid=abc" in seen[1].headers.get("Cookie", "")
    body = parse_qs(seen[1].content.decode())
    assert body["Gender"] == ["Female"]
    assert body["StrokeId"] == ["3"]
    assert raw.identity == QUERY.identity()
    assert raw.gender is Gender.FEMALE
    assert raw.status_code == 200
    assert raw.text == "<table></table>"


def test_rate_limit_marker_is_a_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<p>Please rerun the report.</p>")

    client = _client(handler)
    with pytest.raises(TransportError, match="Rate limited"):
        client.fetch(QUERY)
    client.close()


@pytest.mark.parametrize("status", [403, 429, 500])
def test_http_failures_are_transport_errors(status: int) -> None:
    client = _client(lambda request: httpx.Response(status, text="nope"))
    with pytest.raises(TransportError, match=str(status)):
        client.fetch(QUERY)
    client.close()


def test_network_errors_are_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(TransportError):
        client.warm_up()
    client.close()
