"""HTTP transport for the Top Times / Event Rank Search form."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Protocol

import httpx
import structlog

from ..errors import TransportError
from ..model.facets import Gender
from ..model.query import Query

URL_PAGE = "https://www.usaswimming.org/times/popular-resources/event-rank-search"
URL_API = "https://www.usaswimming.org/api/Times_TimesSearchTopTimesEventRankSearch/ListTimes"
DIV_ID = "Times_TimesSearchTopTimesEventRankSearch_Index_Div-1"
RATE_LIMIT_MARKERS = ("Please rerun the report.",)


@dataclass(slots=True)
class RawDocument:
    """Standardised response wrapper for one query."""

    identity: str
    gender: Gender
    status_code: int
    text: str
    elapsed: float = 0.0
    headers: Dict[str, str] = field(default_factory=dict, repr=False)


class Transport(Protocol):
    """One long-lived network identity owned by exactly one worker."""

    name: str

    def warm_up(self) -> None: ...

    def fetch(self, query: Query) -> RawDocument: ...

    def close(self) -> None: ...


def _format_date(value) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def build_form(query: Query) -> dict[str, str]:
    """Form fields posted to the ListTimes endpoint for ``query``."""

    return {
        "DivId": DIV_ID,
        "DateRangeId": "0",
        "FromDate": _format_date(query.date_from),
        "ToDate": _format_date(query.date_to),
        "TimeType": "Individual",
        "DistanceId": query.distance.wire,
        "StrokeId": query.stroke.wire,
        "CourseId": query.course.wire,
        "StartAge": "All" if query.age_from is None else str(query.age_from),
        "EndAge": "All" if query.age_to is None else str(query.age_to),
        "Gender": query.gender.wire,
        "Standard": "12",
        "IncludeTimesForUsaSwimmingMembersOnly": "Yes" if query.members_only else "No",
        "ClubId": "-1",
        "ClubName": "",
        "Lscs": "All",
        "Zone": query.zone.wire,
        "TimesToInclude": "Best" if query.best_only else "All",
        "SortBy1": "EventSortOrder",
        "SortBy2": "",
        "SortBy3": "",
        "MaxResults": str(query.result_cap),
    }


class TopTimesClient:
    """Cookie-holding session bound to one outbound proxy."""

    def __init__(
        self,
        name: str = "client-0",
        proxy: str | None = None,
        user_agent: str | None = None,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.name = name
        self.proxy = proxy
        self.logger = logger or structlog.get_logger("swim_mirror.fetcher").bind(client=name)
        client_kwargs: dict[str, Any] = {
            "follow_redirects": True,
            "timeout": timeout,
            "headers": {"User-Agent": user_agent} if user_agent else None,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif proxy:
            client_kwargs["proxy"] = proxy
        self._client = httpx.Client(**client_kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TopTimesClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    def warm_up(self) -> None:
        """Visit the landing page so the cookie jar holds a search session."""

        self._request("GET", URL_PAGE)
        self.logger.info("client_warmed_up", proxy=self.proxy, cookies=len(self._client.cookies))

    def fetch(self, query: Query) -> RawDocument:
        start = time.perf_counter()
        response = self._request("POST", URL_API, data=build_form(query))
        text = response.text
        for marker in RATE_LIMIT_MARKERS:
            if marker in text:
                raise TransportError(f"Rate limited: {marker}")
        return RawDocument(
            identity=query.identity(),
            gender=query.gender,
            status_code=response.status_code,
            text=text,
            elapsed=time.perf_counter() - start,
            headers=dict(response.headers),
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        if self._is_failure(response):
            raise TransportError(f"{method} {url} returned unexpected status {response.status_code}")
        return response

    @staticmethod
    def _is_failure(response: httpx.Response) -> bool:
        # 401/403/429 and 5xx all mean this identity got nothing usable.
        return response.status_code >= 400


__all__ = [
    "DIV_ID",
    "RATE_LIMIT_MARKERS",
    "RawDocument",
    "TopTimesClient",
    "Transport",
    "URL_API",
    "URL_PAGE",
    "build_form",
]
