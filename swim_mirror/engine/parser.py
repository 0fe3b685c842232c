"""HTML parsing of Top Times result tables."""

from __future__ import annotations

from html import unescape

from selectolax.lexbor import LexborHTMLParser, LexborNode

from ..errors import ParseError
from ..model.facets import Gender, SwimEvent
from ..model.records import TopTime, parse_swim_time
from .fetcher import RawDocument

CELL_SELECTOR = "td.usas-hide-mobile"
# rank | time | name | foreign | age | lsc | event | team | meet | standard | sanctioned | script
CELLS_PER_ROW = 12


def _cell_text(node: LexborNode) -> str:
    return unescape(node.text(deep=True, separator=" ", strip=True)).strip()


def _yes(value: str) -> bool:
    return value.strip().lower() == "yes"


def parse_top_times(html: str, gender: Gender = Gender.MIXED) -> list[TopTime]:
    """Turn a ListTimes HTML fragment into records.

    An empty table is a valid empty result; a trailing partial row or a cell
    that does not parse means the document is not what we expect.
    """

    cells = [_cell_text(node) for node in LexborHTMLParser(html).css(CELL_SELECTOR)]
    if len(cells) % CELLS_PER_ROW:
        raise ParseError(
            f"Found {len(cells)} result cells, not a multiple of {CELLS_PER_ROW}"
        )
    records: list[TopTime] = []
    for offset in range(0, len(cells), CELLS_PER_ROW):
        row = cells[offset : offset + CELLS_PER_ROW]
        try:
            seconds, relay = parse_swim_time(row[1])
            records.append(
                TopTime(
                    rank=int(row[0]),
                    time=seconds,
                    relay=relay,
                    swimmer_name=row[2],
                    foreign=_yes(row[3]),
                    age=int(row[4]),
                    lsc=row[5],
                    event=SwimEvent.parse(row[6]),
                    team_name=row[7],
                    meet_name=row[8],
                    time_standard=row[9],
                    sanctioned=_yes(row[10]),
                    gender=gender,
                )
            )
        except ValueError as exc:
            raise ParseError(f"Unparseable result row {offset // CELLS_PER_ROW}: {row[:7]}") from exc
    return records


def parse_document(raw: RawDocument) -> list[TopTime]:
    return parse_top_times(raw.text, raw.gender)


__all__ = ["CELLS_PER_ROW", "CELL_SELECTOR", "parse_document", "parse_top_times"]
