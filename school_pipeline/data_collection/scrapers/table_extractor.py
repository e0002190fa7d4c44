"""Generic HTML table extraction and visible-table selection.

Two concerns live here:

* ``parse_table_html`` turns the outerHTML of one ``<table>`` into a
  ``StatisticTable`` without assuming a well-formed thead/tbody split.
* ``select_visible_table`` picks the table a statistics tab revealed. The
  portal toggles tab panels by script, so "visible" is checked with a fixed
  chain of strategies over ``TableCandidate`` facts collected in the page
  (``TABLE_FACTS_JS``) or derived from static markup (``candidates_from_html``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Sequence

from bs4 import BeautifulSoup, Comment, Tag

from ...common.parsing import soup_from_html
from ...domain.models import StatisticTable

ROW_SECTIONS = ("thead", "tbody", "tfoot")


# =============================================================================
# 1. TABLE PARSING
# =============================================================================


def iter_rows(table: Tag) -> Iterator[tuple[Tag, Optional[str]]]:
    """Yield (tr, section name) for rows owned by ``table`` itself, in document order."""
    for child in table.children:
        if not isinstance(child, Tag):
            continue
        if child.name == "tr":
            yield child, None
        elif child.name in ROW_SECTIONS:
            for tr in child.find_all("tr", recursive=False):
                yield tr, child.name


def cell_text(cell: Tag) -> str:
    parts = (
        s.strip()
        for s in cell.find_all(string=True)
        if not isinstance(s, Comment)
    )
    return "".join(parts).strip()


def parse_table(table: Tag) -> Optional[StatisticTable]:
    headers: Optional[list[str]] = None
    rows: list[list[str]] = []
    for tr, section in iter_rows(table):
        cells = [cell_text(c) for c in tr.find_all(["td", "th"], recursive=False)]
        if not cells:
            continue
        if headers is None:
            headers = cells
        elif section == "thead":
            # additional header rows are dropped, only the first is kept
            continue
        else:
            rows.append(cells)
    if headers is None:
        return None
    return StatisticTable(headers=headers, rows=rows)


def parse_table_html(html: str | None) -> Optional[StatisticTable]:
    """Parse the first ``<table>`` in ``html``; None if there is none or it has no rows."""
    if not html:
        return None
    table = soup_from_html(html).find("table")
    if table is None:
        return None
    return parse_table(table)


# =============================================================================
# 2. VISIBLE TABLE SELECTION
# =============================================================================

# Collects the facts every strategy needs in one round trip.
TABLE_FACTS_JS = """
() => Array.from(document.querySelectorAll('table')).map((t, i) => {
    const style = window.getComputedStyle(t);
    return {
        index: i,
        id: t.id || '',
        className: typeof t.className === 'string' ? t.className : '',
        offsetVisible: t.offsetParent !== null,
        display: style.display,
        visibility: style.visibility,
        rowCount: t.rows ? t.rows.length : 0,
        html: t.outerHTML,
    };
})
"""


@dataclass(frozen=True)
class TableCandidate:
    index: int
    offset_visible: bool
    display: str
    visibility: str
    row_count: int
    html: str
    element_id: str = ""
    css_class: str = ""

    @property
    def has_rows(self) -> bool:
        return self.row_count > 0

    @property
    def styled_visible(self) -> bool:
        return self.display != "none" and self.visibility != "hidden"

    @classmethod
    def from_facts(cls, facts: dict[str, Any]) -> "TableCandidate":
        return cls(
            index=int(facts.get("index", 0)),
            offset_visible=bool(facts.get("offsetVisible")),
            display=str(facts.get("display") or ""),
            visibility=str(facts.get("visibility") or ""),
            row_count=int(facts.get("rowCount") or 0),
            html=str(facts.get("html") or ""),
            element_id=str(facts.get("id") or ""),
            css_class=str(facts.get("className") or ""),
        )

    def describe(self) -> str:
        return (
            f"Table {self.index}: id={self.element_id or 'no-id'}, class={self.css_class or 'no-class'}, "
            f"visible={self.offset_visible}, display={self.display}, "
            f"visibility={self.visibility}, rows={self.row_count}"
        )


class VisibilityStrategy(str, Enum):
    BY_OFFSET_VISIBILITY = "offset_visibility"
    BY_COMPUTED_STYLE = "computed_style"
    FIRST_WITH_ROWS = "first_with_rows"

    def matches(self, candidate: TableCandidate) -> bool:
        if not candidate.has_rows:
            return False
        if self is VisibilityStrategy.BY_OFFSET_VISIBILITY:
            return candidate.offset_visible and candidate.styled_visible
        if self is VisibilityStrategy.BY_COMPUTED_STYLE:
            return candidate.styled_visible
        return True


DEFAULT_STRATEGIES: tuple[VisibilityStrategy, ...] = (
    VisibilityStrategy.BY_OFFSET_VISIBILITY,
    VisibilityStrategy.BY_COMPUTED_STYLE,
    VisibilityStrategy.FIRST_WITH_ROWS,
)


@dataclass(frozen=True)
class TableSelection:
    strategy: VisibilityStrategy
    candidate: TableCandidate


def select_visible_table(
    candidates: Sequence[TableCandidate],
    strategies: Iterable[VisibilityStrategy] = DEFAULT_STRATEGIES,
) -> Optional[TableSelection]:
    """Try each strategy in order; within one, the first candidate in document order wins."""
    ordered = sorted(candidates, key=lambda c: c.index)
    for strategy in strategies:
        for candidate in ordered:
            if strategy.matches(candidate):
                return TableSelection(strategy=strategy, candidate=candidate)
    return None


_DISPLAY_RE = re.compile(r"display\s*:\s*([a-z-]+)", re.IGNORECASE)
_VISIBILITY_RE = re.compile(r"visibility\s*:\s*([a-z-]+)", re.IGNORECASE)


def _inline(tag: Tag, pattern: re.Pattern[str]) -> Optional[str]:
    m = pattern.search(tag.get("style") or "")
    return m.group(1).lower() if m else None


def _own_display(tag: Tag) -> Optional[str]:
    if tag.has_attr("hidden"):
        return "none"
    return _inline(tag, _DISPLAY_RE)


def _row_count(table: Tag) -> int:
    return sum(1 for _ in iter_rows(table))


def candidates_from_html(html: str | BeautifulSoup) -> list[TableCandidate]:
    """Approximate the in-page table facts from static markup (inline styles only)."""
    soup = html if isinstance(html, BeautifulSoup) else soup_from_html(html)
    candidates: list[TableCandidate] = []
    for index, table in enumerate(soup.find_all("table")):
        chain = [table, *[p for p in table.parents if isinstance(p, Tag) and p.name != "[document]"]]
        display = _own_display(table) or "table"
        visibility = next(
            (v for v in (_inline(t, _VISIBILITY_RE) for t in chain) if v), "visible"
        )
        offset_visible = not any(_own_display(t) == "none" for t in chain)
        candidates.append(
            TableCandidate(
                index=index,
                offset_visible=offset_visible,
                display=display,
                visibility=visibility,
                row_count=_row_count(table),
                html=str(table),
                element_id=table.get("id") or "",
                css_class=" ".join(table.get("class") or []),
            )
        )
    return candidates


__all__ = [
    "DEFAULT_STRATEGIES",
    "TABLE_FACTS_JS",
    "TableCandidate",
    "TableSelection",
    "VisibilityStrategy",
    "candidates_from_html",
    "cell_text",
    "iter_rows",
    "parse_table",
    "parse_table_html",
    "select_visible_table",
]
