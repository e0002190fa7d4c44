"""Text and number helpers for German-formatted statistics pages.

The number parsers never raise: upstream data quality is not under our control,
so anything unparseable becomes 0.
"""

import re

from bs4 import BeautifulSoup

NAME_NUMBER_DELIMITER = " - "


def clean_text(s: str | None) -> str:
    if not s:
        return ""
    return re.sub(r"\s+", " ", s.strip())


def _strip_common(s: str | None) -> str:
    if not s:
        return ""
    return s.strip().replace(" ", "").replace("\xa0", "").replace("%", "")


def parse_int(s: str | None) -> int:
    """Parse ``"1.234"`` / ``"45 %"`` style integers; 0 when unparseable."""
    s = _strip_common(s).replace(".", "").replace(",", "")
    if not s:
        return 0
    try:
        return int(s)
    except ValueError:
        return 0


def parse_float(s: str | None) -> float:
    """Parse ``"45,6 %"`` style decimals (comma as decimal separator); 0.0 when unparseable."""
    s = _strip_common(s).replace(",", ".")
    if not s:
        return 0.0
    try:
        return float(s)
    except ValueError:
        return 0.0


def is_parseable_number(s: str | None) -> bool:
    """True when the cell holds something the parsers above can read."""
    cleaned = _strip_common(s).replace(".", "").replace(",", "")
    return bool(re.fullmatch(r"-?\d+", cleaned))


def split_name_and_number(full_name: str | None) -> tuple[str, str]:
    """Split ``"School Name - 02Y04"`` on the last delimiter into (name, number).

    Without a delimiter the whole string is the name and the number is empty.
    """
    if not full_name:
        return "", ""
    name, sep, number = full_name.rpartition(NAME_NUMBER_DELIMITER)
    if not sep:
        return full_name.strip(), ""
    return name.strip(), number.strip()


def soup_from_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def is_parseable_decimal(s: str | None) -> bool:
    cleaned = _strip_common(s).replace(",", ".")
    return bool(re.fullmatch(r"-?\d+(\.\d+)?", cleaned))
