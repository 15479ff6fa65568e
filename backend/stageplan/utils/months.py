from __future__ import annotations

import calendar
import re
from collections.abc import Iterator
from datetime import date


MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

MONTH_LABELS: dict[str, list[str]] = {
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
    "pt": ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"],
}


def is_month_key(value: str) -> bool:
    return isinstance(value, str) and MONTH_KEY_RE.match(value) is not None


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_key_for(day: date) -> str:
    return month_key(day.year, day.month)


def parse_month_key(value: str) -> tuple[int, int]:
    if not is_month_key(value):
        raise ValueError(f"Invalid month key: {value!r}. Expected YYYY-MM.")
    year_str, month_str = value.split("-")
    return int(year_str), int(month_str)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def iter_month_keys(first: str, last: str) -> Iterator[str]:
    """Yield every month key from ``first`` to ``last`` inclusive, in order."""
    year, month = parse_month_key(first)
    end_year, end_month = parse_month_key(last)
    while (year, month) <= (end_year, end_month):
        yield month_key(year, month)
        year, month = next_month(year, month)


def month_label(value: str, locale: str = "en") -> str:
    year, month = parse_month_key(value)
    labels = MONTH_LABELS.get(locale, MONTH_LABELS["en"])
    return f"{labels[month - 1]}/{year:04d}"
