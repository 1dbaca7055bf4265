"""
Date parsing and locale-pattern formatting for date fields.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

DAY_FIRST_FORMATS = ["%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d"]

_TOKEN_PATTERN = re.compile(
    r"\b(dd?|mm?|yy(?:yy)?)([/\-. ])(dd?|mm?|yy(?:yy)?)\2(dd?|mm?|yy(?:yy)?)\b",
    re.IGNORECASE,
)
_WORD_PATTERN = re.compile(r"\b(day|month|year)\b\W+\b(day|month|year)\b\W+\b(day|month|year)\b", re.IGNORECASE)


@dataclass(frozen=True)
class DatePattern:
    """Component order (e.g. "DMY"), separator and year width."""
    order: str = "DMY"
    separator: str = "/"
    year_digits: int = 4


DEFAULT_DATE_PATTERN = DatePattern()


def parse_date(value: str) -> Optional[date]:
    """Parse ISO dates first, then common day-first forms."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        pass
    for fmt in DAY_FIRST_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _pattern_from_tokens(tokens, separator: str) -> Optional[DatePattern]:
    order = "".join(token[0].upper() for token in tokens)
    if sorted(order) != sorted("DMY"):
        return None
    year = next(token for token in tokens if token[0].lower() == "y")
    return DatePattern(order=order, separator=separator, year_digits=2 if len(year) == 2 else 4)


def infer_date_pattern(hints: Iterable[str]) -> DatePattern:
    """Infer the expected date layout from placeholder/label text.

    Recognizes tokens such as ``dd/mm/yyyy``, ``MM-DD-YY`` or ``yyyy.mm.dd`` and
    word forms like ``day / month / year``. Falls back to day/month/year with "/".
    """
    for hint in hints:
        if not hint:
            continue
        token_match = _TOKEN_PATTERN.search(hint)
        if token_match:
            tokens = (token_match.group(1), token_match.group(3), token_match.group(4))
            pattern = _pattern_from_tokens(tokens, token_match.group(2))
            if pattern:
                return pattern
        word_match = _WORD_PATTERN.search(hint)
        if word_match:
            order = "".join(word[0].upper() for word in word_match.groups())
            if sorted(order) == sorted("DMY"):
                return DatePattern(order=order, separator=DEFAULT_DATE_PATTERN.separator)
    return DEFAULT_DATE_PATTERN


def format_date(value: str, pattern: DatePattern = DEFAULT_DATE_PATTERN) -> str:
    """Reformat a date value to the pattern; unparseable values are returned unchanged."""
    parsed = parse_date(value)
    if parsed is None:
        return value
    parts = {
        "D": f"{parsed.day:02d}",
        "M": f"{parsed.month:02d}",
        "Y": f"{parsed.year:04d}" if pattern.year_digits == 4 else f"{parsed.year % 100:02d}",
    }
    return pattern.separator.join(parts[c] for c in pattern.order)


def to_iso(value: str) -> str:
    """Canonical year-month-day form for structured date inputs."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else value
