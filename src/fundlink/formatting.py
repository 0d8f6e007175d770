"""Display helpers shared by the CLI and scoring rationale."""

import re
from datetime import date, datetime
from typing import Any

from .parser import to_date, to_number

MISSING = "—"

_STATE_SEPARATORS = re.compile(r"[,/|;]+")


def fmt_pct(value: Any, digits: int = 2) -> str:
    number = to_number(value)
    if number is None:
        return MISSING
    return f"{number:.{digits}f}%"


def fmt_money(value: Any) -> str:
    """Abbreviate dollars: $1.20B, $2.5M, $300K, $950."""
    number = to_number(value)
    if number is None:
        return MISSING
    magnitude = abs(number)
    if magnitude >= 1e9:
        return f"${number / 1e9:.2f}B"
    if magnitude >= 1e6:
        return f"${number / 1e6:.1f}M"
    if magnitude >= 1e3:
        return f"${number / 1e3:.0f}K"
    return f"${number:.0f}"


def fmt_num(value: Any, digits: int = 0) -> str:
    number = to_number(value)
    if number is None:
        return MISSING
    return f"{number:.{digits}f}"


def fmt_date(value: Any) -> str:
    """Render as 'Jan 15, 2024'; unparseable text is returned unchanged."""
    if value is None or value == "":
        return MISSING
    parsed = value if isinstance(value, (date, datetime)) else to_date(value)
    if parsed is None:
        return str(value)
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"


def extract_states(location: str) -> list[str]:
    """Split a property-location string into its parts."""
    if not location:
        return []
    return [part.strip() for part in _STATE_SEPARATORS.split(location) if part.strip()]
