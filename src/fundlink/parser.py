"""Google Sheets (gviz) feed parser.

Turns the callback-wrapped JSON table served by the sheet's gviz endpoint
into FundRecord objects. Column labels are matched exactly against
COLUMN_MAP; unknown labels are ignored so new sheet columns never break a
load. Every mapped cell is coerced by kind (text, number, money, percent,
date) and numeric results are always a finite float or None.
"""

import json
import logging
import math
import re
from datetime import date, datetime
from typing import Any, Callable, NamedTuple, Optional, Union

from .errors import FeedParseError
from .models import INCOME_YEARS, FundRecord, FundStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TEXT = "text"
NUMBER = "number"
MONEY = "money"
PERCENT = "percent"
DATE = "date"

CLOSING_SOON_DAYS = 30
MIN_VELOCITY_DAYS = 3
DAYS_PER_MONTH = 30.44
DISPLAY_LABEL_MAX = 48


class Column(NamedTuple):
    field: str
    kind: str
    index: Optional[int] = None


def _income(index: int) -> Column:
    return Column("income", PERCENT, index)


# Column label (exact, case-sensitive) -> target field.
COLUMN_MAP: dict[str, Column] = {
    "Sponsor": Column("sponsor", TEXT),
    "Offering Name": Column("name", TEXT),
    "Asset Class": Column("asset_class", TEXT),
    "Sector": Column("sector", TEXT),
    "Focus": Column("focus", TEXT),
    "Filed Raise": Column("filed_raise", MONEY),
    "Current Raise": Column("current_raise", MONEY),
    "Remaining Raise": Column("equity_remaining", MONEY),
    "Offering Open": Column("offering_open", DATE),
    "Offering Close": Column("offering_close", DATE),
    "Offering Structure": Column("offering_structure", TEXT),
    "Year 1 Cash on Cash Distribution": Column("y1_coc", PERCENT),
    "Frequency": Column("dist_frequency", TEXT),
    "Loan to Value": Column("ltv", PERCENT),
    "Preferred": Column("preferred", PERCENT),
    "Promote": Column("promote", TEXT),
    "721 UpREIT": Column("up_reit", TEXT),
    "Exemption": Column("exemption", TEXT),
    "Tax Reporting": Column("tax_reporting", TEXT),
    "Hold Period": Column("hold_period", NUMBER),
    "Minimum - DST": Column("min_invest", MONEY),
    "# Assets": Column("num_assets", NUMBER),
    "Property Location(s)": Column("location", TEXT),
    "Building Age": Column("building_age", TEXT),
    "(Avg)% Leased": Column("occupancy", PERCENT),
    "Debt Terms": Column("debt_terms", TEXT),
    "DSCR": Column("dscr", NUMBER),
    "Lease Terms": Column("lease_terms", TEXT),
    "Total Square Footage": Column("sqft", NUMBER),
    "Tenant Credit Quality": Column("tenant_credit", TEXT),
    "Rent Escalations": Column("rent_escalations", TEXT),
    "Average Lease Term Remaining": Column("avg_lease_term", NUMBER),
    "GP Commit": Column("gp_commit", TEXT),
    "Purchase Price (Unloaded)": Column("purchase_price", MONEY),
    "Appraised Valuation": Column("appraised_value", MONEY),
    "Loaded Price": Column("loaded_price", MONEY),
    "Acquisition Cap Rate": Column("cap_rate", PERCENT),
    "Rep Comp": Column("rep_comp", PERCENT),
    "Sales Load": Column("sales_load", PERCENT),
    "Reserve": Column("reserve", TEXT),
    "Year 1": _income(0),
    "Year 2": _income(1),
    "Year 3": _income(2),
    "ear 3": _income(2),  # upstream typo of "Year 3"
    "Year 4": _income(3),
    "Year 5": _income(4),
    "Year 6": _income(5),
    "Year 7": _income(6),
    "Year 8": _income(7),
    "Year 9": _income(8),
    "Year 10": _income(9),
    "Sponsor AUM": Column("sponsor_aum", TEXT),
    "Number of Sponsor Offerings": Column("sponsor_offerings", NUMBER),
    "Sponsor Full Cycle Exits": Column("sponsor_exits", NUMBER),
    "Sponsor Average IRR": Column("sponsor_avg_irr", PERCENT),
    "Sponsor Best IRR": Column("sponsor_best_irr", PERCENT),
    "Sponsor Worst IRR": Column("sponsor_worst_irr", PERCENT),
    "Sponsor Experience": Column("sponsor_experience", TEXT),
    "Brochure": Column("brochure_url", TEXT),
    "PPM": Column("ppm_url", TEXT),
    "Track Record": Column("track_record_url", TEXT),
    "Sales Team Map": Column("sales_team_url", TEXT),
    "Video": Column("video_url", TEXT),
    "Sponsor News": Column("sponsor_news_url", TEXT),
    "AI Offering Chat": Column("ai_chat_url", TEXT),
    "Quarterly Update URL": Column("quarterly_update_url", TEXT),
    "Sponsor Logo URL": Column("sponsor_logo_url", TEXT),
}

_ENVELOPE = re.compile(r"^[^(]*\((.*)\)\s*;?\s*$", re.S)
_NUMBER_NOISE = re.compile(r"[\s$€£,%]")
_MAGNITUDE = re.compile(
    r"^[^\d+\-.]*([-+]?(?:\d[\d,]*(?:\.\d+)?|\.\d+))\s*"
    r"(thousand|million|billion|mm|bn|k|m|b)\b",
    re.I,
)
_MULTIPLIERS = {
    "k": 1e3, "thousand": 1e3,
    "m": 1e6, "mm": 1e6, "million": 1e6,
    "b": 1e9, "bn": 1e9, "billion": 1e9,
}
_DATE_CTOR = re.compile(r"^\s*Date\(\s*(\d{4})\s*,\s*(\d{1,2})\s*,\s*(\d{1,2})")
_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%b %d, %Y", "%B %d, %Y")


# ----------------------------------------------------------------------
# Coercion helpers
# ----------------------------------------------------------------------


def to_number(value: Any) -> Optional[float]:
    """Coerce a cell value to a finite float.

    Strings lose currency symbols, thousands separators, percent signs and
    whitespace before parsing. Anything unparseable (or NaN/inf) is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _magnitude(text: Any) -> Optional[tuple[float, float]]:
    """Return (scaled value, multiplier) for text like "$1.2M", else None."""
    if not isinstance(text, str):
        return None
    match = _MAGNITUDE.match(text.strip())
    if not match:
        return None
    number = to_number(match.group(1))
    if number is None:
        return None
    multiplier = _MULTIPLIERS[match.group(2).lower()]
    return number * multiplier, multiplier


def to_money(value: Any, formatted: Optional[str] = None) -> Optional[float]:
    """Coerce a money cell.

    The raw value is kept when it already holds dollars. A magnitude suffix
    ("$1.2M", "850K") is applied only when the raw number is missing or
    smaller than the suffix's multiplier, i.e. upstream stored it unscaled.
    """
    raw = to_number(value)
    for text in (value, formatted):
        magnitude = _magnitude(text)
        if magnitude is None:
            continue
        scaled, multiplier = magnitude
        if raw is None or abs(raw) < multiplier:
            return scaled
        return raw
    if raw is None:
        raw = to_number(formatted)
    return raw


def to_percent(value: Any, formatted: Optional[str] = None) -> Optional[float]:
    """Coerce a percentage cell to a whole-number percent.

    Nonzero values with magnitude <= 1 are fractions and are scaled by 100;
    anything larger is already a percent. Applying this to its own output
    is a no-op for values above 1.
    """
    number = to_number(value)
    if number is None:
        number = to_number(formatted)
    if number is None:
        return None
    if number != 0 and abs(number) <= 1:
        return round(number * 100, 10)
    return number


def to_date(value: Any) -> Optional[date]:
    """Parse a native date, a gviz ``Date(y,m,d)`` literal (zero-based month),
    an ISO date, or a US-style date string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    match = _DATE_CTOR.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            return date(year, month + 1, day)
        except ValueError:
            return None

    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def to_text(value: Any, formatted: Optional[str] = None) -> str:
    """Render a cell as text, preferring the display string for typed values."""
    if value is None:
        return (formatted or "").strip()
    if isinstance(value, str):
        return value.strip()
    if formatted:
        return formatted.strip()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ----------------------------------------------------------------------
# Derived fields
# ----------------------------------------------------------------------


def compute_status(offering_close: Optional[date], today: date) -> FundStatus:
    """Open with no close date; Closed once past; Closing Soon inside 30 days."""
    if offering_close is None:
        return FundStatus.OPEN
    days_left = (offering_close - today).days
    if days_left < 0:
        return FundStatus.CLOSED
    if days_left < CLOSING_SOON_DAYS:
        return FundStatus.CLOSING_SOON
    return FundStatus.OPEN


def compute_pct_remaining(equity_remaining: Optional[float],
                          filed_raise: Optional[float]) -> Optional[float]:
    if equity_remaining is None or filed_raise is None or filed_raise <= 0:
        return None
    pct = equity_remaining / filed_raise * 100
    return min(100.0, max(0.0, pct))


def compute_raise_velocity(current_raise: Optional[float],
                           offering_open: Optional[date],
                           today: date) -> Optional[float]:
    """Dollars raised per month since the offering opened."""
    if current_raise is None or offering_open is None:
        return None
    elapsed_days = (today - offering_open).days
    # Too early to extrapolate a monthly rate
    if elapsed_days < MIN_VELOCITY_DAYS:
        return None
    return current_raise / (elapsed_days / DAYS_PER_MONTH)


def make_display_label(name: str, fund_id: int) -> str:
    name = (name or "").strip()
    if not name:
        return f"Offering {fund_id}"
    if len(name) <= DISPLAY_LABEL_MAX:
        return name
    return name[:DISPLAY_LABEL_MAX - 1].rstrip() + "…"


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------


class FeedParser:
    """Parser for the offerings sheet served as a gviz JSON response."""

    COLUMN_MAP = COLUMN_MAP

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or datetime.now

    def parse(self, raw: Union[str, bytes]) -> list[FundRecord]:
        """Parse a raw gviz response into fund records.

        Args:
            raw: Response body, optionally wrapped in a JS callback.

        Returns:
            Records in source row order; blank rows are dropped.

        Raises:
            FeedParseError: If the envelope, JSON or table is malformed.
        """
        table = self.unwrap(raw)
        return self.parse_table(table)

    def unwrap(self, raw: Union[str, bytes]) -> dict:
        """Strip the callback envelope and return the ``table`` object."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if not isinstance(raw, str) or not raw.strip():
            raise FeedParseError("Feed payload is empty")

        text = raw.strip()
        if not text.startswith("{"):
            match = _ENVELOPE.match(text)
            if not match:
                raise FeedParseError("Feed payload has no callback envelope or JSON body")
            text = match.group(1)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to decode feed JSON: {e}")
            raise FeedParseError(f"Feed payload is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise FeedParseError("Feed payload is not a JSON object")

        if data.get("status") == "error":
            errors = data.get("errors") or []
            detail = "; ".join(
                str(err.get("detailed_message") or err.get("message") or err)
                for err in errors if isinstance(err, dict)
            )
            raise FeedParseError(f"Feed reported an error: {detail or 'unknown'}")

        table = data.get("table")
        if not isinstance(table, dict):
            raise FeedParseError("Feed payload has no table")
        return table

    def parse_table(self, table: dict) -> list[FundRecord]:
        """Convert a gviz table ({cols, rows}) into fund records.

        Ids are 1-based positions among all source rows, assigned before
        blank rows are dropped.
        """
        cols = table.get("cols") or []
        rows = table.get("rows") or []
        if not isinstance(cols, list) or not all(isinstance(col, dict) for col in cols):
            raise FeedParseError("Feed table columns must be a list of objects")
        if not isinstance(rows, list):
            raise FeedParseError("Feed table rows must be a list")

        labels = [col.get("label") or col.get("id") or "" for col in cols]
        unknown = [label for label in labels if label and label not in self.COLUMN_MAP]
        if unknown:
            logger.debug(f"Ignoring unmapped columns: {', '.join(unknown)}")

        today = self.clock().date()
        funds = []
        for row_idx, row in enumerate(rows):
            fund = self.parse_row(labels, row, row_idx + 1, today)
            if fund is not None:
                funds.append(fund)

        logger.info(f"Parsed {len(funds)} offerings from {len(rows)} rows")
        return funds

    def parse_row(self, labels: list[str], row: Optional[dict], fund_id: int,
                  today: Optional[date] = None) -> Optional[FundRecord]:
        """Map one gviz row to a FundRecord, or None for a blank row."""
        if row is not None and not isinstance(row, dict):
            raise FeedParseError(f"Feed row {fund_id} is not an object")
        cells = (row or {}).get("c") or []
        if not isinstance(cells, list) or not all(
                cell is None or isinstance(cell, dict) for cell in cells):
            raise FeedParseError(f"Feed row {fund_id} has malformed cells")
        if not any(self._is_populated(cell) for cell in cells):
            return None

        values: dict[str, Any] = {}
        income: list[Optional[float]] = [None] * INCOME_YEARS

        for label, cell in zip(labels, cells):
            column = self.COLUMN_MAP.get(label)
            if column is None:
                continue
            raw, formatted = self._cell_parts(cell)
            value = self._coerce(column.kind, raw, formatted)

            if column.field == "income":
                if value is not None or income[column.index] is None:
                    income[column.index] = value
            elif value not in (None, "") or column.field not in values:
                # Aliased labels must not blank out an already populated field
                values[column.field] = value

        name = values.get("name") or ""
        if not name:
            return None

        fund = FundRecord(id=fund_id, income=income,
                          **{k: v for k, v in values.items() if v is not None})
        self._derive(fund, today or self.clock().date())
        return fund

    def _derive(self, fund: FundRecord, today: date) -> None:
        fund.prop_type = fund.sector or fund.asset_class
        fund.display_label = make_display_label(fund.name, fund.id)
        fund.status = compute_status(fund.offering_close, today)
        fund.pct_remaining = compute_pct_remaining(fund.equity_remaining, fund.filed_raise)
        fund.raise_velocity = compute_raise_velocity(fund.current_raise, fund.offering_open, today)

    def _coerce(self, kind: str, raw: Any, formatted: Optional[str]) -> Any:
        if kind == NUMBER:
            number = to_number(raw)
            return number if number is not None else to_number(formatted)
        if kind == MONEY:
            return to_money(raw, formatted)
        if kind == PERCENT:
            return to_percent(raw, formatted)
        if kind == DATE:
            parsed = to_date(raw)
            return parsed if parsed is not None else to_date(formatted)
        return to_text(raw, formatted)

    @staticmethod
    def _cell_parts(cell: Optional[dict]) -> tuple[Any, Optional[str]]:
        if not isinstance(cell, dict):
            return None, None
        formatted = cell.get("f")
        return cell.get("v"), formatted if isinstance(formatted, str) else None

    @staticmethod
    def _is_populated(cell: Optional[dict]) -> bool:
        if not isinstance(cell, dict):
            return False
        value = cell.get("v")
        if isinstance(value, str):
            return bool(value.strip())
        return value is not None
