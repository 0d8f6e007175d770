"""Client profile normalization and the persisted profile store."""

import logging
import re
from typing import Any, Optional, Union

from .events import HEADER_REFRESH, EventHub
from .models import ClientProfile
from .parser import to_number, to_percent
from .storage import CLIENT_KEY, Persistence

logger = logging.getLogger(__name__)

CONSERVATIVE = "conservative"
MODERATE = "moderate"
AGGRESSIVE = "aggressive"

ACCREDITED = "accredited"
NON_ACCREDITED = "non-accredited"

# Canonical field -> accepted keys, most recent shape first. Covers the
# canonical shape, the earlier risk/propTypes/horizon/accredited shape and
# the advisor-shell bridge shape (clientName/exchangeEquity/assetClassPreference).
_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "clientName", "client_name"),
    "exchange_amount": ("exchange_amount", "exchangeAmount", "exchangeEquity", "exchange_equity"),
    "risk_tolerance": ("risk_tolerance", "riskTolerance", "risk"),
    "objective": ("objective", "investmentObjective", "investment_objective"),
    "accredited_status": ("accredited_status", "accreditedStatus", "accredited"),
    "tax_bracket": ("tax_bracket", "taxBracket"),
    "hold_period": ("hold_period", "holdPeriod", "horizon"),
    "prop_type_prefs": ("prop_type_prefs", "propTypePrefs", "propTypes", "assetClassPreference"),
    "liquid_net_worth": ("liquid_net_worth", "liquidNetWorth"),
    "total_net_worth": ("total_net_worth", "totalNetWorth"),
    "annual_income": ("annual_income", "annualIncome"),
    "age": ("age",),
    "notes": ("notes",),
}

_NUMERIC = {"exchange_amount", "hold_period", "liquid_net_worth",
            "total_net_worth", "annual_income", "age"}
_LEADING_NUMBER = re.compile(r"[-+]?\d[\d,]*(?:\.\d+)?")


def normalize_risk(value: Any) -> str:
    """Map free-form risk labels (or a 1-10 scale) to conservative/moderate/aggressive."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        if value <= 0:
            return ""
        if value <= 3:
            return CONSERVATIVE
        return MODERATE if value <= 6 else AGGRESSIVE
    text = str(value).strip().lower()
    if not text:
        return ""
    if "conserv" in text or text in ("low", "preservation"):
        return CONSERVATIVE
    if "aggress" in text or text in ("high", "growth"):
        return AGGRESSIVE
    if "moderate" in text or text in ("medium", "balanced"):
        return MODERATE
    return ""


def normalize_accredited(value: Any) -> str:
    if isinstance(value, bool):
        return ACCREDITED if value else NON_ACCREDITED
    if value is None:
        return ""
    text = str(value).strip().lower()
    if not text:
        return ""
    if text.startswith(("non", "not", "no")) or text == "false":
        return NON_ACCREDITED
    if "accredited" in text or "qualified" in text or text in ("yes", "true", "y"):
        return ACCREDITED
    return ""


def normalize_prop_types(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        return []
    prefs: list[str] = []
    for item in items:
        text = str(item).strip() if item is not None else ""
        if text and text not in prefs:
            prefs.append(text)
    return prefs


def _number(value: Any) -> Optional[float]:
    number = to_number(value)
    if number is None and isinstance(value, str):
        match = _LEADING_NUMBER.search(value)
        if match:
            number = to_number(match.group(0))
    return number


def _normalize_value(field_name: str, value: Any) -> Any:
    if field_name in _NUMERIC:
        return _number(value)
    if field_name == "tax_bracket":
        return to_percent(value)
    if field_name == "risk_tolerance":
        return normalize_risk(value)
    if field_name == "accredited_status":
        return normalize_accredited(value)
    if field_name == "prop_type_prefs":
        return normalize_prop_types(value)
    return "" if value is None else str(value).strip()


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def normalize_fields(raw: dict) -> dict:
    """Translate any known profile shape to canonical fields.

    Only fields that appear (under any alias) in raw are returned, so the
    result can be merged over an existing profile.
    """
    result: dict = {}
    for field_name, aliases in _ALIASES.items():
        present = [key for key in aliases if key in raw]
        if not present:
            continue
        value = None
        for key in present:
            value = _normalize_value(field_name, raw[key])
            if not _is_empty(value):
                break
        result[field_name] = value
    return result


def normalize_profile(raw: Union[dict, ClientProfile, None]) -> ClientProfile:
    """Build a canonical ClientProfile from any supported shape."""
    if isinstance(raw, ClientProfile):
        return raw
    if not isinstance(raw, dict):
        return ClientProfile()
    return ClientProfile(**normalize_fields(raw))


class ClientProfileStore:
    """The active client profile, persisted synchronously on every mutation."""

    def __init__(self, persistence: Persistence, events: Optional[EventHub] = None):
        self.persistence = persistence
        self.events = events
        self._profile = ClientProfile()
        self.reload()

    def reload(self) -> None:
        """Re-read the profile from storage (startup and cross-tab sync)."""
        stored = self.persistence.read(CLIENT_KEY, None)
        self._profile = normalize_profile(stored)

    def get(self) -> ClientProfile:
        return ClientProfile(**self._profile.to_dict())

    def set(self, partial: Union[dict, ClientProfile]) -> ClientProfile:
        """Shallow-merge partial over the current profile and persist it."""
        if isinstance(partial, ClientProfile):
            updates = partial.to_dict()
        else:
            updates = normalize_fields(partial or {})
        merged = {**self._profile.to_dict(), **updates}
        self._profile = ClientProfile(**merged)
        self._changed()
        return self.get()

    def clear(self) -> ClientProfile:
        """Reset to the default (empty) profile."""
        self._profile = ClientProfile()
        self._changed()
        return self.get()

    def is_set(self) -> bool:
        return self._profile.is_set

    def _changed(self) -> None:
        self.persistence.write(CLIENT_KEY, self._profile.to_dict())
        if self.events is not None:
            self.events.emit(HEADER_REFRESH, {"client": self._profile.name})
