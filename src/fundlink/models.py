"""Data models for fundlink package."""

from dataclasses import dataclass, asdict, field, fields
from datetime import date
from enum import Enum
from typing import Optional

INCOME_YEARS = 10


class FundStatus(str, Enum):
    """Offering lifecycle derived from the close date."""
    OPEN = "Open"
    CLOSING_SOON = "Closing Soon"
    CLOSED = "Closed"


@dataclass
class FundRecord:
    """One parsed offering row from the feed.

    Numeric attributes are either finite floats or None. Percentages are
    whole-number percents (5.25 means 5.25%), money is in dollars.
    """
    id: int
    name: str = ""
    sponsor: str = ""
    asset_class: str = ""
    sector: str = ""
    focus: str = ""

    # Raise
    filed_raise: Optional[float] = None
    current_raise: Optional[float] = None
    equity_remaining: Optional[float] = None
    offering_open: Optional[date] = None
    offering_close: Optional[date] = None
    offering_structure: str = ""

    # Distributions and terms
    y1_coc: Optional[float] = None
    dist_frequency: str = ""
    ltv: Optional[float] = None
    preferred: Optional[float] = None
    promote: str = ""
    up_reit: str = ""
    exemption: str = ""
    tax_reporting: str = ""
    hold_period: Optional[float] = None
    min_invest: Optional[float] = None

    # Property
    num_assets: Optional[float] = None
    location: str = ""
    building_age: str = ""
    occupancy: Optional[float] = None
    debt_terms: str = ""
    dscr: Optional[float] = None
    lease_terms: str = ""
    sqft: Optional[float] = None
    tenant_credit: str = ""
    rent_escalations: str = ""
    avg_lease_term: Optional[float] = None
    gp_commit: str = ""

    # Pricing and load
    purchase_price: Optional[float] = None
    appraised_value: Optional[float] = None
    loaded_price: Optional[float] = None
    cap_rate: Optional[float] = None
    rep_comp: Optional[float] = None
    sales_load: Optional[float] = None
    reserve: str = ""

    # Year 1..10 projected distributions
    income: list[Optional[float]] = field(default_factory=lambda: [None] * INCOME_YEARS)

    # Sponsor
    sponsor_aum: str = ""
    sponsor_offerings: Optional[float] = None
    sponsor_exits: Optional[float] = None
    sponsor_avg_irr: Optional[float] = None
    sponsor_best_irr: Optional[float] = None
    sponsor_worst_irr: Optional[float] = None
    sponsor_experience: str = ""

    # Documents and media
    brochure_url: str = ""
    ppm_url: str = ""
    track_record_url: str = ""
    sales_team_url: str = ""
    video_url: str = ""
    sponsor_news_url: str = ""
    ai_chat_url: str = ""
    quarterly_update_url: str = ""
    sponsor_logo_url: str = ""

    # Derived at parse time
    prop_type: str = ""
    display_label: str = ""
    status: FundStatus = FundStatus.OPEN
    pct_remaining: Optional[float] = None
    raise_velocity: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        d = asdict(self)
        for key in ("offering_open", "offering_close"):
            if d[key] is not None:
                d[key] = d[key].isoformat()
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "FundRecord":
        """Rebuild a record from to_dict() output. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        for key in ("offering_open", "offering_close"):
            if kwargs.get(key):
                kwargs[key] = date.fromisoformat(kwargs[key])
        if "status" in kwargs:
            kwargs["status"] = FundStatus(kwargs["status"])
        if "income" in kwargs:
            income = list(kwargs["income"] or [])[:INCOME_YEARS]
            kwargs["income"] = income + [None] * (INCOME_YEARS - len(income))
        return cls(**kwargs)


@dataclass
class ClientProfile:
    """Canonical advisor/client input used for suitability scoring."""
    name: str = ""
    exchange_amount: Optional[float] = None
    risk_tolerance: str = ""
    objective: str = ""
    accredited_status: str = ""
    tax_bracket: Optional[float] = None
    hold_period: Optional[float] = None
    prop_type_prefs: list[str] = field(default_factory=list)
    liquid_net_worth: Optional[float] = None
    total_net_worth: Optional[float] = None
    annual_income: Optional[float] = None
    age: Optional[float] = None
    notes: str = ""

    @property
    def is_set(self) -> bool:
        """A profile counts as populated once it carries a client name."""
        return bool(self.name and self.name.strip())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class Principal:
    """A user session established by the external identity provider."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[str] = None
    firm_name: Optional[str] = None
    bd_affiliation: str = ""
    status: str = "pending"

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"

    @classmethod
    def from_dict(cls, data: dict) -> "Principal":
        """Build from an identity-provider user document (camelCase keys)."""
        return cls(
            uid=str(data.get("uid") or data.get("id") or ""),
            email=data.get("email"),
            display_name=data.get("displayName") or data.get("display_name"),
            role=data.get("role"),
            firm_name=data.get("firmName") or data.get("firm_name"),
            bd_affiliation=data.get("bdAffiliation") or data.get("bd_affiliation") or "",
            status=str(data.get("status") or "pending"),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
