"""Suitability scoring - how well an offering fits a client profile."""

import logging
import math
import re
from datetime import datetime
from typing import Callable, NamedTuple, Optional, Union

from ..formatting import fmt_money
from ..models import ClientProfile, FundRecord, FundStatus
from ..parser import compute_status
from ..profiles import (
    AGGRESSIVE,
    CONSERVATIVE,
    MODERATE,
    NON_ACCREDITED,
    normalize_profile,
)
from ..stats import FieldStats
from .models import ComponentScore, SuitabilityResult

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
PeerContext = Optional[dict[str, FieldStats]]


class _Outcome(NamedTuple):
    share: float
    neutral: bool = False
    reason: Optional[str] = None
    flag: Optional[str] = None


NEUTRAL = _Outcome(0.5, neutral=True)


def _num(obj, attr: str) -> Optional[float]:
    value = getattr(obj, attr, None)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _type_key(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


class SuitabilityScorer:
    """Score an offering against a client profile on a 0-100 scale.

    Each component earns a share of its weight from tiered thresholds.
    Missing inputs earn the neutral half share so incomplete profiles are
    not punished; out-of-tolerance values earn little or nothing and raise
    a flag.
    """

    WEIGHTS = {
        "structure": 20,      # leverage vs risk tolerance, accreditation
        "capacity": 20,       # minimum investment vs exchange amount
        "yield": 20,          # year-1 cash on cash vs peers
        "occupancy": 15,
        "hold_period": 15,    # fund hold vs client horizon
        "property_type": 10,
    }

    YIELD_BENCHMARK = 4.0

    # Risk tolerance -> (LTV for full credit, LTV for partial credit)
    LTV_LIMITS = {
        CONSERVATIVE: (50.0, 60.0),
        MODERATE: (60.0, 70.0),
        AGGRESSIVE: (70.0, 80.0),
    }

    # Exemptions that restrict an offering to accredited investors
    ACCREDITED_ONLY = ("506", "reg d", "accredited")

    def __init__(self, weights: Optional[dict[str, float]] = None,
                 clock: Optional[Clock] = None):
        weights = dict(weights or self.WEIGHTS)
        if set(weights) != set(self.WEIGHTS):
            raise ValueError(f"Weights must cover exactly: {', '.join(self.WEIGHTS)}")
        total = sum(weights.values())
        if abs(total - 100) > 1e-9:
            raise ValueError(f"Suitability weights must sum to 100 (got {total})")
        self.weights = weights
        self.clock = clock or datetime.now

    def score(self, fund: FundRecord, profile: Union[ClientProfile, dict, None],
              peers: PeerContext = None) -> Optional[SuitabilityResult]:
        """Score fund for profile.

        Args:
            fund: Parsed offering.
            profile: ClientProfile or any supported raw profile shape.
            peers: Optional peer statistics (see stats.peer_stats).

        Returns:
            SuitabilityResult, or None when no client profile is set.
        """
        client = normalize_profile(profile)
        if not client.is_set:
            return None

        outcomes = {
            "structure": self._structure(fund, client),
            "capacity": self._capacity(fund, client),
            "yield": self._yield(fund, peers),
            "occupancy": self._occupancy(fund),
            "hold_period": self._hold_period(fund, client),
            "property_type": self._property_type(fund, client),
        }

        reasons: list[str] = []
        flags: list[str] = []
        components: dict[str, ComponentScore] = {}
        total = 0.0
        for name, outcome in outcomes.items():
            weight = self.weights[name]
            points = weight * min(1.0, max(0.0, outcome.share))
            components[name] = ComponentScore(name, points, weight, outcome.neutral)
            total += points
            if outcome.reason:
                reasons.append(outcome.reason)
            if outcome.flag:
                flags.append(outcome.flag)

        offering_close = getattr(fund, "offering_close", None)
        if compute_status(offering_close, self.clock().date()) is FundStatus.CLOSED:
            flags.append("Offering has closed")

        # Round half up
        score = int(math.floor(total + 0.5))
        logger.debug(f"Scored offering {getattr(fund, 'id', None)}: {total:.1f} ({len(flags)} flags)")
        return SuitabilityResult(
            score=max(0, min(100, score)),
            reasons=reasons,
            flags=flags,
            components=components,
        )

    def _structure(self, fund, client: ClientProfile) -> _Outcome:
        exemption = (getattr(fund, "exemption", "") or "").lower()
        if client.accredited_status == NON_ACCREDITED and any(
                marker in exemption for marker in self.ACCREDITED_ONLY):
            return _Outcome(0.0, flag="Offering is limited to accredited investors")

        ltv = _num(fund, "ltv")
        limits = self.LTV_LIMITS.get(client.risk_tolerance)
        if ltv is None or limits is None:
            return NEUTRAL

        full, partial = limits
        risk = client.risk_tolerance
        if ltv <= full:
            return _Outcome(1.0, reason=f"Leverage ({ltv:.0f}% LTV) suits a {risk} risk profile")
        if ltv <= partial:
            return _Outcome(0.6)
        return _Outcome(0.1, flag=f"Leverage ({ltv:.0f}% LTV) is high for a {risk} risk profile")

    def _capacity(self, fund, client: ClientProfile) -> _Outcome:
        minimum = _num(fund, "min_invest")
        available = client.exchange_amount
        if minimum is None or available is None or minimum <= 0:
            return NEUTRAL

        positions = available / minimum
        if positions >= 3:
            return _Outcome(1.0, reason="Exchange amount covers 3+ positions at this minimum")
        if positions >= 2:
            return _Outcome(0.75, reason="Exchange amount covers 2 positions at this minimum")
        if positions >= 1:
            return _Outcome(0.5, reason="Exchange amount meets the minimum investment")
        return _Outcome(0.0, flag=(
            f"Minimum investment ({fmt_money(minimum)}) exceeds the exchange amount "
            f"({fmt_money(available)})"
        ))

    def _yield(self, fund, peers: PeerContext) -> _Outcome:
        coc = _num(fund, "y1_coc")
        if coc is None:
            return NEUTRAL

        peer = (peers or {}).get("y1_coc")
        if isinstance(peer, dict):
            peer = FieldStats(**peer)
        if peer is not None and peer.count and peer.avg is not None:
            benchmark, basis = peer.avg, "the peer average"
        else:
            benchmark, basis = self.YIELD_BENCHMARK, "the benchmark"

        spread = coc - benchmark
        if spread >= 0.5:
            return _Outcome(1.0, reason=(
                f"Year-1 distribution of {coc:.2f}% is above {basis} ({benchmark:.2f}%)"
            ))
        if spread >= 0:
            return _Outcome(0.8, reason=f"Year-1 distribution of {coc:.2f}% meets {basis}")
        if spread >= -0.5:
            return _Outcome(0.5)
        return _Outcome(0.2, flag=(
            f"Year-1 distribution of {coc:.2f}% trails {basis} ({benchmark:.2f}%)"
        ))

    def _occupancy(self, fund) -> _Outcome:
        occupancy = _num(fund, "occupancy")
        if occupancy is None:
            return NEUTRAL
        if occupancy >= 95:
            return _Outcome(1.0, reason=f"Stabilized occupancy ({occupancy:.0f}% leased)")
        if occupancy >= 90:
            return _Outcome(0.8, reason=f"Healthy occupancy ({occupancy:.0f}% leased)")
        if occupancy >= 85:
            return _Outcome(0.5)
        return _Outcome(0.15, flag=f"Occupancy of {occupancy:.0f}% is below 85%")

    def _hold_period(self, fund, client: ClientProfile) -> _Outcome:
        hold = _num(fund, "hold_period")
        horizon = client.hold_period
        if hold is None or horizon is None:
            return NEUTRAL

        gap = hold - horizon
        if abs(gap) <= 1:
            return _Outcome(1.0, reason=f"{hold:g}-year hold matches the client's horizon")
        if gap < 0:
            return _Outcome(0.7, reason=(
                f"{hold:g}-year hold exits {-gap:g} years before the client's horizon"
            ))
        if gap <= 3:
            return _Outcome(0.35, flag=(
                f"{hold:g}-year hold runs {gap:g} years past the client's horizon"
            ))
        return _Outcome(0.0, flag=(
            f"{hold:g}-year hold runs {gap:g} years past the client's horizon"
        ))

    def _property_type(self, fund, client: ClientProfile) -> _Outcome:
        prop_type = getattr(fund, "prop_type", "") or getattr(fund, "sector", "") or ""
        prefs = [_type_key(p) for p in client.prop_type_prefs if _type_key(p)]
        fund_key = _type_key(prop_type)
        if not prefs or not fund_key:
            return NEUTRAL
        if any(p == fund_key or p in fund_key or fund_key in p for p in prefs):
            return _Outcome(1.0, reason=f"{prop_type} matches the client's property preferences")
        return _Outcome(0.1, flag=f"{prop_type} is outside the client's property preferences")


def score_fund(fund: FundRecord, profile: Union[ClientProfile, dict, None],
               peers: PeerContext = None, clock: Optional[Clock] = None
               ) -> Optional[SuitabilityResult]:
    """Convenience wrapper around SuitabilityScorer().score()."""
    return SuitabilityScorer(clock=clock).score(fund, profile, peers)
