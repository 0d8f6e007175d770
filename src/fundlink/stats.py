"""Peer statistics across a fund collection."""

import math
from dataclasses import dataclass, asdict
from typing import Iterable, Optional

from .models import FundRecord

PEER_FIELDS = ("y1_coc", "ltv", "occupancy", "hold_period", "min_invest", "cap_rate", "dscr")


@dataclass
class FieldStats:
    """Aggregate of one numeric field; all None when count is 0."""
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _finite(value) -> bool:
    return (isinstance(value, (int, float)) and not isinstance(value, bool)
            and math.isfinite(value))


def peer_stats(funds: Iterable[FundRecord],
               fields: Iterable[str] = PEER_FIELDS) -> dict[str, FieldStats]:
    """Average/min/max/count per field, skipping missing values field by field."""
    funds = list(funds or [])
    stats: dict[str, FieldStats] = {}
    for name in fields:
        values = [float(v) for v in (getattr(f, name, None) for f in funds) if _finite(v)]
        if not values:
            stats[name] = FieldStats()
            continue
        stats[name] = FieldStats(
            avg=sum(values) / len(values),
            min=min(values),
            max=max(values),
            count=len(values),
        )
    return stats
