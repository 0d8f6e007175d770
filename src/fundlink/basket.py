"""Comparison basket: up to three selected offerings."""

import logging
from typing import Callable, Optional

from .events import BASKET_CHANGED, EventHub
from .models import FundRecord
from .storage import BASKET_KEY, Persistence

logger = logging.getLogger(__name__)

MAX_BASKET = 3


def _as_id(item) -> Optional[int]:
    if isinstance(item, bool):
        return None
    try:
        return int(item)
    except (TypeError, ValueError, OverflowError):
        return None


class Basket:
    """Ordered, duplicate-free selection of fund ids, persisted on every change."""

    def __init__(self, persistence: Persistence, events: EventHub,
                 funds: Callable[[], list[FundRecord]], capacity: int = MAX_BASKET):
        self.persistence = persistence
        self.events = events
        self.funds = funds
        self.capacity = capacity
        self._ids: list[int] = []
        self.reload()

    def reload(self) -> None:
        """Re-read ids from storage (startup and cross-tab sync)."""
        self._ids = self._sanitize(self.persistence.read(BASKET_KEY, []))

    def _sanitize(self, stored) -> list[int]:
        if not isinstance(stored, list):
            return []
        ids: list[int] = []
        for item in stored:
            fund_id = _as_id(item)
            if fund_id is not None and fund_id not in ids:
                ids.append(fund_id)
        return ids[:self.capacity]

    def add(self, fund_id: int) -> bool:
        """Append fund_id. Returns False for invalid ids, duplicates or a full basket."""
        fund_id = _as_id(fund_id)
        if fund_id is None or fund_id in self._ids:
            return False
        if len(self._ids) >= self.capacity:
            logger.debug(f"Basket full, not adding {fund_id}")
            return False
        self._ids.append(fund_id)
        self._changed()
        return True

    def remove(self, fund_id: int) -> None:
        """Remove fund_id if present. Always notifies."""
        fund_id = _as_id(fund_id)
        self._ids = [x for x in self._ids if x != fund_id]
        self._changed()

    def clear(self) -> None:
        self._ids = []
        self._changed()

    def has(self, fund_id: int) -> bool:
        fund_id = _as_id(fund_id)
        return fund_id is not None and fund_id in self._ids

    def ids(self) -> list[int]:
        return list(self._ids)

    def count(self) -> int:
        return len(self._ids)

    def get(self, funds: Optional[list[FundRecord]] = None) -> list[FundRecord]:
        """Resolve ids against the loaded funds, skipping ids that no longer exist."""
        by_id = {f.id: f for f in (funds if funds is not None else self.funds())}
        return [by_id[x] for x in self._ids if x in by_id]

    def _changed(self) -> None:
        self.persistence.write(BASKET_KEY, self._ids)
        self.events.emit(BASKET_CHANGED, {"count": len(self._ids)})
