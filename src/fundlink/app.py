"""Application state: wires storage, feed loading, basket, profile and scoring.

One FundLinkApp is created per session and handed to whatever renders it.
Persistence stores, the feed client and the clock are injected.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from .auth import require_approved
from .basket import Basket
from .config import Settings
from .events import HEADER_REFRESH, NAVIGATE, EventHub
from .loader import AsyncSheetsClient, FeedClient, FundLoader
from .models import ClientProfile, FundRecord, Principal
from .parser import FeedParser
from .profiles import ClientProfileStore
from .stats import FieldStats, peer_stats
from .storage import (
    BASKET_KEY,
    CLIENT_KEY,
    NAV_KEY,
    VIEW_MODE_KEY,
    FileStore,
    KeyValueStore,
    MemoryStore,
    Persistence,
)
from .suitability import SuitabilityResult, SuitabilityScorer

logger = logging.getLogger(__name__)

DEFAULT_NAV = "browse"
VIEW_MODES = ("advisor", "client", "compliance")
DEFAULT_VIEW_MODE = "advisor"


class FundLinkApp:
    """Session-scoped state for one signed-in advisor."""

    def __init__(self, settings: Optional[Settings] = None, *,
                 durable: Optional[KeyValueStore] = None,
                 session: Optional[KeyValueStore] = None,
                 client: Optional[FeedClient] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 principal: Optional[Principal] = None):
        if principal is not None:
            require_approved(principal)
        self.principal = principal
        self.settings = settings or Settings()
        self.clock = clock or datetime.now
        self.events = EventHub()

        self.durable = Persistence(durable if durable is not None
                                   else FileStore(self.settings.durable_dir))
        self.session = Persistence(session if session is not None else MemoryStore())

        feed_client = client or AsyncSheetsClient(self.settings.sheets_url, self.settings.timeout)
        self.loader = FundLoader(feed_client, self.session, FeedParser(clock=self.clock))
        self.scorer = SuitabilityScorer(clock=self.clock)
        self._funds: Optional[list[FundRecord]] = None

        self.basket = Basket(self.durable, self.events, self.funds)
        self.profile = ClientProfileStore(self.durable, self.events)
        self._nav = self._read_nav()
        self._view_mode = self._read_view_mode()

    # ------------------------------------------------------------------
    # Funds
    # ------------------------------------------------------------------

    async def load_funds(self, force_refresh: bool = False) -> list[FundRecord]:
        """Load offerings (cache first unless forced). Fetch/parse errors propagate."""
        funds = await self.loader.load(force_refresh=force_refresh)
        self._funds = funds
        return funds

    def funds(self) -> list[FundRecord]:
        """Currently loaded offerings, falling back to the session cache."""
        if self._funds is None:
            cached = self.loader.cached()
            if not cached:
                return []
            self._funds = cached
        return self._funds

    def invalidate_funds(self) -> None:
        self._funds = None
        self.loader.invalidate()

    def get_fund(self, fund_id: int) -> Optional[FundRecord]:
        return next((f for f in self.funds() if f.id == fund_id), None)

    def funds_by_sponsor(self, sponsor: str) -> list[FundRecord]:
        wanted = (sponsor or "").strip().lower()
        if not wanted:
            return []
        return [f for f in self.funds() if f.sponsor.strip().lower() == wanted]

    def peer_stats(self, funds: Optional[list[FundRecord]] = None) -> dict[str, FieldStats]:
        return peer_stats(self.funds() if funds is None else funds)

    # ------------------------------------------------------------------
    # Suitability
    # ------------------------------------------------------------------

    def score(self, fund: FundRecord,
              peers: Optional[dict[str, FieldStats]] = None) -> Optional[SuitabilityResult]:
        """Score fund for the active client profile (None if no profile is set)."""
        if peers is None:
            peers = self.peer_stats()
        return self.scorer.score(fund, self.profile.get(), peers)

    def rank(self, funds: Optional[list[FundRecord]] = None,
             profile: Optional[ClientProfile] = None
             ) -> list[tuple[FundRecord, SuitabilityResult]]:
        """Score every fund and sort best first. Empty when no profile is set.

        profile overrides the stored client profile without persisting it.
        """
        funds = self.funds() if funds is None else funds
        peers = peer_stats(funds)
        if profile is None:
            profile = self.profile.get()
        ranked = []
        for fund in funds:
            result = self.scorer.score(fund, profile, peers)
            if result is not None:
                ranked.append((fund, result))
        ranked.sort(key=lambda pair: (-pair[1].score, pair[0].id))
        return ranked

    # ------------------------------------------------------------------
    # Navigation and view mode
    # ------------------------------------------------------------------

    def _read_nav(self) -> str:
        nav = self.durable.read(NAV_KEY, DEFAULT_NAV)
        return nav if isinstance(nav, str) and nav else DEFAULT_NAV

    def _read_view_mode(self) -> str:
        mode = self.durable.read(VIEW_MODE_KEY, DEFAULT_VIEW_MODE)
        return mode if mode in VIEW_MODES else DEFAULT_VIEW_MODE

    @property
    def nav(self) -> str:
        return self._nav

    def navigate(self, module: str, params: Optional[dict] = None) -> None:
        """Record the active module and ask the shell to show it."""
        self._nav = module
        self.durable.write(NAV_KEY, module)
        self.events.emit(NAVIGATE, {"module": module, "params": dict(params or {})})

    @property
    def view_mode(self) -> str:
        return self._view_mode

    @view_mode.setter
    def view_mode(self, mode: str) -> None:
        if mode not in VIEW_MODES:
            raise ValueError(f"view mode must be one of {', '.join(VIEW_MODES)}, got {mode!r}")
        self._view_mode = mode
        self.durable.write(VIEW_MODE_KEY, mode)
        self.update_header(view_mode=mode)

    def update_header(self, **opts: Any) -> None:
        self.events.emit(HEADER_REFRESH, opts)

    # ------------------------------------------------------------------
    # Cross-tab sync
    # ------------------------------------------------------------------

    def handle_storage_event(self, key: str) -> bool:
        """Apply a change another tab made to durable storage.

        Returns True if key is one this app tracks.
        """
        if key == BASKET_KEY:
            self.basket.reload()
            self.update_header(basket=self.basket.count())
        elif key == CLIENT_KEY:
            self.profile.reload()
            self.update_header(client=self.profile.get().name)
        elif key == NAV_KEY:
            self._nav = self._read_nav()
        elif key == VIEW_MODE_KEY:
            self._view_mode = self._read_view_mode()
            self.update_header(view_mode=self._view_mode)
        else:
            return False
        logger.debug(f"Synced {key} from another session")
        return True
