"""
fundlink - Browse alternative-investment offerings and score client suitability.

This package loads the offerings sheet published as a Google Sheets (gviz)
feed, normalizes each row into a FundRecord, and scores offerings against a
client profile. It also keeps the advisor's comparison basket and active
client in durable storage.
"""

from .models import ClientProfile, FundRecord, FundStatus, Principal
from .api import SheetsFeedAPI
from .app import FundLinkApp
from .basket import Basket
from .config import Settings, load_settings
from .errors import (
    AccessDeniedError,
    ConfigError,
    FeedFetchError,
    FeedParseError,
    FundLinkError,
    PersistenceError,
)
from .loader import AsyncSheetsClient, FundLoader
from .parser import FeedParser
from .profiles import ClientProfileStore, normalize_profile
from .stats import FieldStats, peer_stats
from .suitability import SuitabilityResult, SuitabilityScorer, suit_label

__version__ = "0.1.0"
__all__ = [
    "AccessDeniedError",
    "AsyncSheetsClient",
    "Basket",
    "ClientProfile",
    "ClientProfileStore",
    "ConfigError",
    "FeedFetchError",
    "FeedParseError",
    "FeedParser",
    "FieldStats",
    "FundLinkApp",
    "FundLinkError",
    "FundLoader",
    "FundRecord",
    "FundStatus",
    "PersistenceError",
    "Principal",
    "Settings",
    "SheetsFeedAPI",
    "SuitabilityResult",
    "SuitabilityScorer",
    "load_settings",
    "normalize_profile",
    "peer_stats",
    "suit_label",
]
