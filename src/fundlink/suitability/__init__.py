"""Suitability module - score offerings against a client profile."""

from .models import ComponentScore, SuitabilityLabel, SuitabilityResult, suit_label
from .core import SuitabilityScorer, score_fund

__all__ = [
    "ComponentScore",
    "SuitabilityLabel",
    "SuitabilityResult",
    "SuitabilityScorer",
    "score_fund",
    "suit_label",
]
