"""Data models for the suitability module."""

from dataclasses import dataclass, asdict, field
from typing import Optional


@dataclass
class ComponentScore:
    """Points awarded by one rubric component."""
    name: str
    points: float
    max_points: float
    neutral: bool = False

    @property
    def fraction(self) -> float:
        return self.points / self.max_points if self.max_points else 0.0


@dataclass
class SuitabilityResult:
    """Score (0-100) for one fund/profile pair, with the rationale behind it."""
    score: int
    reasons: list[str] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    components: dict[str, ComponentScore] = field(default_factory=dict)

    @property
    def label(self) -> Optional["SuitabilityLabel"]:
        return suit_label(self.score)

    def to_dict(self) -> dict:
        d = asdict(self)
        label = self.label
        d["label"] = label.label if label else None
        return d


@dataclass(frozen=True)
class SuitabilityLabel:
    label: str
    color: str


def suit_label(score: Optional[float]) -> Optional[SuitabilityLabel]:
    """Bucket a score into Strong/Good/Fair/Poor."""
    if score is None:
        return None
    if score >= 75:
        return SuitabilityLabel("Strong Match", "green")
    if score >= 55:
        return SuitabilityLabel("Good Match", "blue")
    if score >= 40:
        return SuitabilityLabel("Fair Match", "amber")
    return SuitabilityLabel("Poor Match", "red")
