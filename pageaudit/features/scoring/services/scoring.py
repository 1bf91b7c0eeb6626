"""
Scoring Engine.

Turns findings into per-category scores and one composite score. Pure and
deterministic: the same findings, in any order, always give the same scores.

Penalty per finding:   base + per_extra * (min(count, cap) - 1)
Rule-violation score:  100 - sum(penalties), clamped to [floor, 100]
Composite:             rule-violation score over all findings
                       + clamp(sum(w_c * (category_c - baseline)), -bound, +bound)
                       clamped to [floor, empty_score]
A page with no findings scores exactly empty_score; an empty category scores 100.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pageaudit.features.analysis.schemas.finding import Finding
from pageaudit.platform.config import settings

# severity -> (base penalty, penalty per extra affected element)
PENALTIES: Dict[str, Tuple[float, float]] = {
    "critical": (20.0, 2.0),
    "serious": (12.0, 1.5),
    "moderate": (6.0, 1.0),
    "minor": (2.0, 0.5),
}
UNKNOWN_PENALTY: Tuple[float, float] = (8.0, 1.2)

OTHER_CATEGORY = "other"


@dataclass(frozen=True)
class ScoringConfig:
    floor: float = 20.0
    empty_score: float = 95.0
    element_cap: int = 10
    baseline: float = 80.0
    max_adjustment: float = 5.0
    weights: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, s=settings) -> "ScoringConfig":
        return cls(
            floor=s.SCORE_FLOOR,
            empty_score=s.SCORE_EMPTY,
            element_cap=s.SCORE_ELEMENT_CAP,
            baseline=s.SCORE_COMPOSITE_BASELINE,
            max_adjustment=s.SCORE_MAX_ADJUSTMENT,
            weights=dict(s.SCORE_AUXILIARY_WEIGHTS),
        )


@dataclass(frozen=True)
class ScoreSet:
    overall: int
    by_category: Dict[str, int]

    def to_dict(self) -> dict:
        return {"overall": self.overall, "byCategory": dict(self.by_category)}

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreSet":
        return cls(overall=int(data["overall"]), by_category=dict(data.get("byCategory") or {}))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _severity_key(severity) -> str:
    return getattr(severity, "value", severity) if severity is not None else ""


def penalty_for(severity, count: int, cap: int = 10) -> float:
    """Penalty for one finding; unknown severities use the fallback weights."""
    base, per_extra = PENALTIES.get(str(_severity_key(severity)).lower(), UNKNOWN_PENALTY)
    count = max(1, min(int(count), cap))
    return base + per_extra * (count - 1)


class ScoringEngine:
    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig.from_settings()

    @property
    def known_categories(self) -> List[str]:
        return sorted(self.config.weights)

    def _category_of(self, finding: Finding) -> str:
        return finding.category if finding.category in self.config.weights else OTHER_CATEGORY

    def violation_score(self, findings: Iterable[Finding]) -> float:
        """Unrounded 100 - sum of penalties, clamped to [floor, 100]."""
        total = sum(
            penalty_for(f.severity, f.affected_element_count, self.config.element_cap)
            for f in findings
        )
        return _clamp(100.0 - total, self.config.floor, 100.0)

    def category_scores(self, findings: List[Finding]) -> Dict[str, float]:
        grouped: Dict[str, List[Finding]] = {name: [] for name in self.known_categories}
        for finding in findings:
            grouped.setdefault(self._category_of(finding), []).append(finding)
        return {
            name: (100.0 if not items else self.violation_score(items))
            for name, items in grouped.items()
        }

    def score(self, findings: Iterable[Finding]) -> ScoreSet:
        findings = list(findings)
        categories = self.category_scores(findings)
        by_category = {name: int(round(value)) for name, value in sorted(categories.items())}

        if not findings:
            return ScoreSet(overall=int(round(self.config.empty_score)), by_category=by_category)

        adjustment = sum(
            weight * (categories.get(name, 100.0) - self.config.baseline)
            for name, weight in sorted(self.config.weights.items())
        )
        adjustment = _clamp(adjustment, -self.config.max_adjustment, self.config.max_adjustment)

        overall = _clamp(
            self.violation_score(findings) + adjustment,
            self.config.floor,
            self.config.empty_score,
        )
        return ScoreSet(overall=int(round(overall)), by_category=by_category)


def score(findings: Iterable[Finding], config: Optional[ScoringConfig] = None) -> ScoreSet:
    return ScoringEngine(config).score(findings)
