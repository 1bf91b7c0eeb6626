"""
Recommendation Aggregator.

Groups findings into one recommendation per (category, rule) and buckets
them by priority, grouped by category inside each bucket. Priority comes
from a fixed severity policy, independent of the scoring weights.
Output order never depends on input order.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.recommendations.services.i18n import category_label, t, validate_language

logger = logging.getLogger(__name__)

PRIORITIES = ("high", "medium", "low")

PRIORITY_BY_SEVERITY = {
    Severity.critical: "high",
    Severity.serious: "high",
    Severity.moderate: "medium",
    Severity.minor: "low",
}

MAX_EXAMPLE_LOCATIONS = 3


def priority_for(severity) -> str:
    parsed = Severity.parse(severity)
    return PRIORITY_BY_SEVERITY.get(parsed, "medium")


@dataclass(frozen=True)
class Recommendation:
    priority: str
    category: str
    rule_id: str
    title: str
    description: str
    action: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def severity_rank(self) -> int:
        return Severity.parse(self.details.get("severity"), Severity.moderate).rank

    def to_dict(self, include_details: bool = True) -> Dict[str, Any]:
        data = {
            "priority": self.priority,
            "category": self.category,
            "ruleId": self.rule_id,
            "title": self.title,
            "description": self.description,
            "action": self.action,
        }
        if include_details:
            data["details"] = dict(self.details)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        return cls(
            priority=data["priority"],
            category=data["category"],
            rule_id=data.get("ruleId", ""),
            title=data["title"],
            description=data["description"],
            action=data["action"],
            details=dict(data.get("details") or {}),
        )


@dataclass
class RecommendationSet:
    high: List[Recommendation] = field(default_factory=list)
    medium: List[Recommendation] = field(default_factory=list)
    low: List[Recommendation] = field(default_factory=list)

    def flatten(self) -> List[Recommendation]:
        return [*self.high, *self.medium, *self.low]

    def counts(self) -> Dict[str, int]:
        return {
            "high": len(self.high),
            "medium": len(self.medium),
            "low": len(self.low),
            "total": len(self.high) + len(self.medium) + len(self.low),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "high": [r.to_dict() for r in self.high],
            "medium": [r.to_dict() for r in self.medium],
            "low": [r.to_dict() for r in self.low],
            "byPriority": self.counts(),
        }


def _sort_key(rec: Recommendation):
    return (rec.category, -rec.severity_rank, -rec.details.get("affectedElements", 0), rec.rule_id)


class RecommendationAggregator:
    def aggregate(self, findings: List[Finding], language: str = "en") -> RecommendationSet:
        language = validate_language(language)

        by_category: Dict[str, List[Finding]] = defaultdict(list)
        for finding in findings:
            by_category[finding.category].append(finding)

        buckets: Dict[str, List[Recommendation]] = {p: [] for p in PRIORITIES}
        for category in sorted(by_category):
            try:
                recommendations = self.build_category(category, by_category[category], language)
            except Exception as e:
                logger.warning(f"Failed to build recommendations for category {category}: {e}")
                continue
            for rec in recommendations:
                buckets[rec.priority].append(rec)

        return RecommendationSet(
            high=sorted(buckets["high"], key=_sort_key),
            medium=sorted(buckets["medium"], key=_sort_key),
            low=sorted(buckets["low"], key=_sort_key),
        )

    def build_category(self, category: str, findings: List[Finding], language: str) -> List[Recommendation]:
        by_rule: Dict[str, List[Finding]] = defaultdict(list)
        for finding in findings:
            by_rule[finding.rule_id].append(finding)

        label = category_label(category, language)
        recommendations = []
        for rule_id in sorted(by_rule):
            items = sorted(
                by_rule[rule_id],
                key=lambda f: (-f.severity.rank, f.message, f.location_path),
            )
            lead = items[0]
            affected = sum(f.affected_element_count for f in items)
            examples = sorted({f.location_path for f in items if f.location_path})[:MAX_EXAMPLE_LOCATIONS]
            fix = next((f.fix_suggestion for f in items if f.fix_suggestion), "")

            recommendations.append(Recommendation(
                priority=priority_for(lead.severity),
                category=category,
                rule_id=rule_id,
                title=t("recommendation.title", language, category=label, message=lead.message),
                description=t(
                    "recommendation.description",
                    language,
                    message=lead.message,
                    occurrences=len(items),
                    affected=affected,
                ),
                action=t("recommendation.action", language, fix=fix) if fix else t("recommendation.action_default", language),
                details={
                    "ruleId": rule_id,
                    "severity": lead.severity.value,
                    "occurrences": len(items),
                    "affectedElements": affected,
                    "examples": examples,
                },
            ))
        return recommendations


def aggregate(findings: List[Finding], language: str = "en") -> RecommendationSet:
    return RecommendationAggregator().aggregate(findings, language)
