"""
Report Builder.

Builds both report tiers once, when an analysis completes:
- detailed: every finding, every recommendation with details, full scores
- free: top findings by severity, at most one recommendation per category,
  full scores and upgrade information
If building fails unexpectedly, a simpler legacy summary is produced instead
so callers always have something to show.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.recommendations.services.aggregator import RecommendationSet
from pageaudit.features.recommendations.services.i18n import t
from pageaudit.features.reports.services.access import DETAILED, FREE
from pageaudit.features.scoring.services.scoring import ScoreSet
from pageaudit.platform.config import settings

logger = logging.getLogger(__name__)

UPGRADE_FEATURE_KEYS = (
    "upgrade.features.all_findings",
    "upgrade.features.all_recommendations",
    "upgrade.features.pdf",
)


@dataclass(frozen=True)
class ReportContext:
    analysis_id: str
    url: str
    language: str = "en"
    generated_at: Optional[datetime] = None
    # module name -> error, for modules whose findings are missing
    failed_modules: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportPair:
    free: Dict[str, Any]
    detailed: Dict[str, Any]

    def for_tier(self, tier: str) -> Dict[str, Any]:
        return self.detailed if tier == DETAILED else self.free

    def to_dict(self) -> Dict[str, Any]:
        return {FREE: self.free, DETAILED: self.detailed}


def finding_rank_key(finding: Finding):
    return (-finding.severity.rank, -finding.affected_element_count, finding.rule_id, finding.location_path)


def top_findings(findings: List[Finding], limit: int) -> List[Finding]:
    return sorted(findings, key=finding_rank_key)[:limit]


def _finding_dict(finding: Finding) -> Dict[str, Any]:
    return finding.model_dump(mode="json", by_alias=True)


def severity_counts(findings: List[Finding]) -> Dict[str, int]:
    counts = Counter(f.severity.value for f in findings)
    return {s.value: counts.get(s.value, 0) for s in sorted(Severity, key=lambda s: -s.rank)}


class ReportBuilder:
    def __init__(self, max_free_findings: Optional[int] = None):
        self.max_free_findings = (
            max_free_findings if max_free_findings is not None else settings.FREE_REPORT_MAX_FINDINGS
        )

    def _base(self, context: ReportContext, tier: str, scores: ScoreSet) -> Dict[str, Any]:
        generated_at = context.generated_at or datetime.utcnow()
        return {
            "analysisId": context.analysis_id,
            "url": context.url,
            "tier": tier,
            "language": context.language,
            "generatedAt": generated_at.isoformat() + "Z",
            "scores": scores.to_dict(),
            "failedModules": sorted(context.failed_modules),
        }

    def build_detailed(
        self,
        context: ReportContext,
        findings: List[Finding],
        scores: ScoreSet,
        recommendations: RecommendationSet,
    ) -> Dict[str, Any]:
        report = self._base(context, DETAILED, scores)
        report.update({
            "summary": {
                "totalFindings": len(findings),
                "bySeverity": severity_counts(findings),
                "recommendations": recommendations.counts(),
            },
            "findings": [_finding_dict(f) for f in sorted(findings, key=finding_rank_key)],
            "recommendations": [r.to_dict(include_details=True) for r in recommendations.flatten()],
        })
        return report

    def build_free(
        self,
        context: ReportContext,
        findings: List[Finding],
        scores: ScoreSet,
        recommendations: RecommendationSet,
    ) -> Dict[str, Any]:
        shown_findings = top_findings(findings, self.max_free_findings)

        shown_recommendations = []
        seen_categories = set()
        all_recommendations = recommendations.flatten()
        for rec in all_recommendations:
            if rec.category in seen_categories:
                continue
            seen_categories.add(rec.category)
            shown_recommendations.append(rec)

        report = self._base(context, FREE, scores)
        report.update({
            "summary": {
                "totalFindings": len(findings),
                "bySeverity": severity_counts(findings),
            },
            "findings": [_finding_dict(f) for f in shown_findings],
            "recommendations": [r.to_dict(include_details=False) for r in shown_recommendations],
            "upgradeInfo": {
                "available": True,
                "features": [t(key, context.language) for key in UPGRADE_FEATURE_KEYS],
                "hiddenFindings": len(findings) - len(shown_findings),
                "hiddenRecommendations": len(all_recommendations) - len(shown_recommendations),
            },
        })
        return report

    def build(
        self,
        context: ReportContext,
        findings: List[Finding],
        scores: ScoreSet,
        recommendations: RecommendationSet,
    ) -> ReportPair:
        return ReportPair(
            free=self.build_free(context, findings, scores, recommendations),
            detailed=self.build_detailed(context, findings, scores, recommendations),
        )

    def build_legacy(self, context: ReportContext, findings: List[Finding], scores: ScoreSet) -> ReportPair:
        """Plain summary report: scores, severity counts and the top findings."""
        counts = severity_counts(findings)
        base = {
            "analysisId": context.analysis_id,
            "url": context.url,
            "language": context.language,
            "legacy": True,
            "failedModules": sorted(context.failed_modules),
            "scores": scores.to_dict(),
            "summary": {"totalFindings": len(findings), "bySeverity": counts},
            "recommendations": [],
        }
        free = {
            **base,
            "tier": FREE,
            "findings": [_finding_dict(f) for f in top_findings(findings, self.max_free_findings)],
            "upgradeInfo": {
                "available": True,
                "features": [t(key, context.language) for key in UPGRADE_FEATURE_KEYS],
            },
        }
        detailed = {
            **base,
            "tier": DETAILED,
            "findings": [_finding_dict(f) for f in sorted(findings, key=finding_rank_key)],
        }
        return ReportPair(free=free, detailed=detailed)

    def build_safely(
        self,
        context: ReportContext,
        findings: List[Finding],
        scores: ScoreSet,
        recommendations: RecommendationSet,
    ) -> ReportPair:
        try:
            return self.build(context, findings, scores, recommendations)
        except Exception as e:
            logger.error(f"[{context.analysis_id}] Report build failed, using legacy report: {e}", exc_info=True)
            return self.build_legacy(context, findings, scores)
