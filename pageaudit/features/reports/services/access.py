"""Access decision: which report tier a caller may receive."""
from dataclasses import dataclass
from typing import Iterable, Optional

from pageaudit.platform.config import settings

FREE = "free"
DETAILED = "detailed"
TIERS = (FREE, DETAILED)


@dataclass(frozen=True)
class CallerEntitlement:
    user_id: Optional[str] = None
    plan_type: Optional[str] = None
    has_active_subscription: bool = False

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id

    def may_see_detailed(self, detailed_plans: Optional[Iterable[str]] = None) -> bool:
        plans = set(detailed_plans if detailed_plans is not None else settings.DETAILED_REPORT_PLANS)
        if self.is_anonymous:
            return False
        return self.has_active_subscription or (self.plan_type or "").lower() in plans


def decide(entitlement: Optional[CallerEntitlement], requested_tier: Optional[str] = DETAILED) -> str:
    """
    Anonymous callers always get free. Entitled callers get what they asked
    for; callers without entitlement get free.
    """
    if entitlement is None or not entitlement.may_see_detailed():
        return FREE
    if requested_tier == FREE:
        return FREE
    return DETAILED


def access_restrictions(entitlement: Optional[CallerEntitlement]) -> dict:
    detailed = entitlement is not None and entitlement.may_see_detailed()
    return {
        "canViewDetailedReport": detailed,
        "canDownloadPdf": detailed,
        "maxFindingsShown": None if detailed else settings.FREE_REPORT_MAX_FINDINGS,
        "requiresSignIn": entitlement is None or entitlement.is_anonymous,
    }
