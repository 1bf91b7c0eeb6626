from typing import Optional

from pageaudit.features.reports.services.access import CallerEntitlement


def get_caller_entitlement() -> Optional[CallerEntitlement]:
    """
    Caller entitlement for the current request.

    Authentication lives outside this service; deployments override this
    dependency (app.dependency_overrides) with one that reads their session.
    Without an override every caller is anonymous.
    """
    return None
