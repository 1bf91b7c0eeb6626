import pytest

from pageaudit.features.reports.services.access import (
    CallerEntitlement,
    access_restrictions,
    decide,
)


@pytest.mark.parametrize(
    "entitlement,requested,expected",
    [
        (None, "detailed", "free"),
        (None, "free", "free"),
        (CallerEntitlement(), "detailed", "free"),
        (CallerEntitlement(user_id="u1", plan_type="free"), "detailed", "free"),
        (CallerEntitlement(user_id="u1", plan_type="basic"), "detailed", "detailed"),
        (CallerEntitlement(user_id="u1", plan_type="Premium"), "detailed", "detailed"),
        (CallerEntitlement(user_id="u1", plan_type="premium"), "free", "free"),
        (CallerEntitlement(user_id="u1", has_active_subscription=True), "detailed", "detailed"),
        (CallerEntitlement(plan_type="premium", has_active_subscription=True), "detailed", "free"),
    ],
)
def test_decide(entitlement, requested, expected):
    assert decide(entitlement, requested) == expected


def test_restrictions_for_anonymous():
    restrictions = access_restrictions(None)

    assert restrictions == {
        "canViewDetailedReport": False,
        "canDownloadPdf": False,
        "maxFindingsShown": 3,
        "requiresSignIn": True,
    }


def test_restrictions_for_premium():
    restrictions = access_restrictions(CallerEntitlement(user_id="u1", plan_type="premium"))

    assert restrictions["canViewDetailedReport"] is True
    assert restrictions["maxFindingsShown"] is None
    assert restrictions["requiresSignIn"] is False
