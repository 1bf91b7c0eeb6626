"""
Test configuration and fixtures for the Page Audit Engine.

The environment is set before any pageaudit module is imported so that the
settings object picks up an in-memory database and a throwaway storage root.
"""

import os
import tempfile
from typing import Generator, Optional

_tmp_root = tempfile.mkdtemp(prefix="pageaudit-tests-")
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["OBJECT_STORAGE_ROOT"] = os.path.join(_tmp_root, "storage")
os.environ["LOG_DIR"] = os.path.join(_tmp_root, "logs")

import pytest
from fastapi.testclient import TestClient

from pageaudit.features.analysis import models  # noqa: F401  registers tables
from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Snapshot
from pageaudit.features.reports.dependencies.entitlement import get_caller_entitlement
from pageaudit.features.reports.services.access import CallerEntitlement
from pageaudit.platform.cache.backends import MemoryCacheBackend
from pageaudit.platform.cache.manager import CacheManager, set_cache_manager
from pageaudit.platform.db.base import Base
from pageaudit.platform.db.session import SessionLocal, engine
from pageaudit.platform.exceptions import PageLoadError


CLEAN_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Example Store - Handmade ceramic mugs and bowls</title>
<meta name="description" content="Handmade ceramic mugs, bowls and plates made in small batches in our studio. Browse new arrivals and order online with free shipping.">
<meta name="viewport" content="width=device-width, initial-scale=1">
<link rel="canonical" href="https://example.com/">
<meta property="og:title" content="Example Store">
<meta property="og:description" content="Handmade ceramic mugs">
<meta property="og:image" content="https://example.com/og.png">
<script type="application/ld+json">{"@context": "https://schema.org", "@type": "Store", "name": "Example Store"}</script>
</head>
<body>
<a href="#main">Skip to main content</a>
<nav><a href="/">Home</a> <a href="/shop">Shop</a> <a href="/about">About</a> <a href="/contact">Contact</a></nav>
<main id="main">
<h1>Handmade ceramics</h1>
<h2>New arrivals</h2>
<img src="/mug.jpg" alt="Blue glazed coffee mug">
<p style="color: #222222; background-color: #ffffff">Every piece is thrown by hand.</p>
<form>
<label for="email">Email</label>
<input id="email" type="email" autocomplete="email">
<button type="submit">Subscribe</button>
</form>
</main>
</body>
</html>
"""

BROKEN_PAGE = """<html>
<head><title>Hi</title></head>
<body>
<h3>Welcome</h3>
<img src="/hero.png">
<img src="/banner.png">
<div onclick="go()">Open</div>
<p style="color: #999999; background-color: #ffffff">Low contrast text</p>
<form><input type="text" name="q"><button></button></form>
</body>
</html>
"""


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticPageLoader:
    """Page loader double returning fixed HTML, or raising a PageLoadError."""

    def __init__(self, html: str = CLEAN_PAGE, error: Optional[PageLoadError] = None, status_code: int = 200):
        self.html = html
        self.error = error
        self.status_code = status_code
        self.calls = 0

    def load_page(self, url: str, timeout=None) -> Snapshot:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Snapshot(url=url, final_url=url, html=self.html, status_code=self.status_code)


def build_finding(
    rule_id: str = "ACC_IMG_01_ALT_TEXT_MISSING",
    severity="critical",
    category: str = "images",
    count: int = 1,
    location: str = "body > img",
    message: str = "Images have no text alternative",
    fix: str = "Add alt text",
) -> Finding:
    return Finding(
        rule_id=rule_id,
        severity=Severity(severity),
        category=category,
        location_path=location,
        message=message,
        fix_suggestion=fix,
        affected_element_count=count,
    )


@pytest.fixture
def make_finding():
    return build_finding


@pytest.fixture
def db():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> Generator[CacheManager, None, None]:
    manager = CacheManager(
        MemoryCacheBackend(),
        analysis_ttl=100,
        artifact_ttl=10,
        sweep_interval=60,
        clock=clock,
    )
    set_cache_manager(manager)
    yield manager
    manager.stop()
    set_cache_manager(None)


@pytest.fixture
def clean_loader() -> StaticPageLoader:
    return StaticPageLoader(CLEAN_PAGE)


@pytest.fixture
def broken_loader() -> StaticPageLoader:
    return StaticPageLoader(BROKEN_PAGE)


@pytest.fixture
def test_app():
    from pageaudit.main import app

    return app


@pytest.fixture
def client(test_app, db, cache) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()


PREMIUM_USER = CallerEntitlement(user_id="user-1", plan_type="premium")


def override_get_caller_entitlement():
    """Dependency override returning a premium caller."""
    return PREMIUM_USER


@pytest.fixture
def premium_client(client, test_app):
    test_app.dependency_overrides[get_caller_entitlement] = override_get_caller_entitlement
    yield client
    test_app.dependency_overrides.pop(get_caller_entitlement, None)
