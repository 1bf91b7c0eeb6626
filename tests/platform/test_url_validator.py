import pytest

from pageaudit.platform.utils.url_validator import (
    normalize_target_url,
    url_cache_key,
    validate_url,
)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://Example.COM/", "https://example.com"),
        ("example.com/shop/", "https://example.com/shop"),
        ("http://example.com:80/a", "http://example.com/a"),
        ("https://example.com:8443/a", "https://example.com:8443/a"),
        ("https://example.com/search?q=mugs#results", "https://example.com/search?q=mugs"),
    ],
)
def test_normalize_target_url(url, expected):
    assert normalize_target_url(url) == expected


def test_cache_key_is_stable_for_equivalent_urls():
    assert url_cache_key("https://example.com/") == url_cache_key("HTTPS://EXAMPLE.com")
    assert url_cache_key("https://example.com/a") != url_cache_key("https://example.com/b")
    assert len(url_cache_key("https://example.com")) == 32


def test_validate_url():
    assert validate_url("example.com") == (True, "https://example.com", "")
    assert validate_url("")[0] is False
    assert validate_url("ftp://example.com")[0] is False
