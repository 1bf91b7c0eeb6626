import hashlib
from urllib.parse import urlparse, urlunparse
from typing import Tuple


def normalize_url(url: str) -> Tuple[str, bool]:

    url = url.strip()

    parsed = urlparse(url)

    if not parsed.scheme:
        normalized = f"https://{url}"
        return normalized, True

    return url, False


def validate_url(url: str) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url, was_modified = normalize_url(url)

    try:
        parsed = urlparse(normalized_url)
    except ValueError as e:
        return False, normalized_url, f"URL parsing error: {str(e)}"

    if parsed.scheme not in ['http', 'https']:
        return False, normalized_url, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"

    if not parsed.netloc:
        return False, normalized_url, "Invalid URL format: missing domain"

    return True, normalized_url, ""


def normalize_target_url(url: str) -> str:
    """
    Canonical form of a target URL used for cache keys and lookups.

    Scheme and host are lower-cased, default ports, fragments and trailing
    slashes are dropped. The query string is kept as-is.
    """
    url, _ = normalize_url(url)
    parsed = urlparse(url)

    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    port = parsed.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        host = f"{host}:{port}"

    path = parsed.path.rstrip("/")

    return urlunparse((scheme, host, path, "", parsed.query, ""))


def url_cache_key(url: str) -> str:
    return hashlib.sha256(normalize_target_url(url).encode("utf-8")).hexdigest()[:32]
