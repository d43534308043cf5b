from __future__ import annotations

from urllib.parse import urlparse

SITE_PATTERN_SUFFIX = "/*"


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def host_without_www(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def is_site_pattern(url: str) -> bool:
    return SITE_PATTERN_SUFFIX in url


def strip_site_pattern(url: str) -> str:
    return url.replace(SITE_PATTERN_SUFFIX, "", 1)


def url_key(url: str) -> str:
    """Comparison key: case-insensitive, trailing slashes ignored."""
    return url.strip().lower().rstrip("/")


def remove_duplicate_urls(urls: list[str]) -> list[str]:
    """Keep the first occurrence of every URL by ``url_key``."""
    seen: set[str] = set()
    unique: list[str] = []
    for url in urls:
        if not url:
            continue
        key = url_key(url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(url)
    return unique
