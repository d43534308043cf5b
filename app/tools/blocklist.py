from __future__ import annotations

from urllib.parse import urlparse

from app.config import settings

SOCIAL_MEDIA_BLOCKLIST = (
    "facebook.com",
    "x.com",
    "twitter.com",
    "instagram.com",
    "linkedin.com",
    "snapchat.com",
    "tiktok.com",
    "reddit.com",
    "tumblr.com",
    "flickr.com",
    "whatsapp.com",
    "wechat.com",
    "telegram.org",
    "researchhub.com",
    "youtube.com",
)

# Legal and support pages on blocked domains are still fair game.
ALLOWED_KEYWORDS = (
    "pulse",
    "privacy",
    "terms",
    "policy",
    "user-agreement",
    "legal",
    "help",
    "policies",
    "support",
    "contact",
    "about",
    "careers",
    "blog",
    "press",
    "conditions",
    "tos",
)


class DomainBlocklist:
    """Blocks URLs whose host, or any parent domain of it, is listed."""

    def __init__(self, domains: tuple[str, ...] | list[str] | None = None):
        listed = list(SOCIAL_MEDIA_BLOCKLIST if domains is None else domains)
        listed.extend(settings.extra_blocked_domain_list)
        self.domains = frozenset(d.lower().strip() for d in listed if d.strip())

    def is_blocked(self, url: str) -> bool:
        lowered = url.lower()
        if any(keyword in lowered for keyword in ALLOWED_KEYWORDS):
            return False

        host = (urlparse(lowered if "://" in lowered else f"http://{lowered}").hostname or "")
        if not host:
            return False
        parts = host.split(".")
        for i in range(len(parts) - 1):
            if ".".join(parts[i:]) in self.domains:
                return True
        return False
