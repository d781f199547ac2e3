"""Citation aggregation: one Source row per cited domain."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from app.analysis.url_extractor import extract_domain, is_placeholder_host

if TYPE_CHECKING:
    from app.services.storage import AnalysisStorage

logger = logging.getLogger(__name__)

# Checked in order, first match wins
_PREFERRED_PATH_MARKERS = ("/docs", "/api", "/developer", "/guide", "/tutorial")

_PATH_TITLES = (
    ("/docs", "{name} Documentation"),
    ("/api", "{name} API Documentation"),
    ("/developer", "{name} Developer Portal"),
    ("/guide", "{name} Guides & Tutorials"),
    ("/tutorial", "{name} Guides & Tutorials"),
)

_KNOWN_DOMAINS = (
    ("github.com", "GitHub Repository"),
    ("stackoverflow.com", "Stack Overflow Discussion"),
    ("medium.com", "Medium Article"),
    ("dev.to", "Dev.to Article"),
    ("reddit.com", "Reddit Discussion"),
    ("youtube.com", "YouTube Video"),
    ("twitter.com", "Social Media Post"),
    ("x.com", "Social Media Post"),
    ("linkedin.com", "LinkedIn Article"),
    ("news.ycombinator.com", "Hacker News Discussion"),
    ("discord.com", "Discord Community"),
    ("slack.com", "Slack Community"),
    ("substack.com", "Substack Newsletter"),
    ("hashnode.com", "Hashnode Article"),
    ("css-tricks.com", "CSS-Tricks Article"),
    ("smashingmagazine.com", "Smashing Magazine Article"),
    ("sitepoint.com", "SitePoint Article"),
    ("toptal.com", "Toptal Article"),
    ("freecodecamp.org", "freeCodeCamp Resource"),
    ("developer.mozilla.org", "Mozilla Developer Network"),
    ("web.dev", "Web.dev Article"),
)

_TLD_TITLES = {
    "org": "{name} Organization",
    "edu": "{name} Educational Resource",
    "gov": "{name} Government Resource",
    "io": "{name} Platform",
    "app": "{name} Application",
    "dev": "{name} Developer Resource",
}


def _matches_domain(domain: str, known: str) -> bool:
    return domain == known or domain.endswith(f".{known}")


def group_urls_by_domain(urls: Iterable[str]) -> dict[str, list[str]]:
    """Group URLs by hostname, dropping empty and placeholder hosts. Keeps first-seen order."""
    groups: dict[str, list[str]] = {}
    for url in urls:
        domain = extract_domain(url)
        if is_placeholder_host(domain):
            continue
        groups.setdefault(domain, []).append(url)
    return groups


def pick_representative_url(urls: list[str]) -> str:
    for url in urls:
        if any(marker in url for marker in _PREFERRED_PATH_MARKERS):
            return url
    return urls[0]


def source_title(domain: str, url: str) -> str:
    """Human-readable label for a cited domain."""
    name = domain.split(".")[0]

    for marker, template in _PATH_TITLES:
        if marker in url:
            return template.format(name=name)

    for known, label in _KNOWN_DOMAINS:
        if _matches_domain(domain, known):
            return label

    tld = domain.rsplit(".", 1)[-1]
    return _TLD_TITLES.get(tld, "{name} Website").format(name=name)


class SourceAggregator:
    """Creates Source rows on first sighting and counts one citation per domain per response."""

    def __init__(self, storage: AnalysisStorage):
        self.storage = storage

    async def record_citations(self, urls: Iterable[str]) -> list[str]:
        """Record one citation for every domain in *urls*. Returns the domains touched."""
        groups = group_urls_by_domain(urls)
        for domain, domain_urls in groups.items():
            existing = await self.storage.get_source_by_domain(domain)
            if existing is None:
                url = pick_representative_url(domain_urls)
                await self.storage.create_source(domain=domain, url=url, title=source_title(domain, url))
                logger.debug("New source %s (%s)", domain, url)
            await self.storage.increment_source_citations(domain)
        return list(groups)
