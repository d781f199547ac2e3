"""Brand website fetcher: seeds topic generation for a fresh analysis.

Fetch layer uses httpx.AsyncClient; parse layer is pure (no I/O).
Every fetch failure degrades to empty text rather than raising.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from app.collectors.llm_base import TopicSeed

logger = logging.getLogger(__name__)

_FETCH_TIMEOUT = 10.0
_TEXT_LIMIT = 2000
_WHITESPACE = re.compile(r"\s+")

_GENERIC_FEATURES = [
    "Modern Technology Stack",
    "Scalable Infrastructure",
    "Developer-Friendly Tools",
    "Cloud-Based Solutions",
    "API Integration",
    "Custom Configuration",
    "Performance Optimization",
    "Security Features",
]

_GENERIC_SERVICES = [
    "Web Application Services",
    "Cloud Infrastructure",
    "API Development",
    "Database Solutions",
    "Deployment Services",
    "Monitoring Tools",
    "Development Tools",
]

ANALYSIS_TOPICS: tuple[TopicSeed, ...] = (
    TopicSeed("Technology Stack", "Analysis of the technology stack and development tools used"),
    TopicSeed("Market Position", "Understanding the brand's position in the market and competitive landscape"),
    TopicSeed("Service Offerings", "Analysis of the services and products offered by the brand"),
    TopicSeed("Developer Experience", "Evaluation of developer tools, documentation, and ease of use"),
    TopicSeed("Infrastructure & Scalability", "Assessment of infrastructure capabilities and scaling solutions"),
    TopicSeed("Integration Capabilities", "Analysis of API offerings and integration possibilities"),
    TopicSeed("Performance & Reliability", "Evaluation of performance metrics and reliability features"),
)


@dataclass
class ScrapedContent:
    title: str
    description: str
    features: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)


def ensure_scheme(url: str) -> str:
    url = url.strip()
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = f"https://{url}"
    return url


def brand_label(url: str) -> str:
    """Alphabetic part of the first hostname label: ``https://acme-cloud.io`` -> ``acmecloud``."""
    host = urlparse(ensure_scheme(url)).hostname or url
    if host.startswith("www."):
        host = host[4:]
    return re.sub(r"[^a-zA-Z]", "", host.split(".")[0])


# ── Parse layer ──────────────────────────────────────────────────


def extract_main_text(html: str, limit: int = _TEXT_LIMIT) -> str:
    """``<main>`` text, else ``<body>`` text, whitespace-collapsed and truncated."""
    soup = BeautifulSoup(html, "lxml")
    node = soup.find("main")
    text = node.get_text(" ") if node else ""
    if not text.strip() and soup.body:
        text = soup.body.get_text(" ")
    return _WHITESPACE.sub(" ", text).strip()[:limit]


def extract_title_and_description(html: str) -> tuple[str | None, str | None]:
    soup = BeautifulSoup(html, "lxml")
    title = soup.title.get_text(strip=True) if soup.title else None
    meta = soup.find("meta", attrs={"name": "description"})
    description = meta.get("content", "").strip() if meta else None
    return title or None, description or None


# ── Fetch layer ──────────────────────────────────────────────────


async def fetch_html(url: str, timeout: float = _FETCH_TIMEOUT) -> str | None:
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            resp = await client.get(ensure_scheme(url))
            resp.raise_for_status()
            return resp.text
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
    return None


async def fetch_website_text(url: str, timeout: float = _FETCH_TIMEOUT, limit: int = _TEXT_LIMIT) -> str:
    """Plain text of the page at *url*; ``""`` on any failure."""
    html = await fetch_html(url, timeout=timeout)
    if not html:
        return ""
    return extract_main_text(html, limit=limit)


async def scrape_brand_website(url: str, timeout: float = _FETCH_TIMEOUT) -> ScrapedContent:
    name = brand_label(url)
    html = await fetch_html(url, timeout=timeout) if url else None

    title, description = extract_title_and_description(html) if html else (None, None)
    return ScrapedContent(
        title=title or f"{name} - Brand Analysis",
        description=description or f"{name} is a technology platform providing various services and solutions.",
        features=list(_GENERIC_FEATURES),
        services=list(_GENERIC_SERVICES),
    )


def generate_topics_from_content(content: ScrapedContent) -> list[TopicSeed]:
    """Analysis topics for a scraped brand. The set is fixed whatever the content."""
    return list(ANALYSIS_TOPICS)
