"""URL extraction from free-form LLM answers.

Several pattern families are applied to maximise recall:
  - protocol-qualified URLs: https://docs.example.org/guide
  - ``www.``-prefixed hosts: www.example.org/path
  - bare domains with an optional path: example.org/pricing
  - IPv4 addresses and ``localhost`` forms
Candidates are normalised to ``https://`` URLs, validated with ``urlparse``
and de-duplicated in first-seen order.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_PROTOCOL_URL = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)

_WWW_URL = re.compile(r"\bwww\.[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)

_BARE_DOMAIN = re.compile(
    r"(?:^|(?<=\s))(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}(?:/[^\s]*)?"
)

_IP_URL = re.compile(r"(?:^|(?<=\s))(?:\d{1,3}\.){3}\d{1,3}(?::\d+)?(?:/[^\s]*)?")

_LOCALHOST_URL = re.compile(r"\blocalhost(?::\d+)?(?:/[^\s]*)?", re.IGNORECASE)

_PATTERNS = (_PROTOCOL_URL, _WWW_URL, _BARE_DOMAIN, _IP_URL, _LOCALHOST_URL)

_TRAILING_PUNCTUATION = re.compile(r"[.,;:!?)\]'\"]+$")

PLACEHOLDER_HOSTS = frozenset({"example.com", "localhost"})


def is_placeholder_host(host: str) -> bool:
    """True for hosts that never count as a real citation."""
    host = (host or "").lower()
    return not host or len(host) < 3 or host in PLACEHOLDER_HOSTS


def normalize_url(candidate: str) -> str | None:
    """Normalise one raw match, or return None when it is not a usable URL."""
    url = _TRAILING_PUNCTUATION.sub("", candidate.strip())
    if not url:
        return None

    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = f"https://{url}"

    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError:
        return None

    if host.startswith("www."):
        host = host[4:]
    if is_placeholder_host(host):
        return None

    netloc = host if port is None else f"{host}:{port}"
    return parsed._replace(netloc=netloc).geturl()


def extract_urls(text: str) -> list[str]:
    """Return every URL found in *text*, normalised and in first-seen order."""
    if not text:
        return []

    found: list[tuple[int, str]] = []
    for pattern in _PATTERNS:
        for match in pattern.finditer(text):
            found.append((match.start(), match.group(0)))

    # Earlier matches win so the result follows reading order
    found.sort(key=lambda item: item[0])

    urls: list[str] = []
    seen: set[str] = set()
    for _, raw in found:
        url = normalize_url(raw)
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def extract_domain(url: str) -> str:
    """Hostname of *url*, lower-cased and without ``www.``; empty string when it cannot be parsed."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host
