"""Social media signal extraction.

Finds social profile links in raw website HTML with a fixed per-platform regex
table, normalizes and deduplicates them, groups them by platform, spots
social engagement wording and turns the result into a heuristic confidence.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog
from pydantic import BaseModel, Field

from company_classifier.errors import ExtractionError

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Pattern tables
# ---------------------------------------------------------------------------

# The lookbehind keeps e.g. "netflix.com/x" from matching as "x.com/...".
_START = r"(?<![\w.-])(?:https?://)?(?:www\.)?"

_PLATFORM_LINK_PATTERNS: list[tuple[str, list[re.Pattern]]] = [
    ("facebook", [
        re.compile(_START + r"facebook\.com/[a-zA-Z0-9._%+-]+", re.I),
        re.compile(_START + r"fb\.com/[a-zA-Z0-9._%+-]+", re.I),
    ]),
    ("twitter", [
        re.compile(_START + r"twitter\.com/[a-zA-Z0-9_]+", re.I),
        re.compile(_START + r"x\.com/[a-zA-Z0-9_]+", re.I),
    ]),
    ("linkedin", [
        re.compile(_START + r"linkedin\.com/(?:company|in)/[a-zA-Z0-9-]+", re.I),
    ]),
    ("instagram", [
        re.compile(_START + r"instagram\.com/[a-zA-Z0-9_.]+", re.I),
    ]),
    ("youtube", [
        re.compile(_START + r"youtube\.com/(?:channel|user|c)/[a-zA-Z0-9_-]+", re.I),
        re.compile(_START + r"youtu\.be/[a-zA-Z0-9_-]+", re.I),
    ]),
    ("tiktok", [
        re.compile(_START + r"tiktok\.com/@[a-zA-Z0-9_.]+", re.I),
    ]),
]

# First matching platform wins.
_PLATFORM_DOMAINS: list[tuple[str, tuple[str, ...]]] = [
    ("facebook", ("facebook.com", "fb.com")),
    ("twitter", ("twitter.com", "x.com")),
    ("linkedin", ("linkedin.com",)),
    ("instagram", ("instagram.com",)),
    ("youtube", ("youtube.com", "youtu.be")),
    ("tiktok", ("tiktok.com",)),
]

_ENGAGEMENT_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("follow_us", re.compile(r"follow\s+us\s+on", re.I)),
    ("social_icons", re.compile(r"social.*icons?", re.I)),
    ("share_buttons", re.compile(r"share.*(?:facebook|twitter|linkedin)", re.I)),
    ("social_feeds", re.compile(r"(?:twitter|instagram)\s+feed", re.I)),
]

_TRACKING_PARAM = re.compile(r"^(?:utm_.*|fbclid|gclid)$", re.I)

_CONSUMER_PLATFORMS = {"facebook", "instagram", "tiktok", "youtube"}


# ---------------------------------------------------------------------------
# URL normalization
# ---------------------------------------------------------------------------

def clean_url(url: str) -> str:
    """Trim, add a scheme when missing, drop tracking params and trailing slash."""
    url = url.strip()
    if not re.match(r"^https?://", url, re.I):
        url = "https://" + url

    parts = urlsplit(url)
    if parts.query:
        kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
                if not _TRACKING_PARAM.match(k)]
        parts = parts._replace(query=urlencode(kept))
    return urlunsplit(parts).rstrip("/")


def identify_platform(url: str) -> str | None:
    host = (urlsplit(url if "://" in url else "https://" + url).hostname or "").lower()
    for platform, domains in _PLATFORM_DOMAINS:
        for domain in domains:
            if host == domain or host.endswith("." + domain):
                return platform
    return None


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def extract_links(content: str) -> list[str]:
    """Return the distinct, normalized social links found in content."""
    try:
        links: dict[str, None] = {}
        for _platform, patterns in _PLATFORM_LINK_PATTERNS:
            for pattern in patterns:
                for match in pattern.finditer(content):
                    links.setdefault(clean_url(match.group(0)), None)
        return list(links)
    except Exception as exc:
        logger.error("social_link_extraction_failed", error=str(exc))
        raise ExtractionError(
            f"Failed to extract social media links: {exc}", cause=exc
        ) from exc


def categorize_links(links: list[str]) -> dict[str, list[str]]:
    platforms: dict[str, list[str]] = {}
    for link in links:
        platform = identify_platform(link)
        if platform:
            platforms.setdefault(platform, []).append(link)
    return platforms


def detect_engagement(content: str) -> list[str]:
    return [name for name, pattern in _ENGAGEMENT_PATTERNS if pattern.search(content)]


def calculate_confidence(links: list[str]) -> float:
    """Heuristic confidence for a set of discovered social links.

    Placeholder scoring, not a trained model: platform diversity earns more
    than raw link volume, and volume is capped at +0.15.
    """
    if not links:
        return 0.1
    platform_bonus = len(categorize_links(links)) * 0.05
    link_count_bonus = min(len(links) * 0.02, 0.15)
    return min(1.0, 0.7 + platform_bonus + link_count_bonus)


# ---------------------------------------------------------------------------
# Bundled result
# ---------------------------------------------------------------------------

class SocialSignals(BaseModel):
    links: list[str] = Field(default_factory=list)
    platforms: dict[str, list[str]] = Field(default_factory=dict)
    engagement: list[str] = Field(default_factory=list)
    confidence: float = 0.1

    def indicator_tags(self) -> list[str]:
        """Flatten the signals into the string tags stored on a SourceAnalysis."""
        tags: list[str] = []
        if self.links:
            tags.append("has_social_presence")
        tags.extend(f"platform:{name}" for name in sorted(self.platforms))
        tags.extend(self.engagement)
        if "linkedin" in self.platforms and not (_CONSUMER_PLATFORMS & self.platforms.keys()):
            tags.append("linkedin_focus")
        if len(_CONSUMER_PLATFORMS & self.platforms.keys()) >= 3:
            tags.append("social_media_heavy")
        return tags


def extract_signals(content: str) -> SocialSignals:
    links = extract_links(content)
    return SocialSignals(
        links=links,
        platforms=categorize_links(links),
        engagement=detect_engagement(content),
        confidence=calculate_confidence(links),
    )
