"""Website URL helpers: normalization, domain extraction and name guessing."""

from __future__ import annotations

import re
from urllib.parse import urlparse

_NAME_PREFIXES = re.compile(r"^(the|get|my|your|try)\s+", re.I)
_NAME_SUFFIXES = re.compile(r"\s+(app|inc|corp|llc|ltd|company|co)$", re.I)
_DOMAIN_LABEL = re.compile(r"^([a-zA-Z0-9-]+)(?:\.[a-zA-Z]{2,})*$")


def normalize_url(url: str) -> str:
    """Add https:// when no scheme is present and drop trailing slashes."""
    url = url.strip()
    if not re.match(r"^https?://", url, re.I):
        url = "https://" + url
    return url.rstrip("/")


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname) and "." in parsed.hostname


def extract_domain(website: str) -> str:
    host = urlparse(website).hostname
    return host.lower() if host else ""


def company_name_from_website(website: str) -> str:
    """Best-effort company name from a URL, e.g. https://get-acme-app.io -> "Acme"."""
    domain = re.sub(r"^www\.", "", extract_domain(normalize_url(website)))
    if not domain:
        return ""

    match = _DOMAIN_LABEL.match(domain)
    if not match:
        return ""

    name = re.sub(r"[-_]", " ", match.group(1))
    name = _NAME_PREFIXES.sub("", name)
    name = _NAME_SUFFIXES.sub("", name)
    return " ".join(word.capitalize() for word in name.lower().split())
