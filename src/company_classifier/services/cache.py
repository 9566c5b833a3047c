"""Website content cache.

Sliding-window TTL cache over fetched HTML, keyed by the MD5 of the URL.
Content and scrape metadata live in two separately prefixed key spaces.
Entries expire by TTL only; concurrent writers simply overwrite each other.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

import structlog

from company_classifier.models import utcnow

logger = structlog.get_logger()

CONTENT_PREFIX = "website_content:"
META_PREFIX = "website_meta:"

DEFAULT_TTL = timedelta(minutes=30)
META_TTL = timedelta(hours=2)


class CacheBackend(Protocol):
    def cache_get(self, key: str, now: datetime) -> Any | None: ...

    def cache_put(self, key: str, value: Any, expires_at: datetime) -> None: ...

    def cache_forget(self, key: str) -> None: ...

    def cache_purge_expired(self, now: datetime) -> int: ...

    def cache_stats(self, prefix: str, now: datetime) -> tuple[int, int]: ...


def _url_hash(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def content_key(url: str) -> str:
    return CONTENT_PREFIX + _url_hash(url)


def meta_key(url: str) -> str:
    return META_PREFIX + _url_hash(url)


class ContentCache:
    def __init__(
        self,
        backend: CacheBackend,
        ttl: timedelta = DEFAULT_TTL,
        metadata_ttl: timedelta = META_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.backend = backend
        self.ttl = ttl
        self.metadata_ttl = metadata_ttl
        self._clock = clock

    def is_cached(self, url: str) -> bool:
        return self.backend.cache_get(content_key(url), self._clock()) is not None

    def get(self, url: str) -> str | None:
        """Return cached content, renewing its TTL to the default window on a hit."""
        content = self.backend.cache_get(content_key(url), self._clock())
        if content:
            self._extend(url, content)
        return content

    def put(self, url: str, content: str, ttl: timedelta | None = None) -> None:
        expires_at = self._clock() + (ttl or self.ttl)
        self.backend.cache_put(content_key(url), content, expires_at)

    def put_metadata(self, url: str, fields: dict[str, Any], ttl: timedelta | None = None) -> None:
        """Store scrape metadata, merging ``fields`` over the defaults.

        A ``content`` field only feeds ``content_size``; the body itself is not
        duplicated into the metadata entry.
        """
        defaults = {
            "scraped_at": self._clock().isoformat(),
            "content_size": len(fields.get("content") or ""),
            "url": url,
        }
        merged = {**defaults, **{k: v for k, v in fields.items() if k != "content"}}
        expires_at = self._clock() + (ttl or self.metadata_ttl)
        self.backend.cache_put(meta_key(url), merged, expires_at)

    def get_metadata(self, url: str) -> dict[str, Any] | None:
        return self.backend.cache_get(meta_key(url), self._clock())

    def clear(self, url: str) -> None:
        self.backend.cache_forget(content_key(url))
        self.backend.cache_forget(meta_key(url))

    def check_and_extend(self, url: str) -> bool:
        """Hit test that also renews the TTL, used to skip redundant fetches."""
        content = self.backend.cache_get(content_key(url), self._clock())
        if not content:
            return False
        self._extend(url, content)
        return True

    def purge_expired(self) -> int:
        removed = self.backend.cache_purge_expired(self._clock())
        if removed:
            logger.info("cache_purged", removed=removed)
        return removed

    def statistics(self) -> dict[str, Any]:
        count, size = self.backend.cache_stats(CONTENT_PREFIX, self._clock())
        return {
            "total_cached_websites": count,
            "total_cache_size_bytes": size,
            "total_cache_size_mb": round(size / 1024 / 1024, 2),
        }

    def _extend(self, url: str, content: str) -> None:
        self.backend.cache_put(content_key(url), content, self._clock() + self.ttl)
