"""Website content fetcher.

Plain HTTP GET with a descriptive User-Agent, a per-attempt timeout, fixed
delay retries for transient failures and validation that the body looks like
a real HTML page.
"""

from __future__ import annotations

import httpx
import structlog

from company_classifier.config import Config
from company_classifier.errors import FetchError, FetchFailureReason
from company_classifier.services.retry import with_retry

logger = structlog.get_logger()

MIN_CONTENT_LENGTH = 100

HTML_MARKERS = ("<html", "<!doctype", "<head", "<body")

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; BusinessAnalyzer/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
}


def is_html_content(content: str) -> bool:
    lowered = content.lower()
    return any(marker in lowered for marker in HTML_MARKERS)


def validate_content(content: str, url: str) -> None:
    """Raise FetchError unless the body is long enough and looks like HTML."""
    length = len(content.encode("utf-8"))
    if length < MIN_CONTENT_LENGTH:
        raise FetchError(
            f"Website content too short or empty (length: {length})",
            url=url,
            reason=FetchFailureReason.too_short,
        )
    if not is_html_content(content):
        raise FetchError(
            "Content does not appear to be HTML",
            url=url,
            reason=FetchFailureReason.not_html,
        )


class ContentFetcher:
    """Fetches raw website HTML."""

    def __init__(
        self,
        timeout: float = 30.0,
        retries: int = 2,
        retry_delay: float = 1.0,
        client: httpx.Client | None = None,
    ):
        self.retries = retries
        self.retry_delay = retry_delay
        self._client = client or httpx.Client(
            headers=DEFAULT_HEADERS,
            timeout=timeout,
            follow_redirects=True,
        )

    @classmethod
    def from_config(cls, config: Config) -> ContentFetcher:
        return cls(
            timeout=config.fetch_timeout_seconds,
            retries=config.fetch_retry_attempts,
            retry_delay=config.fetch_retry_delay_seconds,
        )

    def fetch(self, url: str) -> str:
        """Fetch a URL and return its validated body."""
        fetch = with_retry(self.retries, self.retry_delay)(self._do_fetch)
        content = fetch(url)
        validate_content(content, url)
        logger.debug("content_fetched", url=url, content_size=len(content))
        return content

    def _do_fetch(self, url: str) -> str:
        try:
            resp = self._client.get(url, headers=DEFAULT_HEADERS)
        except httpx.TransportError as exc:
            raise FetchError(
                f"Failed to fetch website content: {exc}",
                url=url,
                reason=FetchFailureReason.network,
                cause=exc,
            ) from exc

        if not resp.is_success:
            raise FetchError(
                f"HTTP request failed with status {resp.status_code}",
                url=url,
                reason=FetchFailureReason.bad_status,
                status=resp.status_code,
            )
        return resp.text

    def close(self) -> None:
        self._client.close()
