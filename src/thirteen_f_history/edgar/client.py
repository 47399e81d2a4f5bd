"""SEC EDGAR HTTP client with rate limiting and caching."""

import hashlib
import logging
import time
from datetime import date
from pathlib import Path

import httpx

from ..config import Config
from .index import Period, index_file_url

log = logging.getLogger(__name__)


class EdgarClient:
    """HTTP client for SEC EDGAR with rate limiting and disk caching."""

    FEED_PATH = "/cgi-bin/browse-edgar"

    def __init__(self, config: Config, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.cache_dir = config.cache_dir
        self._last_request_time: float = 0.0
        self._min_request_interval = 1.0 / config.rate_limit_per_second

        self._client = httpx.Client(
            headers={
                # Per the SEC Webmaster FAQ, automated clients must declare
                # themselves as "Company Name admin@company.com"
                "User-Agent": config.user_agent,
                "Accept-Encoding": "gzip, deflate",
            },
            timeout=30.0,
            follow_redirects=True,
            transport=transport,
        )

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        now = time.time()
        elapsed = now - self._last_request_time
        if elapsed < self._min_request_interval:
            time.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.time()

    def _cache_key(self, url: str) -> str:
        """Generate a cache key for a URL."""
        return hashlib.sha256(url.encode()).hexdigest()[:16]

    def _get_cache_path(self, url: str, suffix: str) -> Path:
        """Get the cache file path for a URL."""
        return self.cache_dir / f"{self._cache_key(url)}{suffix}"

    def _read_cache(self, url: str, suffix: str) -> bytes | None:
        """Read cached response if it exists."""
        cache_path = self._get_cache_path(url, suffix)
        if cache_path.exists():
            return cache_path.read_bytes()
        return None

    def _write_cache(self, url: str, data: bytes, suffix: str) -> None:
        """Write response to cache."""
        cache_path = self._get_cache_path(url, suffix)
        cache_path.write_bytes(data)

    def get(
        self,
        url: str,
        use_cache: bool = True,
        cache_suffix: str = ".bin",
        params: dict | None = None,
    ) -> bytes:
        """
        Fetch a URL with rate limiting and optional caching.

        Args:
            url: The URL to fetch
            use_cache: Whether to use disk cache
            cache_suffix: File suffix for cache file
            params: Query parameters (requests with params are never cached)

        Returns:
            Response content as bytes

        Raises:
            httpx.HTTPError: On transport failures and non-2xx responses
        """
        use_cache = use_cache and not params

        # Check cache first
        if use_cache:
            cached = self._read_cache(url, cache_suffix)
            if cached is not None:
                log.debug("Cache hit for %s", url)
                return cached

        # Rate limit and fetch
        self._rate_limit()
        log.debug("GET %s %s", url, params or "")
        response = self._client.get(url, params=params)
        response.raise_for_status()

        # Cache the response
        if use_cache:
            self._write_cache(url, response.content, cache_suffix)

        return response.content

    def fetch(self, url: str) -> bytes:
        """Fetch any EDGAR document, picking the cache suffix from the URL."""
        suffix = ".xml" if url.lower().endswith(".xml") else ".html"
        return self.get(url, cache_suffix=suffix)

    def get_index_file(self, period: Period) -> str:
        """
        Fetch the master index file of a quarter.

        The current quarter's file keeps growing, so it is never cached.
        """
        url = index_file_url(period, self.base_url)
        use_cache = period != Period.from_date(date.today())
        data = self.get(url, use_cache=use_cache, cache_suffix=".idx")
        return data.decode("utf-8", errors="replace")

    def get_current_feed_page(self, start: int, count: int, form_type: str = "13F-HR") -> bytes:
        """
        Fetch one page of the latest-filings Atom feed.

        Args:
            start: Offset of the first entry
            count: Page size
            form_type: Form type filter (the feed includes amendments)
        """
        params = {
            "action": "getcurrent",
            "type": form_type,
            "output": "atom",
            "count": str(count),
            "start": str(start),
        }
        return self.get(f"{self.base_url}{self.FEED_PATH}", params=params)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "EdgarClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
