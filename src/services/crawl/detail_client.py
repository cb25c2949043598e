"""Rate-limited fetcher for gov.kr benefit detail pages.

Every fetch is converted into a :class:`~src.models.CrawlOutcome`; no
network or parse error escapes :meth:`DetailPageClient.fetch_detail`, so a
single bad page never aborts a batch.

Rate Limiting
-------------
We are a polite consumer of a government website:
  - Strictly one request at a time.
  - A minimum delay (default 0.5s) between successive requests.
  - Transient transport errors are retried a bounded number of times.
"""

from __future__ import annotations

import asyncio
import time

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.models.detail import CrawlOutcome
from src.services.crawl.detail_parser import parse_detail_page

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_DETAIL_BASE_URL = "https://www.gov.kr/portal/rcvfvrSvc/dtlEx"

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "ko-KR,ko;q=0.9",
}


# ---------------------------------------------------------------------------
# DetailPageClient
# ---------------------------------------------------------------------------


class DetailPageClient:
    """Fetches and parses one detail page per identifier.

    Parameters
    ----------
    base_url:
        Detail page base path; the page identifier is appended.
    delay_seconds:
        Minimum seconds between the start of successive requests.
    retry_attempts:
        Total attempts per page for transient transport errors.
    retry_wait_max:
        Upper bound of the exponential back-off between retries.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport, used by tests to stub the website.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_DETAIL_BASE_URL,
        delay_seconds: float = 0.5,
        retry_attempts: int = 2,
        retry_wait_max: float = 4.0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._delay_seconds = delay_seconds
        self._retry_attempts = max(1, retry_attempts)
        self._retry_wait_max = retry_wait_max
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=_HEADERS,
            follow_redirects=True,
            transport=transport,
        )
        self._last_request_time: float | None = None
        self._request_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> DetailPageClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def request_count(self) -> int:
        """Number of HTTP requests issued, retries included."""
        return self._request_count

    def detail_url(self, page_id: str) -> str:
        return f"{self._base_url}/{page_id}"

    # ------------------------------------------------------------------
    # Rate limiting helper
    # ------------------------------------------------------------------

    async def _throttled_get(self, url: str) -> httpx.Response:
        """Issue a GET request no sooner than ``delay_seconds`` after the last."""
        if self._last_request_time is not None:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._delay_seconds:
                await asyncio.sleep(self._delay_seconds - elapsed)

        self._last_request_time = time.monotonic()
        self._request_count += 1
        return await self._client.get(url)

    async def _get_with_retry(self, url: str) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=self._retry_wait_max),
            reraise=True,
        ):
            with attempt:
                return await self._throttled_get(url)
        raise AssertionError("unreachable")  # pragma: no cover

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_detail(self, page_id: str) -> CrawlOutcome:
        """Fetch and parse the detail page for *page_id*.

        Returns
        -------
        CrawlOutcome
            ``success=True`` with parsed data, or ``success=False`` with an
            error description (HTTP status, transport error, parse failure).
        """
        url = self.detail_url(page_id)
        try:
            response = await self._get_with_retry(url)
        except httpx.HTTPError as exc:
            logger.warning("detail_client.request_failed", page_id=page_id, error=str(exc))
            return CrawlOutcome(success=False, page_id=page_id, error=str(exc) or type(exc).__name__)

        if not response.is_success:
            logger.warning(
                "detail_client.http_error",
                page_id=page_id,
                status=response.status_code,
            )
            return CrawlOutcome(
                success=False, page_id=page_id, error=f"HTTP {response.status_code}"
            )

        detail = parse_detail_page(response.text)
        if detail is None:
            logger.warning("detail_client.parse_failed", page_id=page_id)
            return CrawlOutcome(success=False, page_id=page_id, error="Parse failed")

        return CrawlOutcome(success=True, page_id=page_id, data=detail)
