"""Client for the public service (benefit) list API on data.go.kr.

API: "행정안전부_대한민국 공공서비스(혜택) 정보", served from
``https://api.odcloud.kr/api/gov24/v3/serviceList``.

Responses are paginated JSON envelopes::

    {"currentCount": 100, "matchCount": 10123, "page": 1,
     "perPage": 100, "totalCount": 10123, "data": [{...}, ...]}

Each element of ``data`` is a raw service record with Korean keys
(``서비스ID``, ``서비스명``, ``선정기준``, ...), returned verbatim.

Fallback
--------
Without an API key, or when the upstream yields no records at all, the
client returns the bundled fallback dataset (see :mod:`src.data.seed`)
and reports ``used_fallback=True`` so the run result can flag it.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from src.data.seed import load_fallback_services

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "https://api.odcloud.kr/api/gov24/v3/serviceList"
_USER_AGENT = "Hyetaek/1.0 (Public Benefits Catalog)"


@dataclass
class FetchResult:
    """Raw records of one upstream fetch."""

    records: list[dict[str, Any]] = field(default_factory=list)
    total_count: int = 0
    pages_fetched: int = 0
    used_fallback: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def incomplete(self) -> bool:
        """A page failed before every reported record arrived."""
        return bool(self.errors) and (
            self.used_fallback or len(self.records) < self.total_count
        )


# ---------------------------------------------------------------------------
# PublicDataClient
# ---------------------------------------------------------------------------


class PublicDataClient:
    """Paginated reader for the public service list API.

    Parameters
    ----------
    api_key:
        data.go.kr service key.  ``None`` or empty means "use the fallback
        dataset".
    base_url:
        Full URL of the ``serviceList`` endpoint.
    per_page:
        Page size requested from the upstream.
    page_delay:
        Minimum seconds between successive page requests.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport, used by tests to stub the upstream.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        per_page: int = 100,
        page_delay: float = 0.1,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._per_page = per_page
        self._page_delay = page_delay
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )
        self._last_request_time: float = 0.0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> PublicDataClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _throttled_get(self, params: dict[str, str]) -> httpx.Response:
        """Issue a GET request no sooner than ``page_delay`` after the last."""
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._page_delay:
            await asyncio.sleep(self._page_delay - elapsed)

        self._last_request_time = time.monotonic()
        return await self._client.get(self._base_url, params=params)

    async def _fetch_page(self, page: int) -> dict[str, Any]:
        response = await self._throttled_get(
            {
                "serviceKey": self._api_key or "",
                "page": str(page),
                "perPage": str(self._per_page),
            }
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected payload type: {type(payload).__name__}")
        return payload

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_all(self) -> FetchResult:
        """Fetch every page of the service list.

        Pages are requested until the accumulated record count reaches the
        reported ``totalCount``.  A failing page stops pagination; records
        gathered so far are kept and the result is marked ``incomplete``.

        Returns
        -------
        FetchResult
            Raw records plus pagination bookkeeping.
        """
        if not self._api_key:
            logger.warning("public_data.no_api_key", action="using_fallback")
            return self._fallback()

        result = FetchResult()
        page = 1
        while True:
            try:
                payload = await self._fetch_page(page)
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("public_data.page_failed", page=page, error=str(exc))
                result.errors.append(f"page {page}: {exc}")
                break

            data = payload.get("data") or []
            result.records.extend(item for item in data if isinstance(item, dict))
            result.total_count = int(payload.get("totalCount") or 0)
            result.pages_fetched += 1
            logger.info(
                "public_data.page_fetched",
                page=page,
                count=len(data),
                accumulated=len(result.records),
                total=result.total_count,
            )

            if not data or len(result.records) >= result.total_count:
                break
            page += 1

        if not result.records:
            logger.warning("public_data.empty_upstream", action="using_fallback")
            fallback = self._fallback()
            fallback.errors = result.errors
            return fallback

        return result

    @staticmethod
    def _fallback() -> FetchResult:
        records = load_fallback_services()
        return FetchResult(
            records=records,
            total_count=len(records),
            used_fallback=True,
        )
