"""HTTP client for the authenticated library open-data proxy.

The proxy forwards ``GET /v1/<endpoint>`` to the public library API after
checking the shared secret in the ``x-proxy-key`` header.  It also fronts
the AI endpoints (``/v1/ai-recommend``, ``/v1/ai-insight``).
"""

import logging
from typing import Any, Optional

import httpx

from library_insights.domain.entities import CatalogBook, LibraryHolding
from library_insights.domain.exceptions import LibraryProxyError
from library_insights.domain.repositories import ILibraryClient
from library_insights.infrastructure.library.envelopes import (
    envelope_error,
    extract_books,
    extract_exist_result,
    extract_keywords,
    extract_libraries,
    extract_usage_books,
)

logger = logging.getLogger(__name__)


class LibraryProxyClient(ILibraryClient):
    """Library API client over **httpx**.

    Constructor args:
        base_url:       Proxy root URL, e.g. ``https://proxy.example.com``.
        shared_secret:  Value sent in the ``x-proxy-key`` header.
        timeout:        Default per-request timeout in seconds.
        transport:      Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        shared_secret: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.shared_secret = (shared_secret or "").strip()
        self.timeout = timeout
        self._transport = transport

    # -- internal helpers ---------------------------------------------------

    async def fetch(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """``GET /v1/<endpoint>`` and return the decoded JSON body."""
        missing = [
            name
            for name, value in (
                ("LIBRARY_PROXY_BASE_URL", self.base_url),
                ("LIBRARY_PROXY_SHARED_SECRET", self.shared_secret),
            )
            if not value
        ]
        if missing:
            raise LibraryProxyError(f"Library proxy not configured: missing {', '.join(missing)}")

        query = {
            key: str(value)
            for key, value in (params or {}).items()
            if value is not None and value != ""
        }
        url = f"{self.base_url}/v1/{endpoint.lstrip('/')}"
        try:
            async with httpx.AsyncClient(
                timeout=timeout or self.timeout, transport=self._transport
            ) as client:
                resp = await client.get(
                    url, params=query, headers={"x-proxy-key": self.shared_secret}
                )
        except httpx.HTTPError as exc:
            raise LibraryProxyError(f"Library proxy request to {endpoint} failed: {exc!r}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise LibraryProxyError(
                f"Library proxy returned non-JSON body for {endpoint} ({resp.status_code})"
            ) from exc

        if not resp.is_success:
            detail = data.get("error") if isinstance(data, dict) else None
            raise LibraryProxyError(detail or f"Library proxy request failed: {resp.status_code}")

        error = envelope_error(data)
        if error:
            raise LibraryProxyError(f"{endpoint}: {error}")
        return data

    # -- ILibraryClient interface -------------------------------------------

    async def search_books(
        self,
        keyword: Optional[str] = None,
        *,
        title: Optional[str] = None,
        isbn13: Optional[str] = None,
        isbn: Optional[str] = None,
        page_no: int = 1,
        page_size: int = 10,
        timeout: Optional[float] = None,
    ) -> list[CatalogBook]:
        data = await self.fetch(
            "srchBooks",
            {
                "keyword": keyword,
                "title": title,
                "isbn13": isbn13,
                "isbn": isbn,
                "pageNo": page_no,
                "pageSize": page_size,
            },
            timeout,
        )
        return extract_books(data)

    async def usage_analysis(
        self, isbn13: str, timeout: Optional[float] = None
    ) -> list[CatalogBook]:
        data = await self.fetch("usageAnalysisList", {"isbn13": isbn13}, timeout)
        return extract_usage_books(data)

    async def recommend_list(
        self,
        isbn13s: list[str],
        rec_type: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> list[CatalogBook]:
        data = await self.fetch(
            "recommandList", {"isbn13": ";".join(isbn13s), "type": rec_type}, timeout
        )
        return extract_books(data)

    async def libraries_by_book(
        self,
        isbn: str,
        region: Optional[str] = None,
        dtl_region: Optional[str] = None,
        page_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> list[LibraryHolding]:
        data = await self.fetch(
            "libSrchByBook",
            {"isbn": isbn, "region": region, "dtl_region": dtl_region, "pageSize": page_size},
            timeout,
        )
        return extract_libraries(data)

    async def loan_items(
        self, params: dict[str, Any], timeout: Optional[float] = None
    ) -> dict[str, Any]:
        return await self.fetch("loanItemSrch", params, timeout)

    async def hot_trend(self, search_dt: str, timeout: Optional[float] = None) -> dict[str, Any]:
        return await self.fetch("hotTrend", {"searchDt": search_dt}, timeout)

    async def book_exist(
        self, isbn13: str, lib_code: str, timeout: Optional[float] = None
    ) -> dict[str, Any]:
        data = await self.fetch("bookExist", {"isbn13": isbn13, "libCode": lib_code}, timeout)
        return extract_exist_result(data)

    async def book_detail(
        self, isbn13: str, loan_info: bool = False, timeout: Optional[float] = None
    ) -> dict[str, Any]:
        return await self.fetch(
            "srchDtlList", {"isbn13": isbn13, "loaninfoYN": "Y" if loan_info else None}, timeout
        )

    async def monthly_keywords(self, month: str, timeout: Optional[float] = None) -> list[str]:
        data = await self.fetch("monthlyKeywords", {"month": month}, timeout)
        return extract_keywords(data)
