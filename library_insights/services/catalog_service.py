"""Catalog pass-through operations, the monthly pick and AI book insights.

Thin wrappers over the library proxy that validate input, pick the right
search field, and cache slow-changing lists.
"""

import logging
import random
import re
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlencode

from library_insights.domain.entities import CatalogBook, LibraryHolding
from library_insights.domain.exceptions import InvalidQueryError
from library_insights.domain.repositories import ILibraryClient, ILLMService, IResponseCache
from library_insights.domain.services import ICatalogService
from library_insights.services.book_matching import normalize_isbn, normalize_text

logger = logging.getLogger(__name__)

ISBN13_RE = re.compile(r"^\d{13}$")
LIBRARY_PAGE_SIZE = 100
POPULAR_BOOK_FILTERS = ("startDt", "endDt", "gender", "from_age", "to_age", "region")
NEW_ARRIVALS_DAYS = 7
NEW_ARRIVALS_PAGE_SIZE = 20
MONTHLY_PICK_POOL = 5
MONTHLY_BOOK_FIELDS = (
    "bookname",
    "authors",
    "publisher",
    "publication_year",
    "isbn13",
    "bookImageURL",
    "class_nm",
    "loan_count",
)


class CatalogService(ICatalogService):
    """Catalog search, loan trends, holdings and cached AI insights."""

    def __init__(
        self,
        library_client: ILibraryClient,
        llm_service: ILLMService,
        cache: IResponseCache,
        popular_books_ttl: int = 60 * 60,
        hot_trend_ttl: int = 6 * 60 * 60,
        insight_ttl: int = 7 * 24 * 60 * 60,
        new_arrivals_ttl: int = 6 * 60 * 60,
        monthly_recommend_ttl: int = 24 * 60 * 60,
        clock: Callable[[], date] = date.today,
        rng: Optional[random.Random] = None,
    ):
        self.library_client = library_client
        self.llm_service = llm_service
        self.cache = cache
        self.popular_books_ttl = popular_books_ttl
        self.hot_trend_ttl = hot_trend_ttl
        self.insight_ttl = insight_ttl
        self.new_arrivals_ttl = new_arrivals_ttl
        self.monthly_recommend_ttl = monthly_recommend_ttl
        self.clock = clock
        self.rng = rng or random.Random()

    async def search(
        self,
        keyword: str = "",
        isbn: str = "",
        page_no: int = 1,
        page_size: int = 10,
    ) -> list[CatalogBook]:
        """Search by ISBN when given (13 digits → ``isbn13``), otherwise by title."""
        keyword = (keyword or "").strip()
        isbn = (isbn or "").strip()
        if not keyword and not isbn:
            raise InvalidQueryError("Keyword or ISBN is required")

        if isbn:
            normalized = normalize_isbn(isbn)
            if ISBN13_RE.match(normalized):
                return await self.library_client.search_books(
                    isbn13=normalized, page_no=page_no, page_size=page_size
                )
            return await self.library_client.search_books(
                isbn=isbn, page_no=page_no, page_size=page_size
            )
        return await self.library_client.search_books(
            title=keyword, page_no=page_no, page_size=page_size
        )

    async def popular_books(self, filters: dict[str, Any]) -> dict[str, Any]:
        params = {
            key: value
            for key, value in filters.items()
            if key in POPULAR_BOOK_FILTERS + ("pageNo", "pageSize") and value not in (None, "")
        }
        params.setdefault("pageNo", 1)
        params.setdefault("pageSize", 10)
        key = "popular-books:" + urlencode(sorted((k, str(v)) for k, v in params.items()))
        return await self._cached(
            key, self.popular_books_ttl, lambda: self.library_client.loan_items(params)
        )

    async def hot_trend(self, search_dt: Optional[str] = None) -> dict[str, Any]:
        search_dt = search_dt or self.clock().isoformat()
        return await self._cached(
            f"hot-trend:{search_dt}", self.hot_trend_ttl, lambda: self.library_client.hot_trend(search_dt)
        )

    async def libraries_by_book(
        self, isbn: str, region: str = "", dtl_region: str = ""
    ) -> list[LibraryHolding]:
        if not (isbn or "").strip():
            raise InvalidQueryError("ISBN is required")
        return await self.library_client.libraries_by_book(
            isbn.strip(),
            region=region or None,
            dtl_region=dtl_region or None,
            page_size=LIBRARY_PAGE_SIZE,
        )

    async def book_insight(self, title: str, author: str = "", isbn13: str = "") -> dict[str, Any]:
        """Model-written summary for a book, cached per ISBN (or title when ISBN is unknown)."""
        title = (title or "").strip()
        if not title:
            raise InvalidQueryError("title parameter required")
        identity = normalize_isbn(isbn13) or normalize_text(title)
        key = f"book-ai-insight:{identity}"

        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        insight = await self.llm_service.generate_insight(title, (author or "").strip())
        result = {"success": True, "insight": insight}
        await self.cache.set(key, result, self.insight_ttl)
        return result

    async def new_arrivals(self) -> dict[str, Any]:
        """Loan list for the last seven days (cached 6 h)."""
        end = self.clock()
        start = end - timedelta(days=NEW_ARRIVALS_DAYS)
        params = {
            "startDt": start.isoformat(),
            "endDt": end.isoformat(),
            "pageNo": 1,
            "pageSize": NEW_ARRIVALS_PAGE_SIZE,
        }
        return await self._cached(
            f"new-arrivals:{params['startDt']}:{params['endDt']}",
            self.new_arrivals_ttl,
            lambda: self.library_client.loan_items(params),
        )

    async def monthly_recommend(self) -> dict[str, Any]:
        """Pick one book for a random keyword from last month's trending searches.

        Keywords are tried in shuffled order until a search returns books; the
        pick comes from the first five hits and is enriched with the detail
        record.  "Nothing found" bodies are returned but not cached.
        """
        today = self.clock()
        key = f"monthly-recommend:{today.isoformat()}"
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        month = (today.replace(day=1) - timedelta(days=1)).strftime("%Y-%m")
        keywords = await self.library_client.monthly_keywords(month)
        if not keywords:
            return {"error": "No keywords found", "keyword": None, "book": None}

        shuffled = list(keywords)
        self.rng.shuffle(shuffled)
        keyword, book = "", None
        for word in shuffled:
            books = await self.library_client.search_books(word, page_size=10)
            if books:
                book = self.rng.choice(books[:MONTHLY_PICK_POOL])
                keyword = word
                break
        if book is None:
            return {"error": "No books found for any keyword", "keyword": None, "book": None}

        detail: dict[str, Any] = {}
        if book.isbn13:
            detail = _detail_record(await self.library_client.book_detail(book.isbn13))

        record = book.to_dict()
        merged = {field: record.get(field) or detail.get(field) or "" for field in MONTHLY_BOOK_FIELDS}
        merged["description"] = detail.get("description") or record.get("description") or ""
        result = {"keyword": keyword, "month": month, "book": merged}
        logger.info("Monthly pick for %s: %r via keyword %r", month, merged["bookname"], keyword)
        await self.cache.set(key, result, self.monthly_recommend_ttl)
        return result

    async def book_exist(self, isbn: str, lib_code: str) -> dict[str, bool]:
        isbn, lib_code = (isbn or "").strip(), (lib_code or "").strip()
        if not isbn or not lib_code:
            raise InvalidQueryError("isbn and libCode are required")
        result = await self.library_client.book_exist(isbn, lib_code)
        return {
            "hasBook": result.get("hasBook") == "Y",
            "loanAvailable": result.get("loanAvailable") == "Y",
        }

    async def book_intro(self, isbn13: str) -> dict[str, Any]:
        isbn13 = (isbn13 or "").strip()
        if not isbn13:
            raise InvalidQueryError("isbn13 is required")
        return await self.library_client.book_detail(isbn13, loan_info=True)

    async def _cached(
        self, key: str, ttl: int, fetch: Callable[[], Awaitable[dict[str, Any]]]
    ) -> dict[str, Any]:
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        data = await fetch()
        await self.cache.set(key, data, ttl)
        return data


def _detail_record(payload: Any) -> dict[str, Any]:
    """``response.detail[0].book`` of a ``srchDtlList`` payload, or ``{}``."""
    body = payload.get("response") if isinstance(payload, dict) else None
    details = body.get("detail") if isinstance(body, dict) else None
    if not isinstance(details, list) or not details or not isinstance(details[0], dict):
        return {}
    book = details[0].get("book")
    return book if isinstance(book, dict) else {}
