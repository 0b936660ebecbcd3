"""Shared fakes and fixtures.

The fakes implement the domain ports directly so services and routes can be
exercised without a library proxy, a model, or Redis.
"""

import asyncio
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from library_insights.core.dependencies import (
    get_library_client,
    get_llm_service,
    get_response_cache,
)
from library_insights.domain.entities import AIRecommendation, CatalogBook, LibraryHolding
from library_insights.domain.exceptions import LibraryProxyError
from library_insights.domain.repositories import ILibraryClient, ILLMService
from library_insights.infrastructure.cache.memory import InMemoryResponseCache
from library_insights.main import app


def make_book(isbn13: str, bookname: str, authors: str = "", **extra: Any) -> dict[str, Any]:
    record = {"isbn13": isbn13, "bookname": bookname, "authors": authors}
    record.update(extra)
    return record


def make_library(code: str, name: str, lat: Any = "", lon: Any = "") -> dict[str, Any]:
    return {"libCode": code, "libName": name, "latitude": lat, "longitude": lon}


class FakeLibraryClient(ILibraryClient):
    """In-memory catalog keyed by search term / ISBN.

    ``failing`` names endpoints (``srchBooks``, ``usageAnalysisList``,
    ``monthlyKeywords`` and so on) that raise ``LibraryProxyError``.
    """

    def __init__(
        self,
        keyword_results: Optional[dict[str, list[dict]]] = None,
        title_results: Optional[dict[str, list[dict]]] = None,
        usage: Optional[dict[str, list[dict]]] = None,
        recommend: Optional[dict[str, list[dict]]] = None,
        holdings: Optional[dict[tuple[str, str], list[dict]]] = None,
        keywords: Optional[list[str]] = None,
        exists: Optional[dict[tuple[str, str], dict]] = None,
        details: Optional[dict[str, dict]] = None,
        failing: tuple[str, ...] = (),
    ):
        self.keyword_results = keyword_results or {}
        self.title_results = title_results or {}
        self.usage = usage or {}
        self.recommend = recommend or {}
        self.holdings = holdings or {}
        self.keywords = keywords or []
        self.exists = exists or {}
        self.details = details or {}
        self.failing = set(failing)
        self.calls: list[tuple[str, Any]] = []
        self.loan_payload = {"response": {"docs": []}}
        self.trend_payload = {"response": {"results": []}}

    def _record(self, endpoint: str, arg: Any) -> None:
        self.calls.append((endpoint, arg))
        if endpoint in self.failing:
            raise LibraryProxyError(f"{endpoint} unavailable")

    def endpoint_calls(self, endpoint: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == endpoint]

    async def search_books(
        self,
        keyword=None,
        *,
        title=None,
        isbn13=None,
        isbn=None,
        page_no=1,
        page_size=10,
        timeout=None,
    ):
        self._record("srchBooks", {"keyword": keyword, "title": title, "isbn13": isbn13, "isbn": isbn})
        if keyword is not None:
            records = self.keyword_results.get(keyword, [])
        else:
            records = self.title_results.get(title or isbn13 or isbn, [])
        return [CatalogBook.from_raw(r) for r in records][:page_size]

    async def usage_analysis(self, isbn13, timeout=None):
        self._record("usageAnalysisList", isbn13)
        return [CatalogBook.from_raw(r) for r in self.usage.get(isbn13, [])]

    async def recommend_list(self, isbn13s, rec_type=None, timeout=None):
        self._record("recommandList", (tuple(isbn13s), rec_type))
        return [CatalogBook.from_raw(r) for r in self.recommend.get(rec_type or "mania", [])]

    async def libraries_by_book(self, isbn, region=None, dtl_region=None, page_size=None, timeout=None):
        self._record("libSrchByBook", (isbn, region))
        return [LibraryHolding.from_raw(r) for r in self.holdings.get((isbn, region), [])]

    async def loan_items(self, params, timeout=None):
        self._record("loanItemSrch", dict(params))
        return self.loan_payload

    async def hot_trend(self, search_dt, timeout=None):
        self._record("hotTrend", search_dt)
        return self.trend_payload

    async def book_exist(self, isbn13, lib_code, timeout=None):
        self._record("bookExist", (isbn13, lib_code))
        return self.exists.get((isbn13, lib_code), {})

    async def book_detail(self, isbn13, loan_info=False, timeout=None):
        self._record("srchDtlList", (isbn13, loan_info))
        if isbn13 not in self.details:
            return {"response": {"detail": []}}
        return {"response": {"detail": [{"book": self.details[isbn13]}]}}

    async def monthly_keywords(self, month, timeout=None):
        self._record("monthlyKeywords", month)
        return list(self.keywords)


class FakeLLMService(ILLMService):

    def __init__(
        self,
        books: Optional[list[tuple[str, str]]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        insight: Optional[dict[str, Any]] = None,
    ):
        self.books = books or []
        self.error = error
        self.delay = delay
        self.insight = insight or {"summary": "요약", "keyMessage": "", "recommendFor": "", "difficulty": ""}
        self.calls: list[str] = []

    async def recommend_books(self, keyword: str) -> list[AIRecommendation]:
        self.calls.append(keyword)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [AIRecommendation(title=t, author=a) for t, a in self.books]

    async def generate_insight(self, title: str, author: str = "") -> dict[str, Any]:
        self.calls.append(title)
        if self.error:
            raise self.error
        return self.insight


# ---------------------------------------------------------------------------
# A small catalog shared by the aggregator and API tests
# ---------------------------------------------------------------------------
VEGETARIAN = make_book("9788936433598", "채식주의자", "한강 지음", bookImageURL="http://img/veg.jpg",
                       publisher="창비", publication_year="2007")
HUMAN_ACTS = make_book("9788936434120", "소년이 온다", "한강 지음")
WHITE = make_book("9788954651134", "흰", "한강 지음")
ALMOND = make_book("9788936456788", "아몬드", "손원평 지음")
GREENHOUSE = make_book("9791191824001", "지구 끝의 온실", "김초엽 지음")
PACHINKO = make_book("9791168340015", "파친코", "이민진 지음")

AI_BOOKS = [
    ("채식주의자", "한강"),
    ("소년이 온다 (개정판)", "한강"),
    ("존재하지 않는 책", "아무개"),
]


@pytest.fixture
def catalog_client() -> FakeLibraryClient:
    return FakeLibraryClient(
        keyword_results={
            "채식주의자": [VEGETARIAN],
            "소년이 온다": [HUMAN_ACTS],
        },
        usage={VEGETARIAN["isbn13"]: [WHITE, HUMAN_ACTS, ALMOND, WHITE]},
        recommend={"mania": [GREENHOUSE, VEGETARIAN], "reader": [PACHINKO, ALMOND]},
        holdings={
            (WHITE["isbn13"], "11"): [make_library("111", "A")],
            (ALMOND["isbn13"], "11"): [make_library("111", "A"), make_library("112", "B")],
            (ALMOND["isbn13"], "23"): [make_library("231", "C")],
            (PACHINKO["isbn13"], "23"): [make_library("231", "C"), make_library("232", "D")],
        },
    )


@pytest.fixture
def llm() -> FakeLLMService:
    return FakeLLMService(books=AI_BOOKS)


@pytest.fixture
def memory_cache() -> InMemoryResponseCache:
    return InMemoryResponseCache()


@pytest.fixture
def client(catalog_client, llm, memory_cache):
    """TestClient with every upstream replaced by a fake."""
    app.dependency_overrides[get_library_client] = lambda: catalog_client
    app.dependency_overrides[get_llm_service] = lambda: llm
    app.dependency_overrides[get_response_cache] = lambda: memory_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
