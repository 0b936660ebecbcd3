"""Catalog pass-throughs, AI insight caching and the nearby-library locator."""

import asyncio
import random
from datetime import date

import pytest

from conftest import ALMOND, VEGETARIAN, FakeLibraryClient, FakeLLMService, make_library
from library_insights.domain.exceptions import AIServiceError, InvalidQueryError, LibraryProxyError
from library_insights.services.catalog_service import CatalogService
from library_insights.services.library_locator import LibraryLocator

SEOUL = (37.5665, 126.9780)


@pytest.fixture
def library():
    return FakeLibraryClient(title_results={VEGETARIAN["isbn13"]: [VEGETARIAN], "8936433598": [VEGETARIAN]})


@pytest.fixture
def service(library, llm, memory_cache):
    return CatalogService(library, llm, memory_cache)


class TestSearch:

    def test_requires_keyword_or_isbn(self, service):
        with pytest.raises(InvalidQueryError, match="Keyword or ISBN is required"):
            asyncio.run(service.search(keyword=" ", isbn=""))

    def test_thirteen_digit_isbn_uses_isbn13(self, service, library):
        books = asyncio.run(service.search(isbn="978-8936433598"))
        assert books[0].isbn13 == VEGETARIAN["isbn13"]
        assert library.endpoint_calls("srchBooks")[0]["isbn13"] == VEGETARIAN["isbn13"]

    def test_short_isbn_uses_isbn(self, service, library):
        asyncio.run(service.search(isbn="8936433598"))
        call = library.endpoint_calls("srchBooks")[0]
        assert call["isbn"] == "8936433598"
        assert call["isbn13"] is None

    def test_keyword_searches_title(self, service, library):
        asyncio.run(service.search(keyword=" 아몬드 "))
        assert library.endpoint_calls("srchBooks")[0]["title"] == "아몬드"


class TestCachedLists:

    def test_popular_books_filters_and_caches(self, service, library):
        filters = {"startDt": "2024-01-01", "gender": "", "bogus": "x", "pageNo": 2, "pageSize": None}
        asyncio.run(service.popular_books(filters))
        asyncio.run(service.popular_books(dict(filters)))
        assert library.endpoint_calls("loanItemSrch") == [
            {"startDt": "2024-01-01", "pageNo": 2, "pageSize": 10}
        ]

    def test_popular_books_different_filters_are_separate(self, service, library):
        asyncio.run(service.popular_books({"region": "11"}))
        asyncio.run(service.popular_books({"region": "21"}))
        assert len(library.endpoint_calls("loanItemSrch")) == 2

    def test_hot_trend_defaults_to_today(self, service, library):
        asyncio.run(service.hot_trend())
        assert library.endpoint_calls("hotTrend") == [date.today().isoformat()]

    def test_upstream_failure_propagates_and_is_not_cached(self, service, library):
        library.failing.add("hotTrend")
        with pytest.raises(LibraryProxyError):
            asyncio.run(service.hot_trend("2024-05-01"))
        library.failing.clear()
        asyncio.run(service.hot_trend("2024-05-01"))
        assert len(library.endpoint_calls("hotTrend")) == 2


class TestLibrariesByBook:

    def test_requires_isbn(self, service):
        with pytest.raises(InvalidQueryError, match="ISBN is required"):
            asyncio.run(service.libraries_by_book(""))

    def test_passes_region(self, service, library):
        library.holdings[(ALMOND["isbn13"], "11")] = [make_library("111", "A")]
        libs = asyncio.run(service.libraries_by_book(ALMOND["isbn13"], region="11"))
        assert [lib.lib_code for lib in libs] == ["111"]


class TestBookInsight:

    def test_requires_title(self, service):
        with pytest.raises(InvalidQueryError, match="title parameter required"):
            asyncio.run(service.book_insight(""))

    def test_cached_by_isbn(self, service, llm):
        first = asyncio.run(service.book_insight("채식주의자", "한강", isbn13=VEGETARIAN["isbn13"]))
        second = asyncio.run(service.book_insight("채식주의자 (개정판)", isbn13=VEGETARIAN["isbn13"]))
        assert first == second == {"success": True, "insight": llm.insight}
        assert llm.calls == ["채식주의자"]

    def test_cached_by_title_without_isbn(self, service, llm):
        asyncio.run(service.book_insight("흰"))
        asyncio.run(service.book_insight(" 흰 "))
        asyncio.run(service.book_insight("아몬드"))
        assert llm.calls == ["흰", "아몬드"]

    def test_failures_are_not_cached(self, library, memory_cache):
        failing = CatalogService(library, FakeLLMService(error=AIServiceError("down")), memory_cache)
        with pytest.raises(AIServiceError):
            asyncio.run(failing.book_insight("흰"))
        assert asyncio.run(memory_cache.get("book-ai-insight:흰")) is None


MAY_15 = date(2024, 5, 15)


def dated_service(library, llm, cache, **kwargs):
    return CatalogService(library, llm, cache, clock=lambda: MAY_15, rng=random.Random(0), **kwargs)


class TestNewArrivals:

    def test_last_seven_days_cached(self, library, llm, memory_cache):
        service = dated_service(library, llm, memory_cache)
        asyncio.run(service.new_arrivals())
        asyncio.run(service.new_arrivals())
        assert library.endpoint_calls("loanItemSrch") == [
            {"startDt": "2024-05-08", "endDt": "2024-05-15", "pageNo": 1, "pageSize": 20}
        ]


class TestMonthlyRecommend:

    def test_no_keywords(self, library, llm, memory_cache):
        service = dated_service(library, llm, memory_cache)
        result = asyncio.run(service.monthly_recommend())
        assert result == {"error": "No keywords found", "keyword": None, "book": None}
        assert library.endpoint_calls("monthlyKeywords") == ["2024-04"]

    def test_no_books_for_any_keyword_is_not_cached(self, library, llm, memory_cache):
        library.keywords = ["우주", "바다"]
        service = dated_service(library, llm, memory_cache)
        result = asyncio.run(service.monthly_recommend())
        assert result == {"error": "No books found for any keyword", "keyword": None, "book": None}
        assert sorted(call["keyword"] for call in library.endpoint_calls("srchBooks")) == ["바다", "우주"]
        assert len(memory_cache) == 0

    def test_pick_is_enriched_with_detail_and_cached(self, library, llm, memory_cache):
        library.keywords = ["없는 말", "채식주의자"]
        library.keyword_results["채식주의자"] = [VEGETARIAN]
        library.details[VEGETARIAN["isbn13"]] = {
            "description": "세 편의 연작 소설",
            "class_nm": "문학 > 한국문학",
            "bookname": "다른 제목",
        }
        service = dated_service(library, llm, memory_cache)
        result = asyncio.run(service.monthly_recommend())
        assert result["keyword"] == "채식주의자"
        assert result["month"] == "2024-04"
        book = result["book"]
        assert book["bookname"] == "채식주의자"
        assert book["class_nm"] == "문학 > 한국문학"
        assert book["description"] == "세 편의 연작 소설"
        assert book["loan_count"] == ""

        assert asyncio.run(service.monthly_recommend()) == result
        assert len(library.endpoint_calls("monthlyKeywords")) == 1

    def test_january_asks_for_december(self, library, llm, memory_cache):
        service = CatalogService(library, llm, memory_cache, clock=lambda: date(2025, 1, 3))
        asyncio.run(service.monthly_recommend())
        assert library.endpoint_calls("monthlyKeywords") == ["2024-12"]

    def test_keyword_failure_propagates(self, library, llm, memory_cache):
        library.failing.add("monthlyKeywords")
        with pytest.raises(LibraryProxyError):
            asyncio.run(dated_service(library, llm, memory_cache).monthly_recommend())


class TestBookExistAndIntro:

    def test_flags_become_booleans(self, service, library):
        library.exists[(ALMOND["isbn13"], "111")] = {"hasBook": "Y", "loanAvailable": "Y"}
        assert asyncio.run(service.book_exist(ALMOND["isbn13"], "111")) == {
            "hasBook": True,
            "loanAvailable": True,
        }
        assert asyncio.run(service.book_exist(ALMOND["isbn13"], "999")) == {
            "hasBook": False,
            "loanAvailable": False,
        }

    @pytest.mark.parametrize("isbn, lib_code", [("", "111"), (ALMOND["isbn13"], " ")])
    def test_book_exist_requires_both(self, service, library, isbn, lib_code):
        with pytest.raises(InvalidQueryError, match="isbn and libCode are required"):
            asyncio.run(service.book_exist(isbn, lib_code))
        assert library.calls == []

    def test_book_intro_asks_for_loan_info(self, service, library):
        library.details[VEGETARIAN["isbn13"]] = {"bookname": "채식주의자"}
        payload = asyncio.run(service.book_intro(f" {VEGETARIAN['isbn13']} "))
        assert payload["response"]["detail"][0]["book"] == {"bookname": "채식주의자"}
        assert library.endpoint_calls("srchDtlList") == [(VEGETARIAN["isbn13"], True)]

    def test_book_intro_requires_isbn(self, service):
        with pytest.raises(InvalidQueryError, match="isbn13 is required"):
            asyncio.run(service.book_intro(""))


class TestLibraryLocator:

    def _run(self, library, **kwargs):
        return asyncio.run(LibraryLocator(library).nearby_libraries(ALMOND["isbn13"], *SEOUL, **kwargs))

    def test_merges_regions_and_sorts_by_distance(self):
        library = FakeLibraryClient(holdings={
            (ALMOND["isbn13"], "11"): [
                make_library("112", "B", "37.5800", "126.9800"),
                make_library("111", "A", "37.5670", "126.9785"),
            ],
            (ALMOND["isbn13"], "23"): [make_library("111", "A", "37.5670", "126.9785")],
        })
        result = self._run(library)
        assert result["radiusKm"] == 3
        assert result["regions"] == ["Seoul", "Incheon"]
        assert [item["lib"]["libCode"] for item in result["libraries"]] == ["111", "112"]
        assert result["libraries"][0]["distance"] == "71m"

    def test_radius_widens_until_something_is_found(self):
        library = FakeLibraryClient(holdings={
            # ~5.6 km north of the Seoul centre
            (ALMOND["isbn13"], "11"): [make_library("113", "C", "37.6165", "126.9780")],
        })
        result = self._run(library)
        assert result["radiusKm"] == 6
        assert result["libraries"][0]["distance"] == "5.6km"

    def test_nothing_within_max_radius(self):
        library = FakeLibraryClient(holdings={
            (ALMOND["isbn13"], "11"): [
                make_library("114", "far", "37.9000", "127.3000"),
                make_library("115", "unknown location"),
            ],
        })
        result = self._run(library)
        assert result["radiusKm"] == 10
        assert result["libraries"] == []

    def test_one_failing_region_is_tolerated(self):
        library = FakeLibraryClient(holdings={
            (ALMOND["isbn13"], "11"): [make_library("111", "A", "37.5670", "126.9785")],
        })
        calls = []
        original = library.libraries_by_book

        async def flaky(isbn, region=None, **kwargs):
            calls.append(region)
            if region == "23":
                raise LibraryProxyError("boom")
            return await original(isbn, region=region, **kwargs)

        library.libraries_by_book = flaky
        result = self._run(library)
        assert sorted(calls) == ["11", "23"]
        assert len(result["libraries"]) == 1

    def test_all_regions_failing_raises(self):
        library = FakeLibraryClient(failing=("libSrchByBook",))
        with pytest.raises(LibraryProxyError):
            self._run(library)

    def test_requires_isbn(self):
        with pytest.raises(InvalidQueryError):
            asyncio.run(LibraryLocator(FakeLibraryClient()).nearby_libraries("", *SEOUL))
