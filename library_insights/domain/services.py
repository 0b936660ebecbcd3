"""Service interfaces the routers are typed against.

Implementations live in ``library_insights.services`` and are built by the
providers in ``library_insights.core.dependencies``; tests swap them through
``app.dependency_overrides``.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from library_insights.domain.entities import CatalogBook, KeywordQuery, LibraryHolding


class IAISearchService(ABC):

    @abstractmethod
    async def search(self, query: KeywordQuery, nocache: bool = False) -> dict[str, Any]:
        """Run the AI-assisted search and return the serialized envelope.

        Raises ``InvalidQueryError`` for an empty keyword and ``AIServiceError``
        when candidate generation fails or times out.
        """
        pass


class ICatalogService(ABC):

    @abstractmethod
    async def search(
        self,
        keyword: str = "",
        isbn: str = "",
        page_no: int = 1,
        page_size: int = 10,
    ) -> list[CatalogBook]:
        pass

    @abstractmethod
    async def popular_books(self, filters: dict[str, Any]) -> dict[str, Any]:
        pass

    @abstractmethod
    async def hot_trend(self, search_dt: Optional[str] = None) -> dict[str, Any]:
        pass

    @abstractmethod
    async def libraries_by_book(
        self, isbn: str, region: str = "", dtl_region: str = ""
    ) -> list[LibraryHolding]:
        pass

    @abstractmethod
    async def book_insight(self, title: str, author: str = "", isbn13: str = "") -> dict[str, Any]:
        pass

    @abstractmethod
    async def new_arrivals(self) -> dict[str, Any]:
        pass

    @abstractmethod
    async def monthly_recommend(self) -> dict[str, Any]:
        """One book picked from last month's trending keywords."""
        pass

    @abstractmethod
    async def book_exist(self, isbn: str, lib_code: str) -> dict[str, bool]:
        pass

    @abstractmethod
    async def book_intro(self, isbn13: str) -> dict[str, Any]:
        pass


class ILibraryLocator(ABC):

    @abstractmethod
    async def nearby_libraries(self, isbn: str, lat: float, lon: float) -> dict[str, Any]:
        """Libraries holding ``isbn`` closest to the point, within an expanding radius."""
        pass
