"""Upstream adapter interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from library_insights.domain.entities import AIRecommendation, CatalogBook, LibraryHolding


class ILibraryClient(ABC):
    """Public-library open-data API, reached through the authenticated proxy.

    Every method accepts an optional ``timeout`` (seconds) overriding the
    client default, and raises ``LibraryProxyError`` on any failure.
    """

    @abstractmethod
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
        pass

    @abstractmethod
    async def usage_analysis(
        self, isbn13: str, timeout: Optional[float] = None
    ) -> list[CatalogBook]:
        """Mania, reader and co-loan recommendations for one book."""
        pass

    @abstractmethod
    async def recommend_list(
        self,
        isbn13s: list[str],
        rec_type: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> list[CatalogBook]:
        """Batch recommendation list; ``rec_type=None`` is the default mania list."""
        pass

    @abstractmethod
    async def libraries_by_book(
        self,
        isbn: str,
        region: Optional[str] = None,
        dtl_region: Optional[str] = None,
        page_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> list[LibraryHolding]:
        pass

    @abstractmethod
    async def loan_items(
        self, params: dict[str, Any], timeout: Optional[float] = None
    ) -> dict[str, Any]:
        """Raw popular-loan payload for the given filters."""
        pass

    @abstractmethod
    async def hot_trend(self, search_dt: str, timeout: Optional[float] = None) -> dict[str, Any]:
        """Raw trending-loans payload for one date (``YYYY-MM-DD``)."""
        pass

    @abstractmethod
    async def book_exist(
        self, isbn13: str, lib_code: str, timeout: Optional[float] = None
    ) -> dict[str, Any]:
        """Holding/loan flags of one book at one library (``{"hasBook": "Y", ...}``)."""
        pass

    @abstractmethod
    async def book_detail(
        self, isbn13: str, loan_info: bool = False, timeout: Optional[float] = None
    ) -> dict[str, Any]:
        """Raw detail payload (description, classification, optional loan stats)."""
        pass

    @abstractmethod
    async def monthly_keywords(self, month: str, timeout: Optional[float] = None) -> list[str]:
        """Trending search keywords for a month (``YYYY-MM``), most popular first."""
        pass


class ILLMService(ABC):

    @abstractmethod
    async def recommend_books(self, keyword: str) -> list[AIRecommendation]:
        """Return up to 12 book candidates for a keyword.

        Raises ``AIResponseFormatError`` when the model output is unusable.
        """
        pass

    @abstractmethod
    async def generate_insight(self, title: str, author: str = "") -> dict[str, Any]:
        """Summary, key message, audience and difficulty for one book."""
        pass


class IResponseCache(ABC):
    """Best-effort key/value cache for serialized response bodies.

    Implementations never raise: a failed ``get`` is a miss and a failed
    ``set`` is logged and dropped.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        pass
