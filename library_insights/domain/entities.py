"""Domain entities for Library Insights.

Everything here is request-scoped: built from upstream payloads for a single
request and, at most, cached afterwards as a serialized JSON envelope.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

SearchMode = Literal["ai-only", "no-gps", "full"]

MODE_AI_ONLY: SearchMode = "ai-only"
MODE_NO_GPS: SearchMode = "no-gps"
MODE_FULL: SearchMode = "full"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class KeywordQuery:
    """Free-text keyword plus optional coordinates for an AI search."""

    keyword: str
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass
class AIRecommendation:
    """Untrusted ``{title, author}`` pair produced by the language model."""

    title: str
    author: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "author": self.author}


@dataclass
class CatalogBook:
    """Canonical book record from the public-library catalog.

    ``raw`` keeps the upstream record untouched so responses can pass through
    fields this service does not model (class numbers, loan counts, ...).
    """

    isbn13: str
    bookname: str
    authors: str = ""
    publisher: str = ""
    publication_year: str = ""
    book_image_url: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> "CatalogBook":
        return cls(
            isbn13=_text(data.get("isbn13") or data.get("isbn")),
            bookname=_text(data.get("bookname") or data.get("bookName") or data.get("title")),
            authors=_text(data.get("authors") or data.get("author")),
            publisher=_text(data.get("publisher")),
            publication_year=_text(data.get("publication_year")),
            book_image_url=_text(data.get("bookImageURL")),
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        return {
            "isbn13": self.isbn13,
            "bookname": self.bookname,
            "authors": self.authors,
            "publisher": self.publisher,
            "publication_year": self.publication_year,
            "bookImageURL": self.book_image_url,
        }


@dataclass
class SeedBook:
    """First catalog record resolved from an AI candidate; anchors expansion."""

    book: CatalogBook
    candidate: AIRecommendation

    def summary(self, detailed: bool = False) -> dict[str, str]:
        data = {
            "bookname": self.book.bookname,
            "authors": self.book.authors,
            "isbn13": self.book.isbn13,
            "bookImageURL": self.book.book_image_url,
        }
        if detailed:
            data["publisher"] = self.book.publisher
            data["publication_year"] = self.book.publication_year
        return data


@dataclass
class RankedBook:
    """A recommended catalog book with its nearby holdings count."""

    book: CatalogBook
    nearby_lib_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"book": self.book.to_dict(), "nearbyLibCount": self.nearby_lib_count}


@dataclass
class LibraryHolding:
    """A library that holds a given book."""

    lib_code: str
    lib_name: str
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> "LibraryHolding":
        return cls(
            lib_code=_text(data.get("libCode")),
            lib_name=_text(data.get("libName")),
            address=_text(data.get("address")),
            latitude=_coordinate(data.get("latitude")),
            longitude=_coordinate(data.get("longitude")),
            raw=dict(data),
        )

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw) if self.raw else {"libCode": self.lib_code, "libName": self.lib_name}


def _coordinate(value: Any) -> Optional[float]:
    # The catalog reports unknown positions as "" or 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number == 0:
        return None
    return number


@dataclass
class SearchEnvelope:
    """Terminal result of the AI-search pipeline, tagged by ``mode``."""

    mode: SearchMode
    seed_book: Optional[SeedBook] = None
    recommendations: list[Any] = field(default_factory=list)
    regions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        seed = self.seed_book.summary(detailed=self.mode == MODE_FULL) if self.seed_book else None
        return {
            "mode": self.mode,
            "seedBook": seed,
            "recommendations": [item.to_dict() for item in self.recommendations],
            "regions": list(self.regions),
        }
