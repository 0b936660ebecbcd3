"""Pydantic schemas for API responses."""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None


# ---------------------------------------------------------------------------
# AI search
# ---------------------------------------------------------------------------
class AIRecommendationResponse(BaseModel):
    """Raw model candidate, returned when nothing could be confirmed in the catalog."""

    title: str
    author: str = ""


class RankedBookResponse(BaseModel):
    book: dict[str, Any] = Field(..., description="Catalog record as returned by the library API")
    nearbyLibCount: int = Field(
        0, description="Holding libraries in the nearest regions (0 when unknown)"
    )


class SeedBookResponse(BaseModel):
    bookname: str
    authors: str
    isbn13: str
    bookImageURL: str = ""
    publisher: Optional[str] = None
    publication_year: Optional[str] = None


class AISearchResponse(BaseModel):
    """Terminal envelope of the AI search, weakest to strongest: ai-only < no-gps < full."""

    mode: Literal["ai-only", "no-gps", "full"]
    seedBook: Optional[SeedBookResponse] = None
    recommendations: list[Union[RankedBookResponse, AIRecommendationResponse]]
    regions: list[str] = Field(default_factory=list, description="Region names used for ranking")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class BookSearchResponse(BaseModel):
    books: list[dict[str, Any]]
    total: int


class LibraryListResponse(BaseModel):
    libraries: list[dict[str, Any]]
    total: int


class NearbyLibraryResponse(BaseModel):
    lib: dict[str, Any]
    distanceKm: float
    distance: str


class NearbyLibrariesResponse(BaseModel):
    radiusKm: int
    regions: list[str]
    libraries: list[NearbyLibraryResponse]


class BookInsightResponse(BaseModel):
    success: bool = True
    insight: dict[str, Any]


class BookExistResponse(BaseModel):
    hasBook: bool
    loanAvailable: bool
