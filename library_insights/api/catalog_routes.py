"""Catalog, trend, holdings and insight routes."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from library_insights.api.errors import error_response
from library_insights.api.schemas import (
    BookExistResponse,
    BookInsightResponse,
    BookSearchResponse,
    ErrorResponse,
    LibraryListResponse,
    NearbyLibrariesResponse,
)
from library_insights.core.dependencies import get_catalog_service, get_library_locator
from library_insights.domain.exceptions import AIServiceError, InvalidQueryError, LibraryProxyError
from library_insights.domain.regions import parse_coordinate
from library_insights.domain.services import ICatalogService, ILibraryLocator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["catalog"])

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
FETCH_FAILED = "Failed to fetch data"


@router.get("/search", response_model=BookSearchResponse, responses=ERROR_RESPONSES)
async def search_books(
    catalog: Annotated[ICatalogService, Depends(get_catalog_service)],
    keyword: str = "",
    isbn: str = "",
    page_no: Annotated[int, Query(alias="pageNo", ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=100)] = 10,
):
    """Search the catalog by title keyword or ISBN."""
    try:
        books = await catalog.search(keyword=keyword, isbn=isbn, page_no=page_no, page_size=page_size)
    except InvalidQueryError as e:
        return error_response(400, str(e))
    except LibraryProxyError as e:
        logger.error("Search API error: %s", e)
        return error_response(500, FETCH_FAILED, str(e))
    return BookSearchResponse(books=[b.to_dict() for b in books], total=len(books))


@router.get("/popular-books", responses=ERROR_RESPONSES)
async def popular_books(
    catalog: Annotated[ICatalogService, Depends(get_catalog_service)],
    start_dt: Annotated[Optional[str], Query(alias="startDt")] = None,
    end_dt: Annotated[Optional[str], Query(alias="endDt")] = None,
    gender: Optional[str] = None,
    from_age: Optional[str] = None,
    to_age: Optional[str] = None,
    region: Optional[str] = None,
    page_no: Annotated[int, Query(alias="pageNo", ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=100)] = 10,
):
    """Most-borrowed books for the given period and demographic filters (cached 1 h)."""
    filters = {
        "startDt": start_dt,
        "endDt": end_dt,
        "gender": gender,
        "from_age": from_age,
        "to_age": to_age,
        "region": region,
        "pageNo": page_no,
        "pageSize": page_size,
    }
    try:
        return await catalog.popular_books(filters)
    except LibraryProxyError as e:
        logger.error("Popular books API error: %s", e)
        return error_response(500, FETCH_FAILED)


@router.get("/hot-trend", responses=ERROR_RESPONSES)
async def hot_trend(
    catalog: Annotated[ICatalogService, Depends(get_catalog_service)],
    search_dt: Annotated[Optional[str], Query(alias="searchDt")] = None,
):
    """Books with the sharpest rise in loans around ``searchDt`` (default today, cached 6 h)."""
    try:
        return await catalog.hot_trend(search_dt)
    except LibraryProxyError as e:
        logger.error("Hot trend API error: %s", e)
        return error_response(500, FETCH_FAILED)


@router.get("/library-by-book", response_model=LibraryListResponse, responses=ERROR_RESPONSES)
async def library_by_book(
    catalog: Annotated[ICatalogService, Depends(get_catalog_service)],
    isbn: str = "",
    region: str = "",
    dtl_region: str = "",
):
    """Libraries holding a book, optionally limited to a region / sub-region."""
    try:
        libraries = await catalog.libraries_by_book(isbn, region=region, dtl_region=dtl_region)
    except InvalidQueryError as e:
        return error_response(400, str(e))
    except LibraryProxyError as e:
        logger.error("Library search API error: %s", e)
        return error_response(500, FETCH_FAILED)
    return LibraryListResponse(libraries=[lib.to_dict() for lib in libraries], total=len(libraries))


@router.get("/nearby-libraries", response_model=NearbyLibrariesResponse, responses=ERROR_RESPONSES)
async def nearby_libraries(
    locator: Annotated[ILibraryLocator, Depends(get_library_locator)],
    isbn: str = "",
    lat: Optional[str] = None,
    lon: Optional[str] = None,
):
    """Closest libraries holding a book, within a radius widening from 3 km to 10 km."""
    user_lat, user_lon = parse_coordinate(lat), parse_coordinate(lon)
    if user_lat is None or user_lon is None:
        return error_response(400, "lat and lon are required")
    try:
        return await locator.nearby_libraries(isbn, user_lat, user_lon)
    except InvalidQueryError as e:
        return error_response(400, str(e))
    except LibraryProxyError as e:
        logger.error("Nearby library lookup failed: %s", e)
        return error_response(500, FETCH_FAILED)


@router.get("/book-ai-insight", response_model=BookInsightResponse, responses=ERROR_RESPONSES)
async def book_ai_insight(
    catalog: Annotated[ICatalogService, Depends(get_catalog_service)],
    title: str = "",
    author: str = "",
    isbn13: str = "",
):
    """Model-written summary, key message, audience and difficulty (cached 7 days)."""
    try:
        return await catalog.book_insight(title, author=author, isbn13=isbn13)
    except InvalidQueryError as e:
        return error_response(400, str(e))
    except AIServiceError as e:
        logger.error("Book AI insight error: %s", e, exc_info=True)
        return error_response(500, "AI analysis failed", str(e))


@router.get("/new-arrivals", responses=ERROR_RESPONSES)
async def new_arrivals(catalog: Annotated[ICatalogService, Depends(get_catalog_service)]):
    """Books loaned over the last seven days (cached 6 h)."""
    try:
        return await catalog.new_arrivals()
    except LibraryProxyError as e:
        logger.error("New arrivals API error: %s", e)
        return error_response(500, FETCH_FAILED)


@router.get("/monthly-recommend", responses=ERROR_RESPONSES)
async def monthly_recommend(catalog: Annotated[ICatalogService, Depends(get_catalog_service)]):
    """One book for a trending keyword of last month (cached 24 h).

    When nothing can be picked the body is ``{"error", "keyword": null, "book": null}``
    with status 200.
    """
    try:
        return await catalog.monthly_recommend()
    except LibraryProxyError as e:
        logger.error("Monthly recommend API error: %s", e)
        return error_response(500, "Failed to fetch recommendation", str(e))


@router.get("/book-exist", response_model=BookExistResponse, responses=ERROR_RESPONSES)
async def book_exist(
    catalog: Annotated[ICatalogService, Depends(get_catalog_service)],
    isbn: str = "",
    lib_code: Annotated[str, Query(alias="libCode")] = "",
):
    """Whether one library holds the book and whether it can be borrowed now."""
    try:
        return await catalog.book_exist(isbn, lib_code)
    except InvalidQueryError as e:
        return error_response(400, str(e))
    except LibraryProxyError as e:
        logger.error("Book exist API error: %s", e)
        return error_response(500, FETCH_FAILED)


@router.get("/book-intro", responses=ERROR_RESPONSES)
async def book_intro(
    catalog: Annotated[ICatalogService, Depends(get_catalog_service)],
    isbn13: str = "",
):
    """Raw detail record (description, loan statistics) for one book."""
    try:
        return await catalog.book_intro(isbn13)
    except InvalidQueryError as e:
        return error_response(400, str(e))
    except LibraryProxyError as e:
        logger.error("Book intro API error: %s", e)
        return error_response(500, FETCH_FAILED, str(e))
