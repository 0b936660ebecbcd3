"""AI-assisted search route."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from library_insights.api.errors import error_response
from library_insights.api.schemas import AISearchResponse, ErrorResponse
from library_insights.core.dependencies import get_ai_search_service
from library_insights.domain.entities import KeywordQuery
from library_insights.domain.exceptions import AIServiceError, InvalidQueryError
from library_insights.domain.regions import parse_coordinate
from library_insights.domain.services import IAISearchService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["search"])

TRUTHY = {"1", "true", "yes"}


@router.get(
    "/ai-search",
    response_model=AISearchResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def ai_search(
    search_service: Annotated[IAISearchService, Depends(get_ai_search_service)],
    keyword: str = "",
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    nocache: Optional[str] = None,
):
    """Recommend real, library-held books for a free-text keyword.

    The response ``mode`` tells the client how much could be confirmed:
      - ``ai-only``: model suggestions only (none found in the catalog, or
        nothing related could be expanded from the seed book)
      - ``no-gps``: catalog books without availability (``nearbyLibCount`` 0)
      - ``full``: catalog books ranked by holdings in the two nearest regions

    Coordinates that are missing or not numeric are treated as absent.
    ``nocache=1`` recomputes instead of serving a cached envelope.
    """
    query = KeywordQuery(keyword=keyword, lat=parse_coordinate(lat), lon=parse_coordinate(lon))
    try:
        payload = await search_service.search(
            query, nocache=(nocache or "").strip().lower() in TRUTHY
        )
    except InvalidQueryError as e:
        return error_response(400, str(e))
    except AIServiceError as e:
        logger.error("AI search failed for %r: %s", keyword, e, exc_info=True)
        return error_response(500, e.message, str(e))
    return JSONResponse(content=payload)
