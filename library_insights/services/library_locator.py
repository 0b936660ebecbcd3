"""Nearest libraries holding a given book.

Holdings are fetched for the two region centres closest to the reader,
merged by library code, and filtered by a radius that starts at 3 km and
widens one kilometre at a time until something is inside it (10 km max).
"""

import asyncio
import logging
import math
from typing import Any

from library_insights.domain.entities import LibraryHolding
from library_insights.domain.exceptions import InvalidQueryError
from library_insights.domain.regions import format_distance, get_nearest_regions, haversine_distance
from library_insights.domain.repositories import ILibraryClient
from library_insights.domain.services import ILibraryLocator

logger = logging.getLogger(__name__)

LIBRARY_PAGE_SIZE = 100


class LibraryLocator(ILibraryLocator):

    def __init__(
        self,
        library_client: ILibraryClient,
        timeout: float = 5.0,
        start_radius_km: int = 3,
        max_radius_km: int = 10,
        region_count: int = 2,
    ):
        self.library_client = library_client
        self.timeout = timeout
        self.start_radius_km = start_radius_km
        self.max_radius_km = max_radius_km
        self.region_count = region_count

    async def nearby_libraries(self, isbn: str, lat: float, lon: float) -> dict[str, Any]:
        isbn = (isbn or "").strip()
        if not isbn:
            raise InvalidQueryError("ISBN is required")

        regions = get_nearest_regions(lat, lon, self.region_count)
        responses = await asyncio.gather(
            *(
                self.library_client.libraries_by_book(
                    isbn, region=region.code, page_size=LIBRARY_PAGE_SIZE, timeout=self.timeout
                )
                for region in regions
            ),
            return_exceptions=True,
        )
        failures = [r for r in responses if isinstance(r, BaseException)]
        if failures and len(failures) == len(responses):
            raise failures[0]
        for failure in failures:
            logger.warning("Holdings lookup for %s failed in one region: %s", isbn, failure)

        libraries = self._merge([r for r in responses if not isinstance(r, BaseException)])
        with_distance = sorted(
            ((lib, self._distance(lib, lat, lon)) for lib in libraries),
            key=lambda pair: pair[1],
        )

        radius = self.start_radius_km
        nearby = [pair for pair in with_distance if pair[1] <= radius]
        while not nearby and radius < self.max_radius_km:
            radius += 1
            nearby = [pair for pair in with_distance if pair[1] <= radius]

        logger.info("%d of %d holding libraries within %d km", len(nearby), len(libraries), radius)
        return {
            "radiusKm": radius,
            "regions": [region.name for region in regions],
            "libraries": [
                {
                    "lib": lib.to_dict(),
                    "distanceKm": round(distance, 2),
                    "distance": format_distance(distance),
                }
                for lib, distance in nearby
            ],
        }

    @staticmethod
    def _merge(batches: list[list[LibraryHolding]]) -> list[LibraryHolding]:
        seen: set[str] = set()
        merged = []
        for batch in batches:
            for lib in batch:
                if not lib.lib_code or lib.lib_code in seen:
                    continue
                seen.add(lib.lib_code)
                merged.append(lib)
        return merged

    @staticmethod
    def _distance(lib: LibraryHolding, lat: float, lon: float) -> float:
        if not lib.has_location:
            return math.inf
        return haversine_distance(lat, lon, lib.latitude, lib.longitude)
