"""AI-assisted book search.

Turns a free-text keyword (plus optional GPS position) into a ranked list of
real, library-held books:

  1. Validate the keyword and consult the response cache.
  2. Ask the language model for up to 12 ``{title, author}`` candidates.
  3. Resolve candidates against the library catalog (seed books).
  4. Expand from the primary seed via usage analysis (mania / reader / co-loan).
  5. Top up from batch recommendation lists (mania + reader) for all seeds.
  6. Last resort: direct title lookups for the candidates that did not resolve.
  7. Without coordinates, stop at ``no-gps``; otherwise count holdings in the
     two nearest regions and sort by that count (``full``).

Only step 2 is fatal.  Every catalog call is individually bounded by a
timeout and contributes nothing when it fails.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from library_insights.domain.entities import (
    MODE_AI_ONLY,
    MODE_FULL,
    MODE_NO_GPS,
    AIRecommendation,
    CatalogBook,
    KeywordQuery,
    RankedBook,
    SearchEnvelope,
    SeedBook,
)
from library_insights.domain.exceptions import AITimeoutError, InvalidQueryError
from library_insights.domain.regions import RegionCenter, get_nearest_regions, region_bucket
from library_insights.domain.repositories import ILibraryClient, ILLMService, IResponseCache
from library_insights.domain.services import IAISearchService
from library_insights.services.book_matching import (
    BookAccumulator,
    author_matches,
    clean_title,
    dedupe_candidates,
    get_book_key,
    normalize_text,
)

logger = logging.getLogger(__name__)

MAX_AI_BOOKS = 12
MAX_SEED_ISBNS = 5
MAX_LIB_CHECK_BOOKS = 12
MAX_RETURN_BOOKS = 12
NEAREST_REGION_COUNT = 2
SEED_SEARCH_PAGE_SIZE = 10
READER_LIST_TYPE = "reader"


def _first_author_match(books: list[CatalogBook], author: str) -> Optional[CatalogBook]:
    for book in books:
        if author_matches(author, book.authors):
            return book
    return None


class AISearchService(IAISearchService):
    """Keyword → AI candidates → catalog books → availability ranking."""

    def __init__(
        self,
        library_client: ILibraryClient,
        llm_service: ILLMService,
        cache: IResponseCache,
        cache_ttl: int = 24 * 60 * 60,
        ai_timeout: float = 8.0,
        library_timeout: float = 2.5,
        usage_timeout: float = 3.0,
        availability_timeout: float = 2.0,
        include_seeds_in_fallback: bool = False,
    ):
        self.library_client = library_client
        self.llm_service = llm_service
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.ai_timeout = ai_timeout
        self.library_timeout = library_timeout
        self.usage_timeout = usage_timeout
        self.availability_timeout = availability_timeout
        self.include_seeds_in_fallback = include_seeds_in_fallback

    @staticmethod
    def cache_key(query: KeywordQuery) -> str:
        """``(normalized keyword, coarse region bucket)`` cache key."""
        return f"ai-search:{normalize_text(query.keyword)}:{region_bucket(query.lat, query.lon)}"

    async def search(self, query: KeywordQuery, nocache: bool = False) -> dict[str, Any]:
        keyword = (query.keyword or "").strip()
        if not keyword:
            raise InvalidQueryError("keyword is required")
        query = KeywordQuery(keyword=keyword, lat=query.lat, lon=query.lon)

        key = self.cache_key(query)
        if not nocache:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.info("AI-Search: cache hit for %s", key)
                return cached

        envelope = await self.run(query)
        payload = envelope.to_dict()
        await self.cache.set(key, payload, self.cache_ttl)
        logger.info(
            "AI-Search: %r finished in mode=%s with %d results",
            keyword, envelope.mode, len(envelope.recommendations),
        )
        return payload

    async def run(self, query: KeywordQuery) -> SearchEnvelope:
        """Execute the pipeline without touching the cache."""
        candidates = await self.generate_candidates(query.keyword)

        logger.info("AI-Search: resolving %d candidates against the catalog", len(candidates))
        resolved = await self.resolve_candidates(candidates)
        seeds = self._collect_seeds(candidates, resolved)
        if not seeds:
            return SearchEnvelope(mode=MODE_AI_ONLY, recommendations=candidates)

        primary = seeds[0]
        accumulator = BookAccumulator()
        for seed in seeds:
            accumulator.exclude(seed.book)

        await self._expand_with_usage_analysis(primary, accumulator)
        if len(accumulator) < MAX_RETURN_BOOKS:
            await self._expand_with_recommend_lists(seeds, accumulator)
        if not accumulator:
            await self._expand_last_resort(candidates, resolved, seeds, accumulator)
        if not accumulator:
            return SearchEnvelope(mode=MODE_AI_ONLY, seed_book=primary, recommendations=candidates)

        if not query.has_coordinates:
            return SearchEnvelope(
                mode=MODE_NO_GPS,
                seed_book=primary,
                recommendations=[RankedBook(book) for book in accumulator.books[:MAX_RETURN_BOOKS]],
            )

        regions = get_nearest_regions(query.lat, query.lon, NEAREST_REGION_COUNT)
        ranked = await self.rank_by_availability(accumulator.books[:MAX_LIB_CHECK_BOOKS], regions)
        return SearchEnvelope(
            mode=MODE_FULL,
            seed_book=primary,
            recommendations=ranked[:MAX_RETURN_BOOKS],
            regions=[region.name for region in regions],
        )

    # -- stages ---------------------------------------------------------------

    async def generate_candidates(self, keyword: str) -> list[AIRecommendation]:
        """Ask the model for candidates; timeouts and format errors propagate."""
        logger.info("AI-Search: requesting candidates for %r", keyword)
        try:
            raw = await asyncio.wait_for(
                self.llm_service.recommend_books(keyword), timeout=self.ai_timeout
            )
        except asyncio.TimeoutError as exc:
            raise AITimeoutError(f"No AI response within {self.ai_timeout:g}s") from exc
        return dedupe_candidates(raw, MAX_AI_BOOKS)

    async def resolve_candidates(
        self, candidates: list[AIRecommendation]
    ) -> list[Optional[CatalogBook]]:
        """Catalog record for each candidate (``None`` when unresolved), in order."""
        return list(await asyncio.gather(*(self._resolve(c) for c in candidates)))

    async def _resolve(self, candidate: AIRecommendation) -> Optional[CatalogBook]:
        title = clean_title(candidate.title) or candidate.title
        by_title = await self._search_with_isbn(title, f"srchBooks {title!r}")
        match = _first_author_match(by_title, candidate.author)
        if match:
            return match

        if candidate.author:
            combined_term = f"{title} {candidate.author}"
            combined = await self._search_with_isbn(combined_term, f"srchBooks {combined_term!r}")
            match = _first_author_match(combined, candidate.author)
            if match:
                return match
            if combined:
                return combined[0]

        return by_title[0] if by_title else None

    async def _search_with_isbn(self, keyword: str, label: str) -> list[CatalogBook]:
        books = await self._guarded(
            self.library_client.search_books(
                keyword, page_size=SEED_SEARCH_PAGE_SIZE, timeout=self.library_timeout
            ),
            self.library_timeout,
            label,
            default=[],
        )
        return [book for book in books if book.isbn13]

    @staticmethod
    def _collect_seeds(
        candidates: list[AIRecommendation], resolved: list[Optional[CatalogBook]]
    ) -> list[SeedBook]:
        seeds: list[SeedBook] = []
        seen: set[str] = set()
        for candidate, book in zip(candidates, resolved):
            if book is None:
                continue
            key = get_book_key(book)
            if not key or key in seen:
                continue
            seen.add(key)
            seeds.append(SeedBook(book=book, candidate=candidate))
        return seeds

    async def _expand_with_usage_analysis(
        self, primary: SeedBook, accumulator: BookAccumulator
    ) -> None:
        isbn13 = primary.book.isbn13
        books = await self._guarded(
            self.library_client.usage_analysis(isbn13, timeout=self.usage_timeout),
            self.usage_timeout,
            f"usageAnalysisList {isbn13}",
            default=[],
        )
        added = accumulator.extend(books)
        logger.info("AI-Search: usage analysis added %d books", added)

    async def _expand_with_recommend_lists(
        self, seeds: list[SeedBook], accumulator: BookAccumulator
    ) -> None:
        isbns = [seed.book.isbn13 for seed in seeds[:MAX_SEED_ISBNS]]
        mania, reader = await asyncio.gather(
            self._guarded(
                self.library_client.recommend_list(isbns, timeout=self.library_timeout),
                self.library_timeout,
                "recommandList mania",
                default=[],
            ),
            self._guarded(
                self.library_client.recommend_list(
                    isbns, rec_type=READER_LIST_TYPE, timeout=self.library_timeout
                ),
                self.library_timeout,
                "recommandList reader",
                default=[],
            ),
        )
        added = accumulator.extend(mania) + accumulator.extend(reader)
        logger.info("AI-Search: recommendation lists added %d books", added)

    async def _expand_last_resort(
        self,
        candidates: list[AIRecommendation],
        resolved: list[Optional[CatalogBook]],
        seeds: list[SeedBook],
        accumulator: BookAccumulator,
    ) -> None:
        logger.info("AI-Search: no recommendations yet, falling back to direct lookups")
        if self.include_seeds_in_fallback:
            for seed in seeds:
                accumulator.force_push(seed.book)

        room = MAX_RETURN_BOOKS - len(accumulator)
        unresolved = [c for c, book in zip(candidates, resolved) if book is None][:room]
        results = await asyncio.gather(
            *(
                self._guarded(
                    self.library_client.search_books(
                        title=clean_title(c.title) or c.title,
                        page_size=1,
                        timeout=self.library_timeout,
                    ),
                    self.library_timeout,
                    f"srchBooks title={c.title!r}",
                    default=[],
                )
                for c in unresolved
            )
        )
        for books in results:
            if books:
                accumulator.push(books[0])

    async def rank_by_availability(
        self, books: list[CatalogBook], regions: list[RegionCenter]
    ) -> list[RankedBook]:
        """Sum holdings across ``regions`` per book, most widely held first."""
        logger.info(
            "AI-Search: checking availability of %d books in %s",
            len(books), ", ".join(r.name for r in regions),
        )
        ranked = list(await asyncio.gather(*(self._count_holdings(b, regions) for b in books)))
        ranked.sort(key=lambda item: item.nearby_lib_count, reverse=True)
        return ranked

    async def _count_holdings(self, book: CatalogBook, regions: list[RegionCenter]) -> RankedBook:
        if not book.isbn13:
            return RankedBook(book=book, nearby_lib_count=0)
        per_region = await asyncio.gather(
            *(
                self._guarded(
                    self.library_client.libraries_by_book(
                        book.isbn13, region=region.code, timeout=self.availability_timeout
                    ),
                    self.availability_timeout,
                    f"libSrchByBook {book.isbn13}/{region.code}",
                    default=[],
                )
                for region in regions
            )
        )
        return RankedBook(book=book, nearby_lib_count=sum(len(libs) for libs in per_region))

    # -- helpers --------------------------------------------------------------

    @staticmethod
    async def _guarded(call: Awaitable[Any], timeout: float, label: str, default: Any) -> Any:
        """Await ``call`` within ``timeout``; any failure yields ``default``."""
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except Exception as exc:
            logger.warning("AI-Search: %s failed (%s); continuing without it", label, exc)
            return default
