"""Matching and identity helpers for AI candidates and catalog records."""

import re
from collections.abc import Mapping
from typing import Any, Iterable

from library_insights.domain.entities import AIRecommendation, CatalogBook

_PARENTHETICAL_RE = re.compile(r"\s*\(.*?\)\s*")
_SUBTITLE_RE = re.compile(r"\s*:.*$")
_ISBN_JUNK_RE = re.compile(r"[^0-9Xx]")
_WHITESPACE_RE = re.compile(r"\s+")
_AUTHOR_SPLIT_RE = re.compile(r"[\s,]+")


def clean_title(title: str) -> str:
    """Drop parenthetical notes and a trailing ``: subtitle`` from a title.

    >>> clean_title("지구 끝의 온실 (개정판)")
    '지구 끝의 온실'
    >>> clean_title("제목: 부제")
    '제목'
    """
    cleaned = _PARENTHETICAL_RE.sub("", title or "").strip()
    cleaned = _SUBTITLE_RE.sub("", cleaned).strip()
    return _WHITESPACE_RE.sub(" ", cleaned)


def normalize_isbn(value: Any) -> str:
    if not value:
        return ""
    return _ISBN_JUNK_RE.sub("", str(value)).upper()


def normalize_text(value: Any) -> str:
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip().lower()


def author_matches(ai_author: str, catalog_authors: str) -> bool:
    """Loose author check: any 2+ character token of ``ai_author`` appears in ``catalog_authors``.

    Catalog author fields pack several people and roles into one string
    (``"김영하 지음 ; 홍길동 옮김"``), so containment beats equality.
    """
    haystack = normalize_text(catalog_authors)
    if not haystack:
        return False
    tokens = [t for t in _AUTHOR_SPLIT_RE.split(normalize_text(ai_author)) if len(t) >= 2]
    return any(token in haystack for token in tokens)


def get_book_key(book: Any) -> str:
    """Dedup identity: ``isbn:<isbn>`` or ``meta:<title>|<author>``; ``""`` when unkeyable."""
    if isinstance(book, CatalogBook):
        book = book.raw or book.to_dict()
    if not isinstance(book, Mapping):
        return ""
    isbn = normalize_isbn(book.get("isbn13") or book.get("isbn"))
    if isbn:
        return f"isbn:{isbn}"
    title = normalize_text(book.get("bookname") or book.get("bookName") or book.get("title"))
    if not title:
        return ""
    author = normalize_text(book.get("authors") or book.get("author"))
    return f"meta:{title}|{author}"


def dedupe_candidates(
    candidates: Iterable[AIRecommendation], limit: int
) -> list[AIRecommendation]:
    """Keep the first occurrence of each normalized ``title|author`` pair, up to ``limit``."""
    seen: set[str] = set()
    unique = []
    for candidate in candidates:
        key = f"{normalize_text(candidate.title)}|{normalize_text(candidate.author)}"
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
        if len(unique) >= limit:
            break
    return unique


class BookAccumulator:
    """Ordered, BookKey-deduplicated list of recommendation candidates.

    Keys passed to :meth:`exclude` are never accepted; seed books are
    excluded this way so they cannot come back as their own recommendations.
    """

    def __init__(self):
        self.books: list[CatalogBook] = []
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self.books)

    def exclude(self, book: CatalogBook) -> None:
        key = get_book_key(book)
        if key:
            self._seen.add(key)

    def push(self, book: CatalogBook) -> bool:
        key = get_book_key(book)
        if not key or key in self._seen:
            return False
        self._seen.add(key)
        self.books.append(book)
        return True

    def extend(self, books: Iterable[CatalogBook]) -> int:
        return sum(1 for book in books if self.push(book))

    def force_push(self, book: CatalogBook) -> bool:
        """Append even an excluded book, still refusing exact duplicates in the list."""
        key = get_book_key(book)
        if not key or any(get_book_key(existing) == key for existing in self.books):
            return False
        self._seen.add(key)
        self.books.append(book)
        return True
