"""Normalization of library open-data response envelopes.

Every endpoint wraps its payload as ``{"response": {...}}`` but the inner
shape varies: search results live under ``docs``, recommendation lists under
``list``, usage analysis under three named lists, holdings under ``libs``,
monthly keywords under ``keywords``.  Items are either bare records or
wrapped as ``{"book": ...}`` / ``{"doc": ...}`` / ``{"lib": ...}`` /
``{"keyword": ...}``.  Callers only ever see uniform lists.
"""

from typing import Any, Iterable, Optional

from library_insights.domain.entities import CatalogBook, LibraryHolding

USAGE_LIST_KEYS = ("maniaRecBooks", "readerRecBooks", "coLoanBooks")


def response_body(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        return {}
    body = payload.get("response")
    return body if isinstance(body, dict) else {}


def envelope_error(payload: Any) -> Optional[str]:
    """Return the upstream error message embedded in a 200 response, if any."""
    error = response_body(payload).get("error")
    if error:
        return str(error)
    return None


def unwrap_item(item: Any, wrappers: Iterable[str] = ("book", "doc")) -> Optional[dict[str, Any]]:
    if not isinstance(item, dict):
        return None
    for wrapper in wrappers:
        inner = item.get(wrapper)
        if isinstance(inner, dict):
            return inner
    return item or None


def _items(body: dict[str, Any], key: str) -> list[Any]:
    value = body.get(key)
    return value if isinstance(value, list) else []


def _books(items: Iterable[Any]) -> list[CatalogBook]:
    books = []
    for item in items:
        record = unwrap_item(item)
        if record:
            books.append(CatalogBook.from_raw(record))
    return books


def extract_books(payload: Any) -> list[CatalogBook]:
    """Books from a search (``docs``) or recommendation (``list``) envelope."""
    body = response_body(payload)
    for key in ("docs", "list"):
        items = _items(body, key)
        if items:
            return _books(items)
    return []


def extract_usage_books(payload: Any) -> list[CatalogBook]:
    """Mania, reader and co-loan books from a usage-analysis envelope, in that order."""
    body = response_body(payload)
    books: list[CatalogBook] = []
    for key in USAGE_LIST_KEYS:
        books.extend(_books(_items(body, key)))
    return books


def extract_libraries(payload: Any) -> list[LibraryHolding]:
    body = response_body(payload)
    libraries = []
    for item in _items(body, "libs"):
        record = unwrap_item(item, wrappers=("lib",))
        if record:
            libraries.append(LibraryHolding.from_raw(record))
    return libraries


def extract_keywords(payload: Any) -> list[str]:
    """Keyword words from a ``monthlyKeywords`` envelope, in upstream order."""
    words = []
    for item in _items(response_body(payload), "keywords"):
        record = unwrap_item(item, wrappers=("keyword",))
        word = str((record or {}).get("word") or "").strip()
        if word:
            words.append(word)
    return words


def extract_exist_result(payload: Any) -> dict[str, Any]:
    result = response_body(payload).get("result")
    return result if isinstance(result, dict) else {}
