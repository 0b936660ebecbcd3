"""LLM service implementations.

The OpenAI provider sends the :class:`PromptTemplate` objects from
``library_insights.infrastructure.llm.prompts``; the proxy provider lets the
proxy hold the prompts.  Book candidates are not optional: failures surface
as ``AIServiceError`` so the caller can abort instead of silently degrading.
"""

import hashlib
import json
import logging
import re
from typing import Any, Optional

import httpx
import openai

from library_insights.domain.entities import AIRecommendation
from library_insights.domain.exceptions import (
    AIResponseFormatError,
    AIServiceError,
    AITimeoutError,
    LibraryProxyError,
)
from library_insights.domain.repositories import ILLMService
from library_insights.infrastructure.library.client import LibraryProxyClient
from library_insights.infrastructure.llm.prompts import (
    BOOK_INSIGHT_PROMPT,
    BOOK_RECOMMEND_PROMPT,
    PromptTemplate,
)

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------
def _loads(text: str) -> Any:
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)
    try:
        return json.loads(text)
    except ValueError as exc:
        raise AIResponseFormatError(f"AI output is not JSON: {text[:200]!r}") from exc


def parse_recommendations(raw: Any) -> list[AIRecommendation]:
    """Parse model output into candidates.

    Accepts a list, or a JSON string encoding one (possibly wrapped in a
    markdown fence, possibly a JSON string of a JSON string).  Items without
    a title are skipped; anything that is not an array is rejected.
    """
    data = raw
    for _ in range(2):
        if not isinstance(data, str):
            break
        data = _loads(data)
    if isinstance(data, dict) and "books" in data:
        return parse_recommendations(data["books"])
    if not isinstance(data, list):
        raise AIResponseFormatError(f"AI output is not an array: {type(data).__name__}")

    recommendations = []
    for item in data:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        author = str(item.get("author") or "").strip()
        recommendations.append(AIRecommendation(title=title, author=author))
    return recommendations


def parse_insight(raw: Any) -> dict[str, Any]:
    """Parse an insight object; unusable output is returned as ``{"raw": ...}``."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            data = _loads(raw)
        except AIResponseFormatError:
            return {"raw": raw}
        if isinstance(data, dict):
            return data
    return {"raw": raw}


def _book_label(title: str, author: str) -> str:
    return f"{title} ({author})" if author else title


# ---------------------------------------------------------------------------
# Mock (development / testing)
# ---------------------------------------------------------------------------
class MockLLMService(ILLMService):
    """Deterministic results for tests and offline development."""

    CATALOG = (
        ("채식주의자", "한강"),
        ("소년이 온다", "한강"),
        ("82년생 김지영", "조남주"),
        ("아몬드", "손원평"),
        ("불편한 편의점", "김호연"),
        ("달러구트 꿈 백화점", "이미예"),
        ("지구 끝의 온실", "김초엽"),
        ("우리가 빛의 속도로 갈 수 없다면", "김초엽"),
        ("살인자의 기억법", "김영하"),
        ("7년의 밤", "정유정"),
        ("종의 기원", "정유정"),
        ("파친코", "이민진"),
    )

    async def recommend_books(self, keyword: str) -> list[AIRecommendation]:
        """Rotate a fixed list by a hash of the keyword."""
        offset = int(hashlib.md5(keyword.encode()).hexdigest(), 16) % len(self.CATALOG)
        rotated = self.CATALOG[offset:] + self.CATALOG[:offset]
        return [AIRecommendation(title=title, author=author) for title, author in rotated]

    async def generate_insight(self, title: str, author: str = "") -> dict[str, Any]:
        return {
            "summary": f"{title}: summary unavailable in offline mode.",
            "keyMessage": "",
            "recommendFor": "",
            "difficulty": "",
        }


# ---------------------------------------------------------------------------
# OpenAI (remote API)
# ---------------------------------------------------------------------------
class OpenAILLMService(ILLMService):
    """OpenAI chat-completions provider.

    Requires ``LLM_API_KEY`` in env.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def _chat(self, prompt: PromptTemplate, **kwargs: Any) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=prompt.render(**kwargs),  # type: ignore[arg-type]
                **prompt.completion_options(),
            )
        except openai.APITimeoutError as exc:
            raise AITimeoutError(str(exc)) from exc
        except openai.OpenAIError as exc:
            raise AIServiceError(f"OpenAI {prompt.name} call failed: {exc}") from exc
        return response.choices[0].message.content or ""

    async def recommend_books(self, keyword: str) -> list[AIRecommendation]:
        logger.info("OpenAI: requesting recommendations (model=%s)", self.model)
        content = await self._chat(BOOK_RECOMMEND_PROMPT, keyword=keyword)
        return parse_recommendations(content)

    async def generate_insight(self, title: str, author: str = "") -> dict[str, Any]:
        logger.info("OpenAI: requesting insight for %r (model=%s)", title, self.model)
        content = await self._chat(BOOK_INSIGHT_PROMPT, book=_book_label(title, author))
        return parse_insight(content)


# ---------------------------------------------------------------------------
# Library proxy (server-side OpenAI)
# ---------------------------------------------------------------------------
class ProxyLLMService(ILLMService):
    """Delegates to the proxy's ``/v1/ai-recommend`` and ``/v1/ai-insight``.

    The proxy sometimes returns ``books`` as a JSON string rather than an
    array; :func:`parse_recommendations` handles both.
    """

    def __init__(self, proxy: LibraryProxyClient, timeout: float = 8.0):
        self.proxy = proxy
        self.timeout = timeout

    async def _fetch(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self.proxy.fetch(endpoint, params, self.timeout)
        except LibraryProxyError as exc:
            if isinstance(exc.__cause__, httpx.TimeoutException):
                raise AITimeoutError(str(exc)) from exc
            raise AIServiceError(str(exc)) from exc

    async def recommend_books(self, keyword: str) -> list[AIRecommendation]:
        logger.info("ProxyLLM: requesting recommendations from %s", self.proxy.base_url)
        data = await self._fetch("ai-recommend", {"keyword": keyword})
        return parse_recommendations(data.get("books") if isinstance(data, dict) else data)

    async def generate_insight(self, title: str, author: str = "") -> dict[str, Any]:
        logger.info("ProxyLLM: requesting insight for %r", title)
        data = await self._fetch("ai-insight", {"title": title, "author": author})
        return parse_insight(data.get("insight") if isinstance(data, dict) else data)
