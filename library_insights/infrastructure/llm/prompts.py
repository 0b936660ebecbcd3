"""Prompts for the two model calls this service makes.

Each template carries the generation settings it was tuned with, so every
chat-completions provider sends the same request for the same task.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PromptTemplate:
    """System prompt, user message template and sampling settings for one task.

    Usage::

        messages = BOOK_RECOMMEND_PROMPT.render(keyword="우주 여행")
    """

    name: str
    system: str
    user: str
    temperature: float = 0.0
    max_tokens: int = 512
    json_object: bool = False

    def render(self, **kwargs: Any) -> list[dict[str, str]]:
        """Chat-completions ``messages`` list."""
        return [
            {"role": "system", "content": self.system.format(**kwargs)},
            {"role": "user", "content": self.user.format(**kwargs)},
        ]

    def completion_options(self) -> dict[str, Any]:
        """Keyword arguments for ``chat.completions.create`` besides model and messages."""
        options: dict[str, Any] = {"temperature": self.temperature, "max_tokens": self.max_tokens}
        if self.json_object:
            options["response_format"] = {"type": "json_object"}
        return options


# =========================================================================
# Pre-defined prompts
# =========================================================================

BOOK_RECOMMEND_PROMPT = PromptTemplate(
    name="book_recommend",
    temperature=0,
    max_tokens=420,
    system=(
        "You are a Korean publishing curation expert.\n"
        "Return exactly 12 Korean-language recommended books for the user's keyword.\n"
        "Output must be strict JSON array only:\n"
        "[\n"
        '  {{ "title": "Book title", "author": "Author" }}\n'
        "]"
    ),
    user="{keyword}",
)

BOOK_INSIGHT_PROMPT = PromptTemplate(
    name="book_insight",
    temperature=0.7,
    max_tokens=1024,
    json_object=True,
    system=(
        "You are a global book-curation expert who follows publishing trends "
        "and what readers look for.  For the given book, answer in Korean with:\n"
        "1. a three-line summary\n"
        "2. the key message\n"
        "3. who should read it\n"
        "4. a difficulty assessment\n\n"
        "Respond ONLY with a JSON object in exactly this shape, no other text:\n"
        "{{\n"
        '  "summary": "...",\n'
        '  "keyMessage": "...",\n'
        '  "recommendFor": "...",\n'
        '  "difficulty": "..."\n'
        "}}"
    ),
    user="{book}",
)
