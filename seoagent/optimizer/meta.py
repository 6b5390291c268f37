"""AI-generated titles and descriptions for pages with meta issues."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Protocol, Sequence

from ..errors import MalformedResponseError
from ..issues import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH
from ..llm.structured import MetaSuggestion, parse_structured
from ..logging import get_logger
from ..models import PageInfo, PageMeta, RepositoryTarget
from ..prompting import PromptBuilder

_EXCERPT_CHARS = 2000
_MARKUP_RE = re.compile(r"<[^>]+>|\{[^{}]*\}")


class CompletionClient(Protocol):
    def complete(
        self,
        system: str,
        conversation: Sequence[Dict[str, Any]],
        *,
        tools: Any = None,
        temperature: Optional[float] = None,
    ) -> str:
        ...


class MetaWriter:
    """Asks the AI client for meta values and clamps them to search-result limits."""

    def __init__(self, client: CompletionClient, prompts: PromptBuilder | None = None) -> None:
        self._client = client
        self._prompts = prompts or PromptBuilder()
        self.logger = get_logger("optimizer.meta")

    def write(
        self,
        target: RepositoryTarget,
        page: PageInfo,
        content: str,
        *,
        title: bool,
        description: bool,
        shorten: bool = False,
        avoid_titles: Sequence[str] = (),
    ) -> PageMeta:
        """Return new values for the requested fields.

        Raises ``MalformedResponseError`` when the reply does not carry a
        usable value for every requested field.
        """
        fields = [name for name, wanted in (("title", title), ("description", description)) if wanted]
        system = self._prompts.render(
            "meta_system",
            site_name=target.site_name,
            tone=target.settings.tone,
            title_limit=TITLE_MAX_LENGTH,
            description_limit=DESCRIPTION_MAX_LENGTH,
            custom_instructions=target.settings.custom_instructions,
        )
        request = self._prompts.render(
            "meta_request",
            url=page.url,
            path=page.path,
            current_title=page.title,
            current_description=page.description,
            avoid_titles=list(avoid_titles),
            fields=fields,
            shorten=shorten,
            excerpt=_excerpt(content),
        )
        reply = self._client.complete(system, [{"role": "user", "content": request}], temperature=0.4)
        suggestion = parse_structured(reply, MetaSuggestion)

        meta = PageMeta()
        if title:
            if not suggestion.title:
                raise MalformedResponseError(f"No title returned for {page.url}")
            meta.title = clamp(suggestion.title, TITLE_MAX_LENGTH)
        if description:
            if not suggestion.description:
                raise MalformedResponseError(f"No description returned for {page.url}")
            meta.description = clamp(suggestion.description, DESCRIPTION_MAX_LENGTH)
        return meta


def clamp(value: str, limit: int) -> str:
    """Trim ``value`` to ``limit`` characters on a word boundary."""
    value = value.strip()
    if len(value) <= limit:
        return value
    cut = value[: limit - 1].rsplit(" ", 1)[0].rstrip(" ,;:-")
    return f"{cut}…"


def _excerpt(content: str) -> str:
    text = _MARKUP_RE.sub(" ", content)
    text = " ".join(text.split())
    return text[:_EXCERPT_CHARS]


__all__ = ["MetaWriter", "clamp"]
