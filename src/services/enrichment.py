"""
AI enrichment of new bookmarks: a short summary and up to five tags.

The primary path asks an OpenAI chat model for a strict-JSON answer. Any
failure along that path (no API key, transport error, empty response,
malformed JSON, contract violation) falls back to a deterministic keyword
tagger, so callers always receive a usable summary and tag list.
"""
import logging
import re
from dataclasses import dataclass
from typing import Literal

from openai import AsyncOpenAI
from pydantic import BaseModel, field_validator

from schemas.validators import coerce_tag, dedupe_tags

logger = logging.getLogger(__name__)

MAX_TAGS = 5
DEFAULT_TAG = "general"

PROMPT_TEMPLATE = """\
Summarize the following webpage in 2-3 short sentences.
Then generate 3-5 relevant tags: short, lowercase, one or two words each.

Return JSON only, in exactly this shape:
{{"summary": "text", "tags": ["tag1", "tag2"]}}

Title: {title}
URL: {url}
"""

# Ordered: the first five matching tags are kept
KEYWORD_TAGS: tuple[tuple[str, re.Pattern[str]], ...] = (
    # Technology
    ("development", re.compile(r"github|code|programming|dev")),
    ("frontend", re.compile(r"react|vue|angular|next")),
    ("backend", re.compile(r"node|python|java|go")),
    ("ai", re.compile(r"ai|ml|machine learning|neural")),
    ("design", re.compile(r"design|figma|ux|ui")),
    # Content type
    ("article", re.compile(r"article|blog|post")),
    ("video", re.compile(r"video|youtube|watch")),
    ("documentation", re.compile(r"doc|documentation|guide")),
    ("tutorial", re.compile(r"tutorial|learn|course")),
)

DOMAIN_TAGS: tuple[tuple[str, str], ...] = (
    ("youtube", "youtube.com"),
    ("github", "github.com"),
    ("stackoverflow", "stackoverflow.com"),
    ("medium", "medium.com"),
    ("devto", "dev.to"),
)


@dataclass(frozen=True)
class EnrichmentResult:
    """Summary and tags for a bookmark, and which path produced them."""

    summary: str
    tags: list[str]
    source: Literal["ai", "fallback"]


class _AIResponse(BaseModel):
    """The JSON contract the model is asked to return."""

    summary: str
    tags: list[str] = []

    @field_validator("summary")
    @classmethod
    def summary_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("summary is empty")
        return stripped


def fallback_summary(title: str) -> str:
    """Canned summary sentence used when the model is unavailable."""
    return f'This bookmark is a useful reference about "{title}".'


def fallback_tags(url: str, title: str) -> list[str]:
    """
    Derive tags from keyword and domain patterns in the URL and title.

    Deterministic for identical input. Returns ["general"] when nothing
    matches, and never more than MAX_TAGS tags.
    """
    text = f"{url} {title}".lower()
    tags = [tag for tag, pattern in KEYWORD_TAGS if pattern.search(text)]
    tags.extend(tag for tag, domain in DOMAIN_TAGS if domain in url.lower())
    tags = dedupe_tags(tags)
    if not tags:
        tags = [DEFAULT_TAG]
    return tags[:MAX_TAGS]


def fallback_enrichment(url: str, title: str) -> EnrichmentResult:
    """Rule-based enrichment; never fails."""
    return EnrichmentResult(
        summary=fallback_summary(title),
        tags=fallback_tags(url, title),
        source="fallback",
    )


def normalize_ai_tags(raw_tags: list[str]) -> list[str]:
    """Coerce model tags into the stored tag format, dropping unusable ones."""
    coerced = (coerce_tag(tag) for tag in raw_tags)
    return dedupe_tags([tag for tag in coerced if tag])[:MAX_TAGS]


class BookmarkEnricher:
    """
    Generates a summary and tags for a bookmark.

    Pass client=None to always use the keyword fallback (e.g. when no API key
    is configured).
    """

    def __init__(
        self,
        client: AsyncOpenAI | None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    @property
    def ai_enabled(self) -> bool:
        return self._client is not None

    async def enrich(self, url: str, title: str) -> EnrichmentResult:
        """Return a summary and tags. Never raises."""
        if self._client is None:
            logger.debug("OpenAI not configured, using keyword fallback for %s", url)
            return fallback_enrichment(url, title)

        try:
            return await self._enrich_with_ai(url, title)
        except Exception:  # noqa: BLE001
            logger.warning(
                "AI enrichment failed for %s, using keyword fallback", url, exc_info=True,
            )
            return fallback_enrichment(url, title)

    async def _enrich_with_ai(self, url: str, title: str) -> EnrichmentResult:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": PROMPT_TEMPLATE.format(title=title, url=url)}],
            temperature=self._temperature,
            response_format={"type": "json_object"},
        )
        if not response.choices:
            raise ValueError("OpenAI response has no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ValueError("Empty OpenAI response")

        parsed = _AIResponse.model_validate_json(content)
        tags = normalize_ai_tags(parsed.tags)
        if not tags:
            tags = fallback_tags(url, title)
        return EnrichmentResult(summary=parsed.summary, tags=tags, source="ai")
