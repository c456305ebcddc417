"""Shared validation functions for Pydantic schemas."""
import re

from core.config import get_settings

# Tag format: lowercase alphanumeric with hyphens (e.g., 'machine-learning', 'web-dev')
TAG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
MAX_TAG_LENGTH = 100

_TAG_SEPARATORS = re.compile(r"[\s_/.]+")
_TAG_DISALLOWED = re.compile(r"[^a-z0-9-]")
_TAG_REPEATED_HYPHENS = re.compile(r"-{2,}")


def validate_and_normalize_tag(tag: str) -> str:
    """
    Normalize and validate a single tag.

    Args:
        tag: The tag string to validate.

    Returns:
        The normalized tag (lowercase, trimmed).

    Raises:
        ValueError: If tag is empty or has invalid format.
    """
    normalized = tag.lower().strip()
    if not normalized:
        raise ValueError("Tag name cannot be empty")
    if len(normalized) > MAX_TAG_LENGTH or not TAG_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid tag format: '{normalized}'. "
            "Use lowercase letters, numbers, and hyphens only (e.g., 'machine-learning').",
        )
    return normalized


def coerce_tag(raw: str) -> str | None:
    """
    Best-effort conversion of free-form text into a valid tag.

    Used for tags produced by a language model, which may contain spaces,
    capitals, or punctuation ("Machine Learning" -> "machine-learning").
    Returns None when nothing usable remains.
    """
    text = _TAG_SEPARATORS.sub("-", raw.lower().strip())
    text = _TAG_DISALLOWED.sub("", text)
    text = _TAG_REPEATED_HYPHENS.sub("-", text).strip("-")
    if not text or len(text) > MAX_TAG_LENGTH:
        return None
    return text


def dedupe_tags(tags: list[str]) -> list[str]:
    """Remove duplicates while keeping first-seen order."""
    return list(dict.fromkeys(tags))


def validate_title(title: str) -> str:
    """Trim a title and check it is non-empty and within the length limit."""
    settings = get_settings()
    stripped = title.strip()
    if not stripped:
        raise ValueError("Title cannot be empty")
    if len(stripped) > settings.max_title_length:
        raise ValueError(
            f"Title exceeds maximum length of {settings.max_title_length:,} characters "
            f"(got {len(stripped):,} characters).",
        )
    return stripped
