"""Text helpers for braindump lines: splitting, normalization, tokens."""

import re

WHITESPACE_RE = re.compile(r"\s+")
TRAILING_PUNCTUATION_RE = re.compile(r"[\s.!?;:,]+$")
TOKEN_RE = re.compile(r"[a-z0-9]+")
CATEGORY_INVALID_CHARS_RE = re.compile(r"[^a-z0-9_-]")
REPEATED_DASH_RE = re.compile(r"-{2,}")


def parse_braindump(raw: object) -> list[str]:
    """Split raw braindump text into trimmed, non-empty lines.

    Args:
        raw: Raw text as submitted (anything that is not a string yields no lines)

    Returns:
        Lines in their original order
    """
    if not isinstance(raw, str):
        return []
    lines = (line.strip() for line in raw.splitlines())
    return [line for line in lines if line]


def normalize_task_line(line: str) -> str:
    """Canonical form of a task line used for comparison and storage.

    Lowercases, collapses whitespace runs, trims, and strips trailing
    punctuation runs (. ! ? ; : ,). Idempotent.
    """
    collapsed = WHITESPACE_RE.sub(" ", line.lower()).strip()
    return TRAILING_PUNCTUATION_RE.sub("", collapsed)


def tokenize(line: str) -> set[str]:
    """Lowercase alphanumeric runs of a line, punctuation acting as separators."""
    return set(TOKEN_RE.findall(line.lower()))


def word_count(line: str) -> int:
    return len(line.split())


def slugify_category(value: str) -> str:
    """Format a category label as a lowercase slug (e.g. "Deep Work" -> "deep-work")."""
    slug = WHITESPACE_RE.sub("-", value.strip().lower())
    slug = CATEGORY_INVALID_CHARS_RE.sub("", slug)
    slug = REPEATED_DASH_RE.sub("-", slug).strip("-")
    return slug or "uncategorized"


def truncate(text: str, max_length: int) -> str:
    """Truncate text to max_length characters, ending with an ellipsis if cut."""
    if len(text) > max_length:
        return text[: max_length - 1] + "…"
    return text
