"""Small text helpers shared by extraction, matching and formatting."""
from typing import Optional


def normalize_text(value: Optional[str]) -> str:
    """Lowercase and trim a value for equality comparisons (None becomes '')."""
    return (value or "").strip().lower()


def truncate(value: Optional[str], limit: int, suffix: str = "...") -> str:
    """Cut ``value`` to ``limit`` characters, appending ``suffix`` when anything was cut."""
    value = value or ""
    if len(value) <= limit:
        return value
    return value[:limit] + suffix


def contains_ci(haystack: Optional[str], needle: Optional[str]) -> bool:
    """Case-insensitive substring test (empty needles never match)."""
    if not haystack or not needle:
        return False
    return needle.lower() in haystack.lower()


def humanize_predicate(predicate: str) -> str:
    """``works_at`` -> ``works at``."""
    return predicate.replace("_", " ")
