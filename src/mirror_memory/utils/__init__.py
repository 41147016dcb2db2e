"""Shared utilities for MIRROR memory services."""

from .id_generation import generate_id
from .datetime import utc_now, ensure_utc, parse_datetime_utc, to_iso, age_in_days
from .vector_math import cosine_similarity, rescale_similarity
from .text import normalize_text, truncate, contains_ci, humanize_predicate

__all__ = [
    "generate_id",
    "utc_now",
    "ensure_utc",
    "parse_datetime_utc",
    "to_iso",
    "age_in_days",
    "cosine_similarity",
    "rescale_similarity",
    "normalize_text",
    "truncate",
    "contains_ci",
    "humanize_predicate",
]
