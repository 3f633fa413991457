"""Model identifier normalization shared by pricing and the usage table."""
from __future__ import annotations

import re

_DATE_SUFFIX_PATTERN = re.compile(r"(?:-\d{8}|-\d{4}-\d{2}-\d{2})+$")


def canonical_model_name(raw_model: str | None) -> str:
    """Return a canonical model identifier with build/date suffixes removed.

    Example:
      claude-sonnet-4-5-20250929 -> claude-sonnet-4-5
    """
    raw = (raw_model or "").strip().lower()
    if not raw:
        return ""
    normalized = re.sub(r"[\s_]+", "-", raw)
    normalized = re.sub(r"-{2,}", "-", normalized).strip("-")
    stripped = _DATE_SUFFIX_PATTERN.sub("", normalized).strip("-")
    return stripped or normalized


def display_model_name(raw_model: str | None) -> str:
    """Short label for the usage table; falls back to the raw value."""
    return canonical_model_name(raw_model) or (raw_model or "").strip() or "unknown"
