from __future__ import annotations

from collections.abc import Iterable


def normalize_term(text: str | None) -> str:
    """Normalize a search term or stored word for comparison.

    Trims surrounding whitespace and lowercases. The same form is used as
    the storage lookup key and as the cache key.

    Args:
        text: Raw term, possibly None.

    Returns:
        str: Normalized term ("" when nothing usable was given).
    """
    if text is None:
        return ""
    return str(text).strip().lower()


def normalize_terms(values: Iterable[str | None] | None) -> list[str]:
    """Normalize a list of terms, dropping entries that end up blank."""
    if not values:
        return []
    normalized = (normalize_term(value) for value in values)
    return [value for value in normalized if value]
