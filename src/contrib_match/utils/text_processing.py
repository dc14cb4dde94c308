"""Text normalisation utilities for lexical matching."""

import re
import unicodedata
from typing import FrozenSet, Iterable

_WHITESPACE = re.compile(r'\s+')


def clean_text(text: str) -> str:
    """
    Normalise text for lexical comparison.

    Applies Unicode NFKC normalisation, case-folding and whitespace
    collapsing. Punctuation and symbols are kept: queries are literal text
    and characters such as ``%``, ``*`` or ``_`` must match themselves.

    Args:
        text: Raw text content

    Returns:
        Normalised text, empty for ``None`` or blank input
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFKC", text).casefold()
    return _WHITESPACE.sub(' ', text).strip()


def contains_phrase(haystack: str, needle: str) -> bool:
    """Verbatim containment of an already cleaned phrase."""
    return bool(needle) and needle in haystack


def normalize_terms(terms: Iterable[str]) -> FrozenSet[str]:
    """Clean a collection of tags or skills into a comparable set."""
    return frozenset(
        cleaned for cleaned in (clean_text(term) for term in terms or ()) if cleaned
    )
