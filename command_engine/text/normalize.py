"""Text normalization shared by every parser and matcher."""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SPACES = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: str) -> str:
    """
    Lowercase, accent-free, alphanumeric-only form of `text`.

    Every run of characters outside [a-z0-9] becomes a single space.
    Total and idempotent: normalize(normalize(x)) == normalize(x).
    """
    if not text:
        return ""
    folded = strip_accents(text).lower()
    return _NON_ALNUM.sub(" ", folded).strip()


def fold(text: str) -> str:
    """Accent-free lowercase text with punctuation kept (for dates and times)."""
    if not text:
        return ""
    return _SPACES.sub(" ", strip_accents(text).lower()).strip()


def tokens(text: str) -> list:
    normalized = normalize(text)
    return normalized.split(" ") if normalized else []
