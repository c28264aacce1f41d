"""Name normalization for player search."""

import re
import unicodedata
from typing import List

# Hyphens and apostrophes (straight and curly) separate name parts
_SEPARATORS = re.compile(r"[-'’]")
_WHITESPACE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    """
    Decompose and drop combining marks.

    Examples:
        "Šeško" -> "Sesko"
        "Ødegaard" -> "Ødegaard" (Ø has no decomposition)
        "Mbappé" -> "Mbappe"
    """
    text = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in text if not unicodedata.combining(ch))


def normalize(text: str) -> str:
    """
    Normalize text for name matching.

    Steps:
    1. Lowercase
    2. Unicode-decompose and strip diacritics
    3. Hyphens and apostrophes become spaces
    4. Collapse whitespace and trim
    """
    if not text:
        return ""
    text = strip_diacritics(text.lower())
    text = _SEPARATORS.sub(" ", text)
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


def tokenize(text: str) -> List[str]:
    """Whitespace tokens of the normalized text."""
    normalized = normalize(text)
    return normalized.split(" ") if normalized else []
