"""Query tokenisation shared by search, ranking and location matching."""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional

__all__ = ["normalize_text", "split_words", "tokenize"]

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_text(text: Optional[str]) -> str:
    """Lowercase ``text`` and strip combining diacritical marks.

    ``"Café Crème"`` becomes ``"cafe creme"``. ``None`` is treated as an empty
    string.
    """

    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text).lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def split_words(text: Optional[str]) -> List[str]:
    """Normalise ``text`` and split it into alphanumeric words (no filtering)."""

    normalised = _NON_ALNUM.sub(" ", normalize_text(text))
    return normalised.split()


def tokenize(text: Optional[str]) -> List[str]:
    """Turn a free-text query into an ordered list of unique search tokens.

    Tokens shorter than two characters are dropped and duplicates keep the
    position of their first occurrence.
    """

    tokens: List[str] = []
    seen = set()
    for word in split_words(text):
        if len(word) <= 1 or word in seen:
            continue
        seen.add(word)
        tokens.append(word)
    return tokens
