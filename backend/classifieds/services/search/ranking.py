from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Sequence

from classifieds.services.search import NO_TEXT_PENALTY
from classifieds.services.search.distance import fuzzy_threshold, levenshtein
from classifieds.services.search.tokenizer import normalize_text, split_words


_SOURCE_FIELDS = ("title", "description", "tags", "category", "subcategory")


def _field(listing: Any, name: str):
    if isinstance(listing, Mapping):
        return listing.get(name)
    if name == "tags" and hasattr(listing, "tag_list"):
        return listing.tag_list()
    return getattr(listing, name, None)


def listing_source_text(listing: Any) -> str:
    parts: list[str] = []
    for name in _SOURCE_FIELDS:
        value = _field(listing, name)
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            value = " ".join(str(v) for v in value if v is not None)
        value = str(value).strip()
        if value:
            parts.append(value)
    return normalize_text(" ".join(parts))


def score_listing(listing: Any, tokens: Sequence[str]) -> int:
    """Sum of each token's best edit distance to a word of the listing text.

    Lower is better; 0 means every token appears as a word.
    """
    if not tokens:
        return 0
    words = split_words(listing_source_text(listing))
    total = 0
    for token in tokens:
        if not words:
            total += NO_TEXT_PENALTY
            continue
        best = None
        for word in words:
            distance = levenshtein(token, word)
            if best is None or distance < best:
                best = distance
                if best == 0:
                    break
        total += int(best)
    return total


def rank_listings(listings: Sequence[Any], tokens: Sequence[str]) -> list:
    if not tokens:
        return list(listings)
    scored = [(score_listing(listing, tokens), listing) for listing in listings]
    # sorted() is stable, so equal scores keep their incoming order.
    scored = sorted(scored, key=lambda item: item[0])
    return [listing for _score, listing in scored]


def is_good_match(listing: Any, tokens: Sequence[str]) -> bool:
    if not tokens:
        return True
    text = listing_source_text(listing)
    if not text:
        return False
    words = split_words(text)
    for token in tokens:
        if token in text:
            return True
        for word in words:
            if levenshtein(token, word) <= fuzzy_threshold(max(len(word), len(token))):
                return True
    return False
