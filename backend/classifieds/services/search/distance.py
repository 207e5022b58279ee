from __future__ import annotations

import math

from classifieds.services.search import FUZZY_RATIO


def levenshtein(a: str, b: str) -> int:
    """Unweighted edit distance (insert, delete, substitute) between two strings."""
    a = a or ""
    b = b or ""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        current = [i] + [0] * len(b)
        ca = a[i - 1]
        for j in range(1, len(b) + 1):
            if ca == b[j - 1]:
                current[j] = previous[j - 1]
            else:
                current[j] = 1 + min(previous[j], current[j - 1], previous[j - 1])
        previous = current
    return previous[len(b)]


def fuzzy_threshold(length: int) -> int:
    return int(math.ceil(FUZZY_RATIO * max(0, int(length))))
