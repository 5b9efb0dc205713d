# event_approval/services/similarity.py

import re


def normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").lower().strip())


def text_similarity(first: str, second: str) -> float:
    """
    Rough 0..1 similarity between two short texts: 1.0 when equal after
    normalization, 0.85 when one contains the other, else Jaccard overlap
    of their word sets. Blank text is similar to nothing.
    """
    a = normalize_text(first)
    b = normalize_text(second)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.85
    words_a = set(a.split(" "))
    words_b = set(b.split(" "))
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def are_similar(first: str, second: str, threshold: float = 0.7) -> bool:
    return text_similarity(first, second) >= threshold
