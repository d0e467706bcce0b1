"""Pure text and vector similarity helpers."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from ..models import EnrichedArticle, RawArticle

__all__ = [
    "average_relevance",
    "cosine_similarity",
    "relevance_band",
    "relevance_score",
]

TAG_EXACT_POINTS = 30
TAG_CONTAINS_POINTS = 20
TAG_REVERSE_POINTS = 10
TAG_CAP = 50
TITLE_POINTS = 40
SUMMARY_POINTS = 30
CONTENT_OCCURRENCE_POINTS = 5
CONTENT_CAP = 20


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Return the cosine of the angle between ``a`` and ``b``.

    Absent vectors, vectors of different length and zero-magnitude vectors all
    yield ``0.0``.
    """

    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def _tag_points(tags: Iterable[str], interest: str) -> int:
    points = 0
    for raw_tag in tags:
        tag = raw_tag.strip().lower()
        if not tag:
            continue
        if tag == interest:
            points += TAG_EXACT_POINTS
        elif interest in tag:
            points += TAG_CONTAINS_POINTS
        elif tag in interest and len(tag) > 2:
            points += TAG_REVERSE_POINTS
    return min(points, TAG_CAP)


def relevance_score(article: RawArticle, interest: str | None) -> int | None:
    """Score how strongly ``article`` relates to ``interest`` on a 0-100 scale.

    A blank interest is not applicable and returns ``None``, which callers must
    keep distinct from a computed score of zero.
    """

    if interest is None or not interest.strip():
        return None

    needle = interest.strip().lower()
    title = (article.title or "").lower()
    summary = (getattr(article, "summary", "") or "").lower()
    content = (article.content or "").lower()

    score = _tag_points(article.tags, needle)
    if needle in title:
        score += TITLE_POINTS
    if needle in summary:
        score += SUMMARY_POINTS
    score += min(content.count(needle) * CONTENT_OCCURRENCE_POINTS, CONTENT_CAP)

    return max(0, min(score, 100))


def average_relevance(scores: Iterable[int | None]) -> int | None:
    """Rounded mean of the given relevance scores; ``None`` entries are ignored."""

    present = [score for score in scores if score is not None]
    if not present:
        return None
    return round(sum(present) / len(present))


def relevance_band(score: int | None) -> str:
    if score is None:
        return "n/a"
    if score >= 80:
        return "high"
    if score >= 60:
        return "medium-high"
    if score >= 40:
        return "medium"
    if score >= 20:
        return "low-medium"
    return "low"
