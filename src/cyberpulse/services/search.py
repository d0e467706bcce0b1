"""Read-side queries over the article store: search, semantic search and statistics."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

from ..models import ArticleFilter, EnrichedArticle
from ..storage import ArticleStore
from .embeddings import EmbeddingGenerator
from .similarity import cosine_similarity, relevance_score

__all__ = [
    "ArticleStats",
    "ScoredArticle",
    "SearchPage",
    "article_stats",
    "latest_articles",
    "list_tags",
    "search_articles",
    "semantic_search",
]

SORT_PUBLISHED = "published"
SORT_RELEVANCE = "relevance"


@dataclass(frozen=True)
class ScoredArticle:
    article: EnrichedArticle
    relevance: int | None = None
    similarity: float | None = None


@dataclass
class SearchPage:
    articles: List[ScoredArticle]
    total: int
    page: int
    limit: int
    pages: int


@dataclass
class ArticleStats:
    total: int
    by_date: Dict[str, int] = field(default_factory=dict)
    by_tag: Dict[str, int] = field(default_factory=dict)
    by_sentiment: Dict[str, int] = field(default_factory=dict)


def _published_key(article: EnrichedArticle) -> datetime:
    return article.published_date or article.scraped_at


def search_articles(
    store: ArticleStore,
    query: str,
    *,
    category: str | None = None,
    min_credibility: int | None = None,
    high_confidence: bool = False,
    default_threshold: int = 70,
    page: int = 1,
    limit: int = 10,
    sort: str = SORT_PUBLISHED,
) -> SearchPage:
    """Full-text search over title, content and summary with pagination."""

    if not query or not query.strip():
        raise ValueError("Search query is required")
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")

    threshold = min_credibility
    if threshold is None and high_confidence:
        threshold = default_threshold

    needle = query.strip().lower()
    candidates = store.find_all(ArticleFilter(category=category, min_credibility=threshold))
    matches = [
        ScoredArticle(article=article, relevance=relevance_score(article, query))
        for article in candidates
        if needle in article.title.lower()
        or needle in article.content.lower()
        or needle in article.summary.lower()
    ]

    if sort == SORT_RELEVANCE:
        matches.sort(key=lambda item: item.relevance or 0, reverse=True)
    else:
        matches.sort(key=lambda item: _published_key(item.article), reverse=True)

    total = len(matches)
    start = (page - 1) * limit
    return SearchPage(
        articles=matches[start : start + limit],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
    )


def latest_articles(
    store: ArticleStore,
    *,
    limit: int = 10,
    category: str | None = None,
    min_credibility: int | None = None,
) -> List[EnrichedArticle]:
    articles = store.find_all(ArticleFilter(category=category, min_credibility=min_credibility))
    return articles[:limit]


def semantic_search(
    store: ArticleStore,
    embedder: EmbeddingGenerator,
    query: str,
    *,
    limit: int = 10,
    min_similarity: float = 0.0,
    category: str | None = None,
) -> List[ScoredArticle]:
    """Rank every embedded article by cosine similarity to ``query``."""

    if not query or not query.strip():
        raise ValueError("Search query is required")

    query_vector = embedder.embed_text(query.strip())
    if not query_vector:
        return []

    scored: List[ScoredArticle] = []
    for article in store.find_all(ArticleFilter(category=category)):
        if not article.embedding:
            continue
        similarity = cosine_similarity(query_vector, article.embedding)
        if similarity < min_similarity:
            continue
        scored.append(ScoredArticle(article=article, similarity=similarity))

    scored.sort(key=lambda item: item.similarity or 0.0, reverse=True)
    return scored[:limit]


def article_stats(store: ArticleStore, category: str | None = None) -> ArticleStats:
    articles = store.find_all(ArticleFilter(category=category))

    dates = Counter(
        article.published_date.strftime("%Y-%m-%d") for article in articles if article.published_date is not None
    )
    newest_dates = sorted(dates, reverse=True)[:30]

    tags = Counter(tag for article in articles for tag in article.tags if tag.strip())
    sentiments = Counter(article.sentiment.value for article in articles)

    return ArticleStats(
        total=len(articles),
        by_date={day: dates[day] for day in newest_dates},
        by_tag=dict(tags.most_common(20)),
        by_sentiment=dict(sentiments),
    )


def list_tags(store: ArticleStore) -> List[str]:
    return sorted({tag.strip() for article in store.find_all() for tag in article.tags if tag.strip()})
