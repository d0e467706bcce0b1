"""Persistence interfaces for articles and subscribers."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Protocol, Set

from ..models import ArticleFilter, EnrichedArticle, Subscriber


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


class SubscriberExistsError(ValueError):
    """Raised when a subscriber with the same email is already registered."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Subscriber already exists: {email}")
        self.email = email


class ArticleStore(Protocol):
    def find_by_urls(self, urls: Iterable[str]) -> Set[str]:
        """Return the subset of ``urls`` that are already persisted."""

    def exists_by_url(self, url: str) -> bool:
        ...

    def insert_if_absent(self, article: EnrichedArticle) -> InsertOutcome:
        """Persist ``article`` unless its url is already stored."""

    def find_all(self, filter: ArticleFilter | None = None) -> List[EnrichedArticle]:
        """Return matching articles, newest published first."""

    def update_embedding(self, url: str, embedding: List[float]) -> bool:
        ...


class SubscriberStore(Protocol):
    def add(self, subscriber: Subscriber) -> Subscriber:
        ...

    def get(self, email: str) -> Subscriber | None:
        ...

    def find_all(self) -> List[Subscriber]:
        ...


def sort_newest_first(articles: List[EnrichedArticle]) -> List[EnrichedArticle]:
    """Order articles by published date (then scrape time), newest first; undated last."""

    dated = [article for article in articles if article.published_date is not None]
    undated = [article for article in articles if article.published_date is None]
    dated.sort(key=lambda article: (article.published_date, article.scraped_at), reverse=True)
    undated.sort(key=lambda article: article.scraped_at, reverse=True)
    return dated + undated


__all__ = [
    "ArticleStore",
    "InsertOutcome",
    "SubscriberExistsError",
    "SubscriberStore",
    "sort_newest_first",
]
