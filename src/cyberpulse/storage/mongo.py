"""MongoDB-backed stores."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Set

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..models import ArticleFilter, EnrichedArticle, Subscriber
from . import InsertOutcome, SubscriberExistsError

logger = logging.getLogger(__name__)

__all__ = ["MongoArticleStore", "MongoSubscriberStore", "connect"]

ARTICLES_COLLECTION = "articles"
SUBSCRIBERS_COLLECTION = "subscribers"


def connect(uri: str, database: str) -> Database:
    """Open a client for ``uri`` and return the named database."""

    client: MongoClient = MongoClient(uri, tz_aware=True)
    logger.info("Connected to MongoDB database %s", database)
    return client[database]


def _strip_id(document: Dict[str, Any]) -> Dict[str, Any]:
    document = dict(document)
    document.pop("_id", None)
    return document


class MongoArticleStore:
    """Article store with a unique index on ``url``."""

    def __init__(self, database: Database) -> None:
        self._collection = database[ARTICLES_COLLECTION]
        self._collection.create_index([("url", ASCENDING)], unique=True)
        self._collection.create_index([("published_date", DESCENDING)])

    def find_by_urls(self, urls: Iterable[str]) -> Set[str]:
        urls = list(urls)
        if not urls:
            return set()
        cursor = self._collection.find({"url": {"$in": urls}}, {"url": 1, "_id": 0})
        return {document["url"] for document in cursor}

    def exists_by_url(self, url: str) -> bool:
        return self._collection.count_documents({"url": url}, limit=1) > 0

    def insert_if_absent(self, article: EnrichedArticle) -> InsertOutcome:
        document = article.model_dump()
        document["sentiment"] = article.sentiment.value
        try:
            self._collection.insert_one(document)
        except DuplicateKeyError:
            return InsertOutcome.ALREADY_EXISTS
        return InsertOutcome.INSERTED

    def find_all(self, filter: ArticleFilter | None = None) -> List[EnrichedArticle]:
        query = filter.to_mongo() if filter is not None else {}
        cursor = self._collection.find(query).sort(
            [("published_date", DESCENDING), ("scraped_at", DESCENDING)]
        )
        return [EnrichedArticle.model_validate(_strip_id(document)) for document in cursor]

    def update_embedding(self, url: str, embedding: List[float]) -> bool:
        result = self._collection.update_one(
            {"url": url}, {"$set": {"embedding": [float(value) for value in embedding]}}
        )
        return result.matched_count > 0


class MongoSubscriberStore:
    def __init__(self, database: Database) -> None:
        self._collection = database[SUBSCRIBERS_COLLECTION]
        self._collection.create_index([("email", ASCENDING)], unique=True)

    def add(self, subscriber: Subscriber) -> Subscriber:
        try:
            self._collection.insert_one(subscriber.model_dump())
        except DuplicateKeyError as exc:
            raise SubscriberExistsError(subscriber.email) from exc
        logger.info("Registered subscriber %s", subscriber.email)
        return subscriber

    def get(self, email: str) -> Subscriber | None:
        document = self._collection.find_one({"email": email.strip().lower()})
        if document is None:
            return None
        return Subscriber.model_validate(_strip_id(document))

    def find_all(self) -> List[Subscriber]:
        cursor = self._collection.find({}).sort("created_at", ASCENDING)
        return [Subscriber.model_validate(_strip_id(document)) for document in cursor]
