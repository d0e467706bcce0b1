"""Domain models used across the pipeline."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

__all__ = [
    "ArticleFilter",
    "EnrichedArticle",
    "EnrichmentPatch",
    "RawArticle",
    "Sentiment",
    "Subscriber",
]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def dedupe_tags(tags: List[str]) -> List[str]:
    """Return non-blank tags with case-insensitive duplicates removed, first spelling wins."""

    seen: set[str] = set()
    result: List[str] = []
    for tag in tags:
        cleaned = str(tag).strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        result.append(cleaned)
    return result


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"

    @classmethod
    def coerce(cls, value: Any) -> "Sentiment":
        """Clamp arbitrary input to the enum; anything unrecognised is neutral."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.NEUTRAL
        return cls.NEUTRAL


class RawArticle(BaseModel):
    """An article as extracted from the source, before enrichment."""

    url: str
    title: str
    author: str = ""
    published_date: datetime | None = None
    content: str
    tags: List[str] = Field(default_factory=list)

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url must not be blank")
        return value

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: List[str]) -> List[str]:
        return dedupe_tags(value)

    @field_validator("published_date")
    @classmethod
    def _aware_date(cls, value: datetime | None) -> datetime | None:
        return _as_aware(value)


class EnrichmentPatch(BaseModel):
    """Metadata produced by the enricher for one article."""

    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    credibility_score: int | None = Field(default=None, ge=0, le=100)
    embedding: List[float] | None = None
    degraded: bool = False


class EnrichedArticle(RawArticle):
    """A persisted article with AI-derived metadata."""

    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    credibility_score: int | None = Field(default=None, ge=0, le=100)
    embedding: List[float] | None = None
    source: str = ""
    scraped_at: datetime = Field(default_factory=_utcnow)
    processed_at: datetime | None = None

    @field_validator("sentiment", mode="before")
    @classmethod
    def _clamp_sentiment(cls, value: Any) -> Sentiment:
        return Sentiment.coerce(value)

    @field_validator("scraped_at", "processed_at")
    @classmethod
    def _aware_timestamps(cls, value: datetime | None) -> datetime | None:
        return _as_aware(value)

    @model_validator(mode="after")
    def _default_source(self) -> "EnrichedArticle":
        if not self.source:
            host = urlparse(self.url).hostname or ""
            self.source = host.removeprefix("www.")
        return self

    @classmethod
    def from_raw(
        cls,
        raw: RawArticle,
        patch: EnrichmentPatch,
        *,
        scraped_at: datetime | None = None,
        processed_at: datetime | None = None,
    ) -> "EnrichedArticle":
        """Merge a raw article with its enrichment patch."""

        data = raw.model_dump()
        data.update(
            summary=patch.summary,
            key_points=list(patch.key_points),
            tags=list(patch.tags) if patch.tags else list(raw.tags),
            sentiment=patch.sentiment,
            credibility_score=patch.credibility_score,
            embedding=patch.embedding,
            processed_at=processed_at or _utcnow(),
        )
        if scraped_at is not None:
            data["scraped_at"] = scraped_at
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        """Serialise into a JSON-compatible document for storage."""

        return self.model_dump(mode="json")


class Subscriber(BaseModel):
    """A notification recipient with an interest profile."""

    email: str
    category: str | None = None
    semantic_query: str | None = None
    min_credibility: int | None = Field(default=None, ge=0, le=100)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_RE.match(value):
            raise ValueError("Please provide a valid email address")
        return value

    @field_validator("category", "semantic_query")
    @classmethod
    def _strip_interest(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def _require_interest(self) -> "Subscriber":
        if not self.category and not self.semantic_query:
            raise ValueError("Either category or semantic query must be provided")
        return self

    @property
    def interests(self) -> List[str]:
        """Non-blank interest strings, category first."""

        return [value for value in (self.category, self.semantic_query) if value]


class ArticleFilter(BaseModel):
    """Filter accepted by :meth:`ArticleStore.find_all`."""

    category: str | None = None
    tag: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_credibility: int | None = Field(default=None, ge=0, le=100)
    missing_embedding: bool = False

    @field_validator("category", "tag")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("start_date", "end_date")
    @classmethod
    def _aware_bounds(cls, value: datetime | None) -> datetime | None:
        return _as_aware(value)

    def matches(self, article: EnrichedArticle) -> bool:
        if self.category:
            needle = self.category.lower()
            if needle not in article.title.lower() and needle not in article.content.lower():
                return False
        if self.tag and self.tag not in article.tags:
            return False
        if self.start_date or self.end_date:
            published = article.published_date
            if published is None:
                return False
            if self.start_date and published < self.start_date:
                return False
            if self.end_date and published > self.end_date:
                return False
        if self.min_credibility is not None:
            if article.credibility_score is None or article.credibility_score < self.min_credibility:
                return False
        if self.missing_embedding and article.embedding:
            return False
        return True

    def to_mongo(self) -> Dict[str, Any]:
        """Translate the filter into a MongoDB query document."""

        clauses: List[Dict[str, Any]] = []
        if self.category:
            pattern = re.escape(self.category)
            clauses.append(
                {
                    "$or": [
                        {"title": {"$regex": pattern, "$options": "i"}},
                        {"content": {"$regex": pattern, "$options": "i"}},
                    ]
                }
            )
        if self.tag:
            clauses.append({"tags": self.tag})
        if self.start_date or self.end_date:
            bounds: Dict[str, Any] = {}
            if self.start_date:
                bounds["$gte"] = self.start_date
            if self.end_date:
                bounds["$lte"] = self.end_date
            clauses.append({"published_date": bounds})
        if self.min_credibility is not None:
            clauses.append({"credibility_score": {"$gte": self.min_credibility}})
        if self.missing_embedding:
            clauses.append(
                {
                    "$or": [
                        {"embedding": {"$exists": False}},
                        {"embedding": None},
                        {"embedding": {"$size": 0}},
                    ]
                }
            )

        if not clauses:
            return {}
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
