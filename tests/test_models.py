from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from cyberpulse.models import ArticleFilter, EnrichedArticle, EnrichmentPatch, Sentiment, Subscriber


def test_subscriber_email_is_normalised() -> None:
    subscriber = Subscriber(email="  Alice@Example.COM ", category=" malware ")

    assert subscriber.email == "alice@example.com"
    assert subscriber.category == "malware"
    assert subscriber.interests == ["malware"]


def test_subscriber_requires_an_interest() -> None:
    with pytest.raises(ValidationError):
        Subscriber(email="bob@example.com", category="  ", semantic_query=None)


def test_subscriber_rejects_invalid_email() -> None:
    with pytest.raises(ValidationError):
        Subscriber(email="not-an-email", category="malware")


def test_subscriber_may_hold_both_interests() -> None:
    subscriber = Subscriber(email="c@example.com", category="malware", semantic_query="supply chain attacks")

    assert subscriber.interests == ["malware", "supply chain attacks"]


def test_from_raw_merges_patch(make_raw) -> None:
    raw = make_raw(tags=["Malware"])
    patch = EnrichmentPatch(
        summary="Short summary",
        key_points=["one", "two"],
        tags=["Malware", "Botnet"],
        sentiment=Sentiment.NEGATIVE,
        credibility_score=88,
        embedding=[0.1, 0.2],
    )

    article = EnrichedArticle.from_raw(raw, patch)

    assert article.url == raw.url
    assert article.summary == "Short summary"
    assert article.tags == ["Malware", "Botnet"]
    assert article.sentiment is Sentiment.NEGATIVE
    assert article.credibility_score == 88
    assert article.source == "thehackernews.com"
    assert article.processed_at is not None


def test_unknown_sentiment_collapses_to_neutral(make_article) -> None:
    article = make_article(sentiment="ecstatic")

    assert article.sentiment is Sentiment.NEUTRAL


def test_raw_tags_are_deduplicated(make_raw) -> None:
    raw = make_raw(tags=["Malware", "malware ", "", "Phishing"])

    assert raw.tags == ["Malware", "Phishing"]


def test_filter_matches_category_and_credibility(make_article) -> None:
    strong = make_article(url="https://example.com/a", title="Malware wave", credibility_score=90)
    weak = make_article(url="https://example.com/b", title="Malware again", credibility_score=40)
    unscored = make_article(url="https://example.com/c", title="Malware unscored")

    article_filter = ArticleFilter(category="MALWARE", min_credibility=70)

    assert article_filter.matches(strong)
    assert not article_filter.matches(weak)
    assert not article_filter.matches(unscored)


def test_filter_date_bounds_are_inclusive(make_article) -> None:
    article = make_article(published_date=datetime(2024, 5, 1, tzinfo=UTC))

    assert ArticleFilter(start_date=datetime(2024, 5, 1, tzinfo=UTC)).matches(article)
    assert ArticleFilter(end_date=datetime(2024, 5, 1, tzinfo=UTC)).matches(article)
    assert not ArticleFilter(start_date=datetime(2024, 5, 2, tzinfo=UTC)).matches(article)


def test_filter_to_mongo_combines_clauses() -> None:
    query = ArticleFilter(category="a.b", tag="Malware", min_credibility=50).to_mongo()

    assert query["$and"][0]["$or"][0]["title"] == {"$regex": r"a\.b", "$options": "i"}
    assert {"tags": "Malware"} in query["$and"]
    assert {"credibility_score": {"$gte": 50}} in query["$and"]


def test_empty_filter_is_empty_query() -> None:
    assert ArticleFilter().to_mongo() == {}
