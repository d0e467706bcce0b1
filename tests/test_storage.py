from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from cyberpulse.models import ArticleFilter, Subscriber
from cyberpulse.storage import InsertOutcome, SubscriberExistsError
from cyberpulse.storage.blob import BlobArticleStore, BlobSubscriberStore
from cyberpulse.storage.mongo import MongoArticleStore, MongoSubscriberStore


def test_blob_insert_is_idempotent(tmp_path: Path, make_article) -> None:
    store = BlobArticleStore(tmp_path)
    article = make_article()

    assert store.insert_if_absent(article) is InsertOutcome.INSERTED
    assert store.insert_if_absent(article) is InsertOutcome.ALREADY_EXISTS
    assert store.exists_by_url(article.url)
    assert len(store.find_all()) == 1


def test_blob_concurrent_double_insert_keeps_one(tmp_path: Path, make_article) -> None:
    store = BlobArticleStore(tmp_path)
    article = make_article()
    outcomes: list[InsertOutcome] = []
    barrier = threading.Barrier(4)

    def insert() -> None:
        barrier.wait()
        outcomes.append(store.insert_if_absent(article))

    threads = [threading.Thread(target=insert) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(InsertOutcome.INSERTED) == 1
    assert outcomes.count(InsertOutcome.ALREADY_EXISTS) == 3
    assert len(list(store.root.glob("*.json"))) == 1


def test_blob_find_by_urls(tmp_path: Path, make_article) -> None:
    store = BlobArticleStore(tmp_path)
    store.insert_if_absent(make_article(url="https://example.com/a"))

    assert store.find_by_urls(["https://example.com/a", "https://example.com/b"]) == {"https://example.com/a"}


def test_blob_find_all_orders_and_filters(tmp_path: Path, make_article) -> None:
    store = BlobArticleStore(tmp_path)
    store.insert_if_absent(
        make_article(url="https://example.com/old", title="Old malware", published_date=datetime(2024, 1, 1, tzinfo=UTC))
    )
    store.insert_if_absent(
        make_article(url="https://example.com/new", title="New malware", published_date=datetime(2024, 6, 1, tzinfo=UTC))
    )
    store.insert_if_absent(make_article(url="https://example.com/other", title="Phishing"))

    everything = store.find_all()
    malware = store.find_all(ArticleFilter(category="malware"))

    assert everything[0].url == "https://example.com/new"
    assert [article.url for article in malware] == ["https://example.com/new", "https://example.com/old"]


def test_blob_round_trip_preserves_fields(tmp_path: Path, make_article) -> None:
    store = BlobArticleStore(tmp_path)
    article = make_article(tags=["Malware"], credibility_score=80, embedding=[0.1, 0.2], sentiment="negative")
    store.insert_if_absent(article)

    loaded = store.find_all()[0]

    assert loaded.tags == ["Malware"]
    assert loaded.credibility_score == 80
    assert loaded.embedding == [0.1, 0.2]
    assert loaded.sentiment.value == "negative"
    assert loaded.published_date == article.published_date


def test_blob_update_embedding_fills_missing(tmp_path: Path, make_article) -> None:
    store = BlobArticleStore(tmp_path)
    store.insert_if_absent(make_article(url="https://example.com/a"))

    assert len(store.find_all(ArticleFilter(missing_embedding=True))) == 1
    assert store.update_embedding("https://example.com/a", [1.0, 0.0])
    assert not store.update_embedding("https://example.com/missing", [1.0])
    assert store.find_all(ArticleFilter(missing_embedding=True)) == []


def test_blob_failed_write_leaves_url_unclaimed(tmp_path: Path, make_article, monkeypatch) -> None:
    store = BlobArticleStore(tmp_path)
    article = make_article(url="https://example.com/disk-full")

    def fail_dump(*args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr("cyberpulse.storage.blob.json.dump", fail_dump)
    with pytest.raises(OSError):
        store.insert_if_absent(article)
    monkeypatch.undo()

    assert not store.exists_by_url(article.url)
    assert list(store.root.iterdir()) == []
    assert store.insert_if_absent(article) is InsertOutcome.INSERTED
    assert [loaded.url for loaded in store.find_all()] == [article.url]


def test_blob_failed_embedding_update_keeps_document(tmp_path: Path, make_article, monkeypatch) -> None:
    store = BlobArticleStore(tmp_path)
    store.insert_if_absent(make_article(url="https://example.com/a"))

    def fail_dump(*args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr("cyberpulse.storage.blob.json.dump", fail_dump)
    with pytest.raises(OSError):
        store.update_embedding("https://example.com/a", [1.0])
    monkeypatch.undo()

    loaded = store.find_all()
    assert [article.url for article in loaded] == ["https://example.com/a"]
    assert loaded[0].embedding is None
    assert len(list(store.root.iterdir())) == 1


def test_blob_subscribers(tmp_path: Path) -> None:
    store = BlobSubscriberStore(tmp_path)
    store.add(Subscriber(email="Ann@Example.com", category="malware"))

    with pytest.raises(SubscriberExistsError):
        store.add(Subscriber(email="ann@example.com ", semantic_query="phishing"))

    assert store.get("ANN@example.com").category == "malware"
    assert store.get("nobody@example.com") is None
    assert [subscriber.email for subscriber in store.find_all()] == ["ann@example.com"]


def test_mongo_duplicate_key_is_already_exists(make_article) -> None:
    collection = MagicMock()
    collection.insert_one.side_effect = [None, DuplicateKeyError("dup")]
    database = {"articles": collection}
    store = MongoArticleStore(database)

    assert store.insert_if_absent(make_article()) is InsertOutcome.INSERTED
    assert store.insert_if_absent(make_article()) is InsertOutcome.ALREADY_EXISTS
    collection.create_index.assert_any_call([("url", 1)], unique=True)


def test_mongo_find_by_urls_queries_in(make_article) -> None:
    collection = MagicMock()
    collection.find.return_value = [{"url": "https://example.com/a"}]
    store = MongoArticleStore({"articles": collection})

    assert store.find_by_urls(["https://example.com/a", "https://example.com/b"]) == {"https://example.com/a"}
    query = collection.find.call_args.args[0]
    assert query == {"url": {"$in": ["https://example.com/a", "https://example.com/b"]}}
    assert store.find_by_urls([]) == set()


def test_mongo_find_all_uses_filter(make_article) -> None:
    document = make_article().model_dump()
    document["_id"] = "abc"
    collection = MagicMock()
    collection.find.return_value.sort.return_value = [document]
    store = MongoArticleStore({"articles": collection})

    articles = store.find_all(ArticleFilter(tag="Malware"))

    assert articles[0].url == document["url"]
    collection.find.assert_called_with({"tags": "Malware"})


def test_mongo_subscriber_duplicate_raises() -> None:
    collection = MagicMock()
    collection.insert_one.side_effect = DuplicateKeyError("dup")
    store = MongoSubscriberStore({"subscribers": collection})

    with pytest.raises(SubscriberExistsError):
        store.add(Subscriber(email="a@example.com", category="malware"))
