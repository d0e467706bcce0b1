"""JSON-file stores rooted in the local blobstore."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterable, List, Set

from pydantic import ValidationError

from ..blobstore import ARTICLES_SUBDIR, SUBSCRIBERS_SUBDIR, blob_name, ensure_blob_root
from ..models import ArticleFilter, EnrichedArticle, Subscriber
from . import InsertOutcome, SubscriberExistsError, sort_newest_first

logger = logging.getLogger(__name__)

__all__ = ["BlobArticleStore", "BlobSubscriberStore", "store_json"]


def store_json(path: Path, payload: dict, *, exclusive: bool = False) -> None:
    """Save ``payload`` as JSON at ``path``.

    The document is written to a temporary file in the same directory first and
    only then moved into place, so ``path`` never holds a partial document. With
    ``exclusive=True`` the move is a hard link, which raises
    :class:`FileExistsError` when ``path`` already exists.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            json.dump(payload, file, ensure_ascii=False, indent=2)
            file.flush()
            os.fsync(file.fileno())
        if exclusive:
            os.link(temp_path, path)
        else:
            os.replace(temp_path, path)
    finally:
        temp_path.unlink(missing_ok=True)


def _load_documents(root: Path) -> Iterable[dict]:
    for json_path in sorted(root.glob("*.json")):
        try:
            with json_path.open("r", encoding="utf-8") as file:
                payload = json.load(file)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Skipping unreadable document %s: %s", json_path, exc)
            continue
        if isinstance(payload, dict):
            yield payload


class BlobArticleStore:
    """Article store keeping one JSON document per url.

    Documents are named by the SHA-1 of the url and created exclusively, so the
    filesystem itself guarantees that a url is stored at most once.
    """

    def __init__(self, blob_root: Path | str | None = None) -> None:
        self._root = ensure_blob_root(blob_root, ARTICLES_SUBDIR)
        self._write_lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, url: str) -> Path:
        return self._root / blob_name(url)

    def find_by_urls(self, urls: Iterable[str]) -> Set[str]:
        return {url for url in urls if self._path_for(url).exists()}

    def exists_by_url(self, url: str) -> bool:
        return self._path_for(url).exists()

    def insert_if_absent(self, article: EnrichedArticle) -> InsertOutcome:
        try:
            store_json(self._path_for(article.url), article.to_document(), exclusive=True)
        except FileExistsError:
            return InsertOutcome.ALREADY_EXISTS
        return InsertOutcome.INSERTED

    def find_all(self, filter: ArticleFilter | None = None) -> List[EnrichedArticle]:
        articles: List[EnrichedArticle] = []
        for payload in _load_documents(self._root):
            try:
                article = EnrichedArticle.model_validate(payload)
            except ValidationError as exc:
                logger.warning("Skipping invalid article document %s: %s", payload.get("url"), exc)
                continue
            if filter is None or filter.matches(article):
                articles.append(article)
        return sort_newest_first(articles)

    def update_embedding(self, url: str, embedding: List[float]) -> bool:
        path = self._path_for(url)
        with self._write_lock:
            if not path.exists():
                return False
            with path.open("r", encoding="utf-8") as file:
                payload = json.load(file)
            payload["embedding"] = [float(value) for value in embedding]
            store_json(path, payload)
        return True


class BlobSubscriberStore:
    """Subscriber store keeping one JSON document per normalized email."""

    def __init__(self, blob_root: Path | str | None = None) -> None:
        self._root = ensure_blob_root(blob_root, SUBSCRIBERS_SUBDIR)

    def _path_for(self, email: str) -> Path:
        return self._root / blob_name(email.strip().lower())

    def add(self, subscriber: Subscriber) -> Subscriber:
        try:
            store_json(
                self._path_for(subscriber.email),
                subscriber.model_dump(mode="json"),
                exclusive=True,
            )
        except FileExistsError as exc:
            raise SubscriberExistsError(subscriber.email) from exc
        logger.info("Registered subscriber %s", subscriber.email)
        return subscriber

    def get(self, email: str) -> Subscriber | None:
        path = self._path_for(email)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as file:
            return Subscriber.model_validate(json.load(file))

    def find_all(self) -> List[Subscriber]:
        subscribers: List[Subscriber] = []
        for payload in _load_documents(self._root):
            try:
                subscribers.append(Subscriber.model_validate(payload))
            except ValidationError as exc:
                logger.warning("Skipping invalid subscriber document %s: %s", payload.get("email"), exc)
        subscribers.sort(key=lambda subscriber: subscriber.created_at)
        return subscribers
