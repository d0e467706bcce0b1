"""Article embeddings using sentence-transformers."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List

from ..config import EmbeddingConfig
from ..models import EnrichedArticle, RawArticle
from .similarity import cosine_similarity

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingGenerator", "build_article_text", "cosine_similarity"]


def _load_sentence_transformer(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


def build_article_text(article: RawArticle | EnrichedArticle) -> str:
    """Title, summary and a ``Tags:`` line, separated by blank lines."""

    title = (article.title or "").strip()
    summary = (getattr(article, "summary", "") or "").strip()
    tags = ", ".join(tag.strip() for tag in article.tags if tag and tag.strip())

    parts = [part for part in (title, summary) if part]
    if tags:
        parts.append(f"Tags: {tags}")
    return "\n\n".join(parts)


class EmbeddingGenerator:
    """Compute normalized sentence embeddings, loading the model on first use.

    A model that fails to load is reported once and the generator stays
    unavailable for the rest of the process.
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        model_loader: Callable[[str], Any] = _load_sentence_transformer,
    ) -> None:
        self._config = config or EmbeddingConfig()
        self._model_loader = model_loader
        self._model: Any = None
        self._failed = False
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def available(self) -> bool:
        return self._config.enabled and not self._failed

    def _get_model(self) -> Any:
        if self._model is not None or self._failed:
            return self._model
        with self._lock:
            if self._model is None and not self._failed:
                logger.info("Loading embedding model: %s", self._config.model_name)
                try:
                    self._model = self._model_loader(self._config.model_name)
                except Exception as exc:  # noqa: BLE001 - model unavailable, embeddings disabled
                    self._failed = True
                    logger.error("Failed to load embedding model %s: %s", self._config.model_name, exc)
                else:
                    logger.info("Embedding model loaded")
        return self._model

    def embed_text(self, text: str | None) -> List[float] | None:
        if not text or not text.strip():
            logger.debug("Empty text provided for embedding generation")
            return None
        if not self._config.enabled:
            return None

        model = self._get_model()
        if model is None:
            return None

        try:
            vector = model.encode(text, normalize_embeddings=True)
        except Exception as exc:  # noqa: BLE001 - inference failure yields no embedding
            logger.error("Error generating embedding: %s", exc)
            return None
        return [float(value) for value in vector]

    def embed_article(self, article: RawArticle | EnrichedArticle) -> List[float] | None:
        text = build_article_text(article)
        if not text:
            logger.warning("Article %s has no text content for embedding", article.url)
            return None
        return self.embed_text(text)
