"""Fill in embeddings for stored articles that were saved without one."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ..models import ArticleFilter
from ..storage import ArticleStore
from .embeddings import EmbeddingGenerator

logger = logging.getLogger(__name__)

__all__ = ["BackfillReport", "backfill_embeddings"]

BATCH_SIZE = 10
BATCH_DELAY_SECONDS = 0.1


@dataclass
class BackfillReport:
    total: int = 0
    succeeded: int = 0
    failed: int = 0


def backfill_embeddings(
    store: ArticleStore,
    embedder: EmbeddingGenerator,
    *,
    batch_size: int = BATCH_SIZE,
    delay: float = BATCH_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> BackfillReport:
    articles = store.find_all(ArticleFilter(missing_embedding=True))
    report = BackfillReport(total=len(articles))
    logger.info("Found %d articles without embeddings", report.total)
    if not articles:
        return report
    if not embedder.available:
        logger.warning("Embedding model unavailable; skipping backfill of %d articles", report.total)
        return report

    for start in range(0, len(articles), batch_size):
        if start:
            sleep(delay)
        batch = articles[start : start + batch_size]
        logger.info("Processing batch %d (%d articles)", start // batch_size + 1, len(batch))
        for article in batch:
            try:
                embedding = embedder.embed_article(article)
                if embedding and store.update_embedding(article.url, embedding):
                    report.succeeded += 1
                else:
                    logger.warning("Failed to generate embedding for %r", article.title)
                    report.failed += 1
            except Exception as exc:  # noqa: BLE001 - keep going with the next article
                logger.error("Error processing article %r: %s", article.title, exc)
                report.failed += 1

    logger.info(
        "Embedding backfill complete: %d succeeded, %d failed of %d",
        report.succeeded,
        report.failed,
        report.total,
    )
    return report
