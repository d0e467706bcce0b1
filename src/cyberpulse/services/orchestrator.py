"""One ingestion cycle: extract, deduplicate, enrich, persist and notify."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import List

from ..models import EnrichedArticle
from ..storage import ArticleStore, InsertOutcome
from .enricher import ContentEnricher
from .extractor import SourceExtractor
from .notifier import FanoutReport, NotificationFanout

logger = logging.getLogger(__name__)

__all__ = ["CycleReport", "CycleState", "IngestionOrchestrator"]


class CycleState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    DEDUPLICATING = "deduplicating"
    ENRICHING = "enriching"
    PERSISTING = "persisting"
    NOTIFYING = "notifying"


@dataclass
class CycleReport:
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    last_state: CycleState = CycleState.IDLE
    scraped: int = 0
    new: int = 0
    saved: int = 0
    skipped: int = 0
    failed: int = 0
    notifications: FanoutReport | None = None
    error: str | None = None
    skipped_overlap: bool = False
    saved_urls: List[str] = field(default_factory=list)


class IngestionOrchestrator:
    """Run ingestion cycles; a cycle started while another is running is dropped."""

    def __init__(
        self,
        extractor: SourceExtractor,
        enricher: ContentEnricher,
        store: ArticleStore,
        notifier: NotificationFanout | None = None,
        *,
        category_filter: str | None = None,
    ) -> None:
        self._extractor = extractor
        self._enricher = enricher
        self._store = store
        self._notifier = notifier
        self._category_filter = (category_filter or "").strip() or None
        self._lock = threading.Lock()
        self._state = CycleState.IDLE

    @property
    def state(self) -> CycleState:
        return self._state

    def _enter(self, report: CycleReport, state: CycleState) -> None:
        self._state = state
        report.last_state = state

    def run_cycle(self) -> CycleReport:
        report = CycleReport()
        if not self._lock.acquire(blocking=False):
            logger.warning("Ingestion cycle already in progress; dropping trigger")
            report.skipped_overlap = True
            report.finished_at = datetime.now(UTC)
            return report

        try:
            logger.info("Starting ingestion cycle")
            self._run(report)
        except Exception as exc:  # noqa: BLE001 - a failed cycle waits for the next trigger
            logger.exception("Ingestion cycle failed during %s", report.last_state.value)
            report.error = str(exc)
        finally:
            self._state = CycleState.IDLE
            report.finished_at = datetime.now(UTC)
            self._lock.release()
        return report

    def _run(self, report: CycleReport) -> None:
        self._enter(report, CycleState.EXTRACTING)
        if self._category_filter:
            logger.info("Category filter configured: %r", self._category_filter)
        scraped = self._extractor.fetch(self._category_filter)
        report.scraped = len(scraped)
        if not scraped:
            logger.warning("No articles scraped")
            return

        self._enter(report, CycleState.DEDUPLICATING)
        existing = self._store.find_by_urls([article.url for article in scraped])
        unseen = [article for article in scraped if article.url not in existing]
        report.new = len(unseen)
        if not unseen:
            logger.info("All %d articles already exist. Skipping processing.", len(scraped))
            return
        logger.info("Found %d new articles out of %d total", len(unseen), len(scraped))

        self._enter(report, CycleState.ENRICHING)
        enriched = self._enricher.enrich_batch(unseen)

        self._enter(report, CycleState.PERSISTING)
        saved = self._persist(enriched, report)
        logger.info(
            "Article processing complete. Saved: %d, Skipped: %d, Failed: %d",
            report.saved,
            report.skipped,
            report.failed,
        )

        if saved and self._notifier is not None:
            self._enter(report, CycleState.NOTIFYING)
            try:
                report.notifications = self._notifier.notify(saved)
            except Exception:  # noqa: BLE001 - persistence already succeeded
                logger.exception("Error sending batch email notifications")

    def _persist(self, articles: List[EnrichedArticle], report: CycleReport) -> List[EnrichedArticle]:
        saved: List[EnrichedArticle] = []
        for article in articles:
            try:
                if self._store.exists_by_url(article.url):
                    logger.debug("Article already exists (duplicate check): %s", article.url)
                    report.skipped += 1
                    continue
                outcome = self._store.insert_if_absent(article)
            except Exception as exc:  # noqa: BLE001 - one bad record never stops the batch
                logger.error("Error saving article %r: %s", article.title, exc)
                report.failed += 1
                continue

            if outcome is InsertOutcome.ALREADY_EXISTS:
                logger.debug("Duplicate article skipped (unique constraint): %s", article.url)
                report.skipped += 1
                continue

            saved.append(article)
            report.saved += 1
            report.saved_urls.append(article.url)
            logger.info("Saved article: %s", article.title)
        return saved
