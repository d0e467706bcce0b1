"""Construction of the live pipeline objects from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import PipelineConfig
from .services.ai_client import AICompletionClient, build_ai_client
from .services.credibility import CredibilityScorer
from .services.embeddings import EmbeddingGenerator
from .services.enricher import ContentEnricher
from .services.extractor import SourceExtractor
from .services.mailer import SmtpMailer
from .services.notifier import NotificationFanout
from .services.orchestrator import IngestionOrchestrator
from .storage import ArticleStore, SubscriberStore

logger = logging.getLogger(__name__)

__all__ = ["PipelineContext", "build_context", "build_stores"]


@dataclass
class PipelineContext:
    config: PipelineConfig
    articles: ArticleStore
    subscribers: SubscriberStore
    ai_client: AICompletionClient | None
    embeddings: EmbeddingGenerator
    credibility: CredibilityScorer
    enricher: ContentEnricher
    extractor: SourceExtractor
    mailer: SmtpMailer
    notifier: NotificationFanout
    orchestrator: IngestionOrchestrator


def build_stores(config: PipelineConfig) -> tuple[ArticleStore, SubscriberStore]:
    """Return MongoDB stores when a URI is configured, otherwise blob stores."""

    storage = config.storage
    if storage.mongodb_uri:
        from .storage.mongo import MongoArticleStore, MongoSubscriberStore, connect

        database = connect(storage.mongodb_uri, storage.mongodb_database)
        return MongoArticleStore(database), MongoSubscriberStore(database)

    from .storage.blob import BlobArticleStore, BlobSubscriberStore

    logger.info("Using blob storage for articles and subscribers")
    return BlobArticleStore(storage.blob_root), BlobSubscriberStore(storage.blob_root)


def build_context(
    config: PipelineConfig,
    *,
    articles: ArticleStore | None = None,
    subscribers: SubscriberStore | None = None,
) -> PipelineContext:
    """Wire every collaborator once; the result is passed explicitly to callers."""

    if articles is None or subscribers is None:
        default_articles, default_subscribers = build_stores(config)
        articles = default_articles if articles is None else articles
        subscribers = default_subscribers if subscribers is None else subscribers

    ai_client = build_ai_client(config.ai)
    embeddings = EmbeddingGenerator(config.embeddings)
    credibility = CredibilityScorer(ai_client, config.ai)
    enricher = ContentEnricher(
        ai_client,
        credibility,
        embeddings if config.embeddings.enabled else None,
        config.ai,
    )
    extractor = SourceExtractor(config.source)
    mailer = SmtpMailer(config.smtp)
    notifier = NotificationFanout(subscribers, mailer, config.notifications)
    orchestrator = IngestionOrchestrator(
        extractor,
        enricher,
        articles,
        notifier,
        category_filter=config.scheduler.category_filter,
    )

    return PipelineContext(
        config=config,
        articles=articles,
        subscribers=subscribers,
        ai_client=ai_client,
        embeddings=embeddings,
        credibility=credibility,
        enricher=enricher,
        extractor=extractor,
        mailer=mailer,
        notifier=notifier,
        orchestrator=orchestrator,
    )
