"""Service layer for the CyberPulse pipeline."""

from .ai_client import AICallError, AICompletionClient
from .credibility import CredibilityAssessment, CredibilityScorer
from .embeddings import EmbeddingGenerator
from .enricher import ContentEnricher
from .extractor import ExtractionError, SourceExtractor, filter_by_category
from .mailer import SmtpMailer
from .notifier import FanoutReport, NotificationFanout
from .orchestrator import CycleReport, CycleState, IngestionOrchestrator
from .similarity import cosine_similarity, relevance_score

__all__ = [
    "AICallError",
    "AICompletionClient",
    "ContentEnricher",
    "CredibilityAssessment",
    "CredibilityScorer",
    "CycleReport",
    "CycleState",
    "EmbeddingGenerator",
    "ExtractionError",
    "FanoutReport",
    "IngestionOrchestrator",
    "NotificationFanout",
    "SmtpMailer",
    "SourceExtractor",
    "cosine_similarity",
    "filter_by_category",
    "relevance_score",
]
