"""AI enrichment of raw articles: summary, key points, tags and sentiment."""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, Dict, List, Sequence

from ..config import AIConfig
from ..models import EnrichedArticle, EnrichmentPatch, RawArticle, Sentiment, dedupe_tags
from .ai_client import AICompletionClient
from .credibility import CredibilityScorer
from .embeddings import EmbeddingGenerator
from .parsing import ParseKind, parse_ai_response

logger = logging.getLogger(__name__)

__all__ = ["ContentEnricher", "build_enrichment_prompt", "heuristic_enrichment"]

MAX_KEY_POINTS = 5
PROMPT_CONTENT_CHARS = 4000

_TAGS_RE = re.compile(r"tags?[:\-]\s*([^\n]+)", re.IGNORECASE)
_SENTIMENT_RE = re.compile(r"sentiment[:\-]\s*(positive|neutral|negative)", re.IGNORECASE)
_BULLET_RE = re.compile(r"^[-•]\s*")

ENRICHMENT_DEFAULTS: Dict[str, Any] = {
    "summary": "",
    "keyPoints": [],
    "tags": [],
    "sentiment": Sentiment.NEUTRAL.value,
}


def build_enrichment_prompt(article: RawArticle) -> str:
    return (
        "Please analyze the following article and provide:\n"
        "1. A concise summary (2-3 sentences)\n"
        "2. 3-5 key points as a bulleted list\n"
        "3. Relevant tags/categories (comma-separated)\n"
        "4. Sentiment analysis (positive, neutral, or negative)\n\n"
        f"Article Title: {article.title}\n"
        f"Article Content: {(article.content or '')[:PROMPT_CONTENT_CHARS]}\n\n"
        "Please format your response as JSON:\n"
        "{\n"
        '  "summary": "summary text here",\n'
        '  "keyPoints": ["point 1", "point 2", "point 3"],\n'
        '  "tags": ["tag1", "tag2", "tag3"],\n'
        '  "sentiment": "positive|neutral|negative"\n'
        "}"
    )


def heuristic_enrichment(text: str) -> Dict[str, Any]:
    """Scan a non-JSON completion line by line for the enrichment fields."""

    lines = text.splitlines()
    summary = next((line.strip() for line in lines if "summary" in line.lower()), text[:200])
    key_points = [
        _BULLET_RE.sub("", line.strip()).strip()
        for line in lines
        if line.strip().startswith(("-", "•"))
    ][:MAX_KEY_POINTS]

    tags_match = _TAGS_RE.search(text)
    tags = [tag.strip() for tag in tags_match.group(1).split(",")] if tags_match else []

    sentiment_match = _SENTIMENT_RE.search(text)
    sentiment = sentiment_match.group(1) if sentiment_match else Sentiment.NEUTRAL.value

    return {
        "summary": summary,
        "keyPoints": key_points,
        "tags": [tag for tag in tags if tag],
        "sentiment": sentiment,
    }


def _as_tag_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def _as_key_points(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()][:MAX_KEY_POINTS]
    return []


class ContentEnricher:
    """Derive enrichment metadata for raw articles.

    The generative step degrades to defaults on any failure; credibility and
    embedding are attempted on their own regardless of how it went.
    """

    def __init__(
        self,
        ai_client: AICompletionClient | None = None,
        credibility: CredibilityScorer | None = None,
        embeddings: EmbeddingGenerator | None = None,
        config: AIConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._ai_client = ai_client
        self._credibility = credibility or CredibilityScorer(ai_client, config)
        self._embeddings = embeddings
        self._config = config or (ai_client.config if ai_client is not None else AIConfig())
        self._sleep = sleep

    def _generate(self, article: RawArticle) -> tuple[Dict[str, Any], bool]:
        if self._ai_client is None:
            logger.warning("AI client not configured, skipping AI processing for %s", article.url)
            return dict(ENRICHMENT_DEFAULTS), True

        try:
            response = self._ai_client.complete(
                build_enrichment_prompt(article),
                max_tokens=self._config.enrichment_max_tokens,
            )
        except Exception as exc:  # noqa: BLE001 - enrichment degrades instead of failing
            logger.error("Error processing article %s with AI: %s", article.url, exc)
            return dict(ENRICHMENT_DEFAULTS), True

        parsed = parse_ai_response(response, heuristic_enrichment, ENRICHMENT_DEFAULTS)
        return parsed.fields, parsed.kind is ParseKind.DEGRADED

    def _credibility_score(self, article: RawArticle) -> int | None:
        try:
            return self._credibility.score(article)
        except Exception as exc:  # noqa: BLE001 - continue without a score
            logger.warning("Error assessing credibility for %s, continuing without score: %s", article.url, exc)
            return None

    def _embedding(self, article: RawArticle, patch: EnrichmentPatch) -> List[float] | None:
        if self._embeddings is None:
            return None
        try:
            return self._embeddings.embed_article(EnrichedArticle.from_raw(article, patch))
        except Exception as exc:  # noqa: BLE001 - continue without an embedding
            logger.warning("Error generating embedding for %s: %s", article.url, exc)
            return None

    def _complete_patch(self, article: RawArticle, patch: EnrichmentPatch) -> EnrichmentPatch:
        patch.credibility_score = self._credibility_score(article)
        patch.embedding = self._embedding(article, patch)
        return patch

    def _degraded_patch(self, article: RawArticle) -> EnrichmentPatch:
        return EnrichmentPatch(tags=list(article.tags), degraded=True)

    def enrich(self, article: RawArticle) -> EnrichmentPatch:
        """Return the enrichment patch for ``article``; never raises."""

        try:
            fields, degraded = self._generate(article)
            patch = EnrichmentPatch(
                summary=str(fields.get("summary") or "").strip(),
                key_points=_as_key_points(fields.get("keyPoints")),
                tags=dedupe_tags(list(article.tags) + _as_tag_list(fields.get("tags"))),
                sentiment=Sentiment.coerce(fields.get("sentiment")),
                degraded=degraded,
            )
        except Exception as exc:  # noqa: BLE001 - malformed fields degrade to defaults
            logger.error("Error building enrichment for %s: %s", article.url, exc)
            patch = self._degraded_patch(article)
        return self._complete_patch(article, patch)

    def enrich_batch(self, articles: Sequence[RawArticle]) -> List[EnrichedArticle]:
        """Enrich ``articles`` one at a time; the output has the same length as the input."""

        enriched: List[EnrichedArticle] = []
        for index, article in enumerate(articles):
            if index:
                self._sleep(self._config.enrichment_delay_seconds)
            try:
                patch = self.enrich(article)
            except Exception as exc:  # noqa: BLE001 - one article never stops the batch
                logger.error("Error processing article %r: %s", article.title, exc)
                patch = self._complete_patch(article, self._degraded_patch(article))
            enriched.append(EnrichedArticle.from_raw(article, patch))
        logger.info("Enriched %d article(s)", len(enriched))
        return enriched
