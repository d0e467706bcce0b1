"""Credibility scoring for scraped articles."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict
from urllib.parse import urlparse

from ..config import AIConfig
from ..models import RawArticle
from .ai_client import AICompletionClient
from .parsing import ParseKind, parse_ai_response

logger = logging.getLogger(__name__)

__all__ = [
    "CredibilityAssessment",
    "CredibilityScorer",
    "RELIABLE_SOURCES",
    "UNRELIABLE_SOURCES",
    "author_score",
    "is_recent",
    "source_score",
]

RELIABLE_SOURCES = (
    "thehackernews.com",
    "krebsonsecurity.com",
    "arstechnica.com",
    "techcrunch.com",
    "wired.com",
    "zdnet.com",
    "csoonline.com",
    "darkreading.com",
    "securityweek.com",
    "threatpost.com",
    "bleepingcomputer.com",
    "cyberscoop.com",
    "therecord.media",
)

UNRELIABLE_SOURCES: tuple[str, ...] = ()

RECENT_WINDOW = timedelta(days=30)

_CREDENTIAL_PATTERNS = [
    re.compile(r"ph\.?d\.?", re.IGNORECASE),
    re.compile(r"professor", re.IGNORECASE),
    re.compile(r"researcher", re.IGNORECASE),
    re.compile(r"security expert", re.IGNORECASE),
    re.compile(r"cybersecurity", re.IGNORECASE),
]

_RUBRIC_PATTERNS = {
    "factualAccuracy": re.compile(r"factual[^\d]*(\d+)", re.IGNORECASE),
    "sensationalism": re.compile(r"sensational[^\d]*(\d+)", re.IGNORECASE),
    "bias": re.compile(r"bias[^\d]*(\d+)", re.IGNORECASE),
    "citationQuality": re.compile(r"citation[^\d]*(\d+)", re.IGNORECASE),
    "temporalRelevance": re.compile(r"temporal[^\d]*(\d+)", re.IGNORECASE),
    "authorCredibility": re.compile(r"author[^\d]*(\d+)", re.IGNORECASE),
}

RUBRIC_PROMPT = """Analyze the following article for credibility with STRICT criteria. Be conservative - only give high scores (80+) to articles that meet ALL high-quality standards.

STRICT MODE CRITERIA:
1. Factual accuracy (0-100): Are claims verifiable? Are there specific details, dates, names, numbers? Are statistics cited?
2. Sensationalism (0-100, lower is better): Is language exaggerated, clickbait-style, or alarmist? Avoid hyperbolic claims.
3. Bias detection (0-100, higher is better): Is the article balanced? Does it present multiple perspectives? Is it objective?
4. Citation quality (0-100): Are sources cited? Are they reputable and verifiable? Can claims be cross-referenced?
5. Temporal relevance: Is the information current? Is it outdated or still relevant?
6. Author credibility: Is the author identified? Do they have credentials or expertise in the field?

STRICT SCORING GUIDELINES:
- Only give 80+ scores to articles with verifiable claims, reputable citations, minimal bias, and credible authors
- Penalize articles with unverified claims, missing citations, or excessive sensationalism
- Be conservative - err on the side of lower scores for uncertain content

Article Title: {title}
Article Content: {content}
Article URL: {url}
Author: {author}
Published: {published}
Is Recent: {recent}

Please provide your analysis as JSON with scores for each factor (0-100 scale):
{{
  "factualAccuracy": 0-100,
  "sensationalism": 0-100 (lower is better - penalize clickbait),
  "bias": 0-100 (higher is better - less bias),
  "citationQuality": 0-100,
  "temporalRelevance": 0-100,
  "authorCredibility": 0-100,
  "overallAssessment": "brief explanation of credibility and why this score was assigned"
}}"""


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def _domain(url: str) -> str | None:
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def _matches_domain(domain: str, entries: tuple[str, ...]) -> bool:
    return any(domain == entry or domain.endswith("." + entry) for entry in entries)


def source_score(url: str) -> int:
    """Reputation of the article's host on a 0-20 scale; unknown or malformed is 10."""

    domain = _domain(url or "")
    if domain is None:
        logger.warning("Failed to extract domain from URL: %s", url)
        return 10
    if _matches_domain(domain, RELIABLE_SOURCES):
        return 20
    if _matches_domain(domain, UNRELIABLE_SOURCES):
        return 0
    return 10


def is_recent(published: datetime | None, now: datetime | None = None) -> bool:
    if published is None:
        return False
    now = now or datetime.now(UTC)
    if published.tzinfo is None:
        published = published.replace(tzinfo=UTC)
    return published >= now - RECENT_WINDOW


def author_score(author: str | None) -> int:
    if not author or not author.strip():
        return 0
    if any(pattern.search(author) for pattern in _CREDENTIAL_PATTERNS):
        return 5
    return 2


def _as_number(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if match:
            return float(match.group(0))
    return default


@dataclass
class CredibilityAssessment:
    score: int
    source_score: int
    temporal_score: int = 0
    author_score: int = 0
    ai_score: int | None = None
    degraded: bool = False
    rubric: Dict[str, Any] = field(default_factory=dict)


class CredibilityScorer:
    """Combine source reputation, recency, authorship and an AI rubric into a 0-100 score.

    Without an AI client the score is the source reputation scaled to 0-100 and
    the assessment is marked degraded. :meth:`assess` never raises.
    """

    def __init__(
        self,
        ai_client: AICompletionClient | None = None,
        config: AIConfig | None = None,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._ai_client = ai_client
        self._config = config or (ai_client.config if ai_client is not None else AIConfig())
        self._clock = clock

    def _rubric_defaults(self, recent: bool, has_author: bool) -> Dict[str, Any]:
        return {
            "factualAccuracy": 65,
            "sensationalism": 35,
            "bias": 65,
            "citationQuality": 55,
            "temporalRelevance": 80 if recent else 50,
            "authorCredibility": 60 if has_author else 30,
        }

    def _build_prompt(self, article: RawArticle, recent: bool) -> str:
        published = (
            article.published_date.strftime("%B %d, %Y") if article.published_date is not None else "Unknown"
        )
        return RUBRIC_PROMPT.format(
            title=article.title,
            content=(article.content or "")[:4000],
            url=article.url or "N/A",
            author=article.author or "Unknown",
            published=published,
            recent="Yes (within 30 days)" if recent else "No (older than 30 days)",
        )

    @staticmethod
    def rubric_score(rubric: Dict[str, Any], defaults: Dict[str, Any]) -> int:
        """Weight the rubric into the 0-80 AI component."""

        factual = _as_number(rubric.get("factualAccuracy"), defaults["factualAccuracy"])
        sensational = _as_number(rubric.get("sensationalism"), defaults["sensationalism"])
        bias = _as_number(rubric.get("bias"), defaults["bias"])
        citation = _as_number(rubric.get("citationQuality"), defaults["citationQuality"])

        total = (
            _clamp(factual * 0.30, 0, 30)
            + _clamp((100 - sensational) * 0.20, 0, 20)
            + _clamp(bias * 0.15, 0, 15)
            + _clamp(citation * 0.15, 0, 15)
        )
        return int(_clamp(round(total), 0, 80))

    def _ai_rubric(
        self,
        ai_client: AICompletionClient,
        article: RawArticle,
        recent: bool,
        defaults: Dict[str, Any],
    ) -> Dict[str, Any]:
        response = ai_client.complete(
            self._build_prompt(article, recent),
            max_tokens=self._config.credibility_max_tokens,
        )

        def heuristic(text: str) -> Dict[str, Any]:
            fields: Dict[str, Any] = {}
            for key, pattern in _RUBRIC_PATTERNS.items():
                match = pattern.search(text)
                fields[key] = int(match.group(1)) if match else defaults[key]
            return fields

        parsed = parse_ai_response(response, heuristic, defaults)
        if parsed.kind is not ParseKind.STRUCTURED:
            logger.warning("Failed to parse AI credibility response for %s, using fallback", article.url)
        return parsed.fields

    def assess(self, article: RawArticle) -> CredibilityAssessment:
        source = source_score(article.url)
        try:
            ai_client = self._ai_client
            if ai_client is None:
                logger.warning("AI client not configured, using source-only credibility for %s", article.url)
                return CredibilityAssessment(score=source * 5, source_score=source, degraded=True)

            recent = is_recent(article.published_date, self._clock())
            temporal = 5 if recent else 2
            author = author_score(article.author)
            defaults = self._rubric_defaults(recent, bool(article.author and article.author.strip()))
            rubric = self._ai_rubric(ai_client, article, recent, defaults)
            ai = self.rubric_score(rubric, defaults)
            final = int(_clamp(ai + source + temporal + author, 0, 100))
            logger.info(
                "Credibility assessment for %r: AI=%s, Source=%s, Temporal=%s, Author=%s, Final=%s",
                article.title,
                ai,
                source,
                temporal,
                author,
                final,
            )
            return CredibilityAssessment(
                score=final,
                source_score=source,
                temporal_score=temporal,
                author_score=author,
                ai_score=ai,
                rubric=rubric,
            )
        except Exception as exc:  # noqa: BLE001 - scoring must never fail the caller
            logger.error("Error assessing credibility for %s: %s", article.url, exc)
            return CredibilityAssessment(score=source * 5, source_score=source, degraded=True)

    def score(self, article: RawArticle) -> int:
        return self.assess(article).score
