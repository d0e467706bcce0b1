"""Relevance-ranked notification fan-out to subscribers."""

from __future__ import annotations

import html
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Sequence

from ..config import NotificationConfig
from ..models import EnrichedArticle, Subscriber
from ..storage import SubscriberStore
from .mailer import SmtpMailer
from .similarity import average_relevance, relevance_band, relevance_score

logger = logging.getLogger(__name__)

__all__ = [
    "FanoutReport",
    "NotificationFanout",
    "NotificationMessage",
    "RankedArticle",
    "effective_threshold",
    "matching_articles",
    "rank_articles",
    "render_message",
]

SUMMARY_FALLBACK_CHARS = 200

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class RankedArticle:
    article: EnrichedArticle
    relevance: int


@dataclass
class NotificationMessage:
    to_address: str
    subject: str
    text_body: str
    html_body: str
    articles: List[RankedArticle] = field(default_factory=list)
    average_relevance: int = 0


@dataclass
class FanoutReport:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_addresses: List[str] = field(default_factory=list)


def effective_threshold(subscriber: Subscriber, config: NotificationConfig) -> int | None:
    if subscriber.min_credibility is not None:
        return subscriber.min_credibility
    return config.min_credibility


def matching_articles(
    subscriber: Subscriber,
    articles: Sequence[EnrichedArticle],
    threshold: int | None = None,
) -> List[EnrichedArticle]:
    """Articles whose title or content contains one of the subscriber's interests.

    Semantic queries are matched with the same substring test as categories.
    Articles without a credibility score are never dropped by ``threshold``.
    """

    interests = [interest.lower() for interest in subscriber.interests]
    if not interests:
        return []

    matched: List[EnrichedArticle] = []
    for article in articles:
        text = f"{article.title or ''} {article.content or ''}".lower()
        if not any(interest in text for interest in interests):
            continue
        if threshold is not None and article.credibility_score is not None:
            if article.credibility_score < threshold:
                continue
        matched.append(article)
    return matched


def rank_articles(articles: Sequence[EnrichedArticle], interests: Sequence[str]) -> List[RankedArticle]:
    """Score each article by its best interest and sort descending; ties keep input order."""

    ranked: List[RankedArticle] = []
    for article in articles:
        scores = [score for score in (relevance_score(article, interest) for interest in interests) if score is not None]
        ranked.append(RankedArticle(article=article, relevance=max(scores) if scores else 0))
    return sorted(ranked, key=lambda item: item.relevance, reverse=True)


def _published(article: EnrichedArticle) -> str:
    if article.published_date is None:
        return "Recently"
    return article.published_date.strftime("%B %d, %Y")


def _summary(article: EnrichedArticle) -> str:
    if article.summary:
        return article.summary
    if article.content:
        return article.content[:SUMMARY_FALLBACK_CHARS] + "..."
    return "No summary available"


def render_message(subscriber: Subscriber, ranked: Sequence[RankedArticle]) -> NotificationMessage:
    count = len(ranked)
    if count == 1:
        title = _WHITESPACE_RE.sub(" ", ranked[0].article.title or "").strip()
        subject = f"New Article: {title or 'New Article'}"
    else:
        subject = f"{count} New Articles Matching Your Interests"

    average = average_relevance(item.relevance for item in ranked) or 0
    interest = " / ".join(subscriber.interests)
    plural = "" if count == 1 else "s"

    text_lines = [
        "New Articles Alert",
        "",
        f'We found {count} new article{plural} matching your interest in "{interest}".',
        f"Average relevance: {average}% ({relevance_band(average)})",
        "",
    ]
    html_items: List[str] = []
    for position, item in enumerate(ranked, start=1):
        article = item.article
        tags = ", ".join(article.tags) if article.tags else "none"
        text_lines.extend(
            [
                f"{position}. {article.title}",
                f"   Published: {_published(article)}",
                f"   Relevance: {item.relevance}% ({relevance_band(item.relevance)})",
                f"   Sentiment: {article.sentiment.value}",
                f"   Tags: {tags}",
                f"   Summary: {_summary(article)}",
                f"   Read: {article.url}",
                "",
            ]
        )
        html_items.append(
            "<li>"
            f'<h3><a href="{html.escape(article.url, quote=True)}">{html.escape(article.title)}</a></h3>'
            f"<p>Published: {html.escape(_published(article))} | "
            f"Relevance: {item.relevance}% | Sentiment: {html.escape(article.sentiment.value)}</p>"
            f"<p>Tags: {html.escape(tags)}</p>"
            f"<p>{html.escape(_summary(article))}</p>"
            "</li>"
        )
    text_lines.extend(
        [
            "---",
            "This is an automated notification from CyberPulse.",
            f'You are receiving this because you subscribed to articles about "{interest}".',
        ]
    )

    html_body = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head><body>"
        "<h1>New Articles Alert</h1>"
        f"<p>We found <strong>{count}</strong> new article{plural} matching your interest in "
        f"&quot;{html.escape(interest)}&quot;.</p>"
        f"<p>Average relevance: {average}%</p>"
        f"<ol>{''.join(html_items)}</ol>"
        "<p>This is an automated notification from CyberPulse.</p>"
        "</body></html>"
    )

    return NotificationMessage(
        to_address=subscriber.email,
        subject=subject,
        text_body="\n".join(text_lines),
        html_body=html_body,
        articles=list(ranked),
        average_relevance=average,
    )


class NotificationFanout:
    """Send each matching subscriber one batched message for a set of new articles."""

    def __init__(
        self,
        subscribers: SubscriberStore,
        mailer: SmtpMailer,
        config: NotificationConfig | None = None,
    ) -> None:
        self._subscribers = subscribers
        self._mailer = mailer
        self._config = config or NotificationConfig()

    def build_messages(self, articles: Sequence[EnrichedArticle]) -> List[NotificationMessage]:
        messages: List[NotificationMessage] = []
        for subscriber in self._subscribers.find_all():
            threshold = effective_threshold(subscriber, self._config)
            matched = matching_articles(subscriber, articles, threshold)
            if not matched:
                continue
            ranked = rank_articles(matched, subscriber.interests)
            messages.append(render_message(subscriber, ranked))
        return messages

    def _dispatch(self, message: NotificationMessage) -> bool:
        return self._mailer.send(message.to_address, message.subject, message.html_body, message.text_body)

    def notify(self, articles: Sequence[EnrichedArticle]) -> FanoutReport:
        report = FanoutReport()
        if not self._mailer.enabled:
            logger.debug("SMTP not configured, skipping email notifications")
            return report
        if not articles:
            logger.debug("No articles to notify about, skipping email notifications")
            return report

        messages = self.build_messages(articles)
        if not messages:
            logger.debug("No subscribers match any articles, skipping email notifications")
            return report

        logger.info(
            "Sending batch email notifications to %d subscribers for %d new articles",
            len(messages),
            len(articles),
        )
        with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
            futures = [(message, executor.submit(self._dispatch, message)) for message in messages]

        for message, future in futures:
            report.attempted += 1
            try:
                delivered = future.result()
            except Exception as exc:  # noqa: BLE001 - one mailbox never blocks the others
                logger.error("Error sending notification to %s: %s", message.to_address, exc)
                delivered = False
            if delivered:
                report.succeeded += 1
            else:
                report.failed += 1
                report.failed_addresses.append(message.to_address)

        logger.info(
            "Batch email notifications sent: %d successful, %d failed",
            report.succeeded,
            report.failed,
        )
        return report
