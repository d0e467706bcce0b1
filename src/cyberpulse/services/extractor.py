"""Scraper for the configured security news source."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import Callable, List, Sequence
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from ..config import SourceConfig
from ..models import RawArticle

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_HEADERS", "ExtractionError", "SourceExtractor", "filter_by_category"]

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}

_WHITESPACE_RE = re.compile(r"\s+")


class ExtractionError(RuntimeError):
    """Raised when the index page is unreachable or no longer yields article links."""


def filter_by_category(articles: Sequence[RawArticle], category: str | None) -> List[RawArticle]:
    """Keep articles whose title or content contains ``category`` (case-insensitive)."""

    if not category or not category.strip():
        return list(articles)

    needle = category.strip().lower()
    filtered = [
        article
        for article in articles
        if needle in (article.title or "").lower() or needle in (article.content or "").lower()
    ]
    logger.info(
        "Filtered %d articles matching category %r out of %d total",
        len(filtered),
        category,
        len(articles),
    )
    return filtered


def _clean_text(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value or "").strip()


def _first_text(soup: BeautifulSoup, selectors: Sequence[str]) -> str:
    for selector in selectors:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = _clean_text(node.get_text(" ", strip=True))
        if text:
            return text
    return ""


def _meta_content(soup: BeautifulSoup, prop: str) -> str:
    node = soup.find("meta", attrs={"property": prop})
    if node is None:
        return ""
    return _clean_text(node.get("content") or "")


def parse_date(value: str | None) -> datetime | None:
    """Parse a free-form date string; unparseable input yields ``None``."""

    if not value or not value.strip():
        return None
    try:
        return date_parser.parse(value.strip())
    except (date_parser.ParserError, ValueError, OverflowError):
        logger.debug("Unparseable published date: %r", value)
        return None


class SourceExtractor:
    """Fetch the source index page and scrape the linked articles."""

    def __init__(
        self,
        config: SourceConfig | None = None,
        session: requests.Session | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or SourceConfig()
        self._session = session or requests.Session()
        self._session.headers.update(DEFAULT_HEADERS)
        self._sleep = sleep

    @property
    def config(self) -> SourceConfig:
        return self._config

    def _get_soup(self, url: str) -> BeautifulSoup:
        response = self._session.get(url, timeout=self._config.request_timeout_seconds)
        response.raise_for_status()
        return BeautifulSoup(response.text, "lxml")

    def _collect_links(self, soup: BeautifulSoup, selectors: Sequence[str]) -> List[str]:
        base_url = self._config.base_url
        seen: set[str] = set()
        links: List[str] = []
        for selector in selectors:
            for anchor in soup.select(selector):
                href = anchor.get("href")
                if not href:
                    continue
                candidate = urljoin(base_url, href).split("#", 1)[0]
                if urlparse(candidate).scheme not in {"http", "https"}:
                    continue
                if candidate in seen:
                    continue
                seen.add(candidate)
                links.append(candidate)
        return links

    def discover_links(self) -> List[str]:
        """Return up to ``max_articles`` article links from the index page."""

        base_url = self._config.base_url
        try:
            soup = self._get_soup(base_url)
        except requests.RequestException as exc:
            raise ExtractionError(f"Failed to fetch index page {base_url}: {exc}") from exc

        links = self._collect_links(soup, self._config.link_selectors)
        if not links:
            links = self._collect_links(soup, [self._config.fallback_link_selector])
        if not links:
            raise ExtractionError(f"No article links found on {base_url}; page structure may have changed")

        logger.info("Found %d article links", len(links))
        return links[: self._config.max_articles]

    def parse_article(self, url: str, html: str) -> RawArticle | None:
        """Parse a detail page; returns ``None`` when title or content is missing."""

        soup = BeautifulSoup(html, "lxml")

        title = _first_text(soup, self._config.title_selectors) or _meta_content(soup, "og:title")
        if not title and soup.title is not None:
            title = _clean_text(soup.title.get_text().split("|", 1)[0])

        author = _first_text(soup, self._config.author_selectors) or _meta_content(soup, "article:author")

        published = None
        for selector in self._config.date_selectors:
            node = soup.select_one(selector)
            if node is None:
                continue
            published = parse_date(node.get("datetime")) or parse_date(node.get_text(" ", strip=True))
            if published is not None:
                break
        if published is None:
            published = parse_date(_meta_content(soup, "article:published_time"))

        content = _first_text(soup, self._config.content_selectors)
        content = content[: self._config.content_max_chars]

        tags = [
            _clean_text(node.get_text(" ", strip=True))
            for node in soup.select(self._config.tag_selector)
            if node.get_text(strip=True)
        ]

        if not title or not content:
            logger.warning("Incomplete article data for %s", url)
            return None

        return RawArticle(
            url=url,
            title=title,
            author=author,
            published_date=published,
            content=content,
            tags=tags,
        )

    def scrape_article(self, url: str) -> RawArticle | None:
        try:
            response = self._session.get(url, timeout=self._config.request_timeout_seconds)
            response.raise_for_status()
            return self.parse_article(url, response.text)
        except requests.RequestException as exc:
            logger.warning("Failed to fetch %s: %s", url, exc)
        except Exception as exc:  # noqa: BLE001 - one bad page never aborts the batch
            logger.warning("Error scraping article %s: %s", url, exc)
        return None

    def fetch(self, category: str | None = None) -> List[RawArticle]:
        """Scrape the source and return the parsed articles, optionally filtered by ``category``."""

        logger.info("Starting article scraping from %s", self._config.base_url)
        if category:
            logger.info("Category filter active: %r", category)

        links = self.discover_links()
        articles: List[RawArticle] = []
        for index, link in enumerate(links):
            if index:
                self._sleep(self._config.request_delay_seconds)
            article = self.scrape_article(link)
            if article is not None:
                articles.append(article)

        filtered = filter_by_category(articles, category)
        logger.info("Successfully scraped %d articles", len(filtered))
        return filtered
