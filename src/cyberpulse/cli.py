"""Command line interface for running the pipeline."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from typing import Sequence

from pydantic import ValidationError

from .config import PipelineConfig
from .context import PipelineContext, build_context
from .models import Subscriber
from .services.backfill import backfill_embeddings
from .services.scheduler import IngestionScheduler, InvalidScheduleError
from .services.search import search_articles
from .storage import SubscriberExistsError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cyberpulse", description="Security news ingestion pipeline")
    parser.add_argument("--config", help="Path to a JSON configuration file")
    parser.add_argument("--log-level", help="Logging level (defaults to LOG_LEVEL or INFO)")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("run", help="Arm the cron scheduler and block")
    commands.add_parser("once", help="Run a single ingestion cycle and print its report")
    commands.add_parser("backfill-embeddings", help="Compute embeddings for stored articles missing one")

    subscribe = commands.add_parser("subscribe", help="Register a notification subscriber")
    subscribe.add_argument("email")
    subscribe.add_argument("--category")
    subscribe.add_argument("--semantic-query")
    subscribe.add_argument("--min-credibility", type=int)

    search = commands.add_parser("search", help="Full-text search over stored articles")
    search.add_argument("query")
    search.add_argument("--category")
    search.add_argument("--min-credibility", type=int)
    search.add_argument("--high-confidence", action="store_true")
    search.add_argument("--sort", choices=["published", "relevance"], default="published")
    search.add_argument("--page", type=int, default=1)
    search.add_argument("--limit", type=int, default=10)
    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _run(context: PipelineContext) -> int:
    try:
        scheduler = IngestionScheduler(
            context.orchestrator.run_cycle,
            context.config.scheduler,
            blocking=True,
        )
    except InvalidScheduleError as exc:
        logger.error("%s", exc)
        return 2

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")
    return 0


def _once(context: PipelineContext) -> int:
    report = context.orchestrator.run_cycle()
    _print_json(dataclasses.asdict(report))
    return 1 if report.error else 0


def _backfill(context: PipelineContext) -> int:
    report = backfill_embeddings(context.articles, context.embeddings)
    _print_json(dataclasses.asdict(report))
    return 0


def _subscribe(context: PipelineContext, args: argparse.Namespace) -> int:
    try:
        subscriber = Subscriber(
            email=args.email,
            category=args.category,
            semantic_query=args.semantic_query,
            min_credibility=args.min_credibility,
        )
    except ValidationError as exc:
        logger.error("Invalid subscriber: %s", exc)
        return 2

    try:
        context.subscribers.add(subscriber)
    except SubscriberExistsError as exc:
        logger.error("%s", exc)
        return 1
    _print_json(subscriber.model_dump(mode="json"))
    return 0


def _search(context: PipelineContext, args: argparse.Namespace) -> int:
    try:
        page = search_articles(
            context.articles,
            args.query,
            category=args.category,
            min_credibility=args.min_credibility,
            high_confidence=args.high_confidence,
            default_threshold=context.config.min_credibility_threshold,
            page=args.page,
            limit=args.limit,
            sort=args.sort,
        )
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    _print_json(
        {
            "total": page.total,
            "page": page.page,
            "pages": page.pages,
            "articles": [
                {
                    "url": item.article.url,
                    "title": item.article.title,
                    "credibility_score": item.article.credibility_score,
                    "relevance": item.relevance,
                }
                for item in page.articles
            ],
        }
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    configure_logging(args.log_level)

    try:
        config = PipelineConfig.load(args.config)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Could not load configuration: %s", exc)
        return 1

    context = build_context(config)
    if args.command == "run":
        return _run(context)
    if args.command == "once":
        return _once(context)
    if args.command == "backfill-embeddings":
        return _backfill(context)
    if args.command == "search":
        return _search(context, args)
    return _subscribe(context, args)


if __name__ == "__main__":
    sys.exit(main())
