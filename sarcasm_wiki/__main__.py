"""Command line interface."""

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence

from sarcasm_wiki.content_store.store import ArticleStore
from sarcasm_wiki.core.config import Settings
from sarcasm_wiki.core.logging import configure_logging, get_logger
from sarcasm_wiki.generation.errors import NoProvidersConfiguredError
from sarcasm_wiki.generation.queue import GenerationQueue
from sarcasm_wiki.service import (
    ArticleService,
    ArticleStatus,
    build_service,
    is_enqueueable_identifier,
)

logger = get_logger().bind(module="cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sarcasm_wiki",
        description="Sarcasm Wiki generation tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the web application with the background processor
  python -m sarcasm_wiki serve --port 8000

  # Drain the queue without the web application
  python -m sarcasm_wiki worker

  # Queue a topic and show the counters
  python -m sarcasm_wiki enqueue Ada_Lovelace
  python -m sarcasm_wiki stats
""",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the web application")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")

    subparsers.add_parser("worker", help="Run only the background processor")
    subparsers.add_parser("process-next", help="Process one queued identifier")

    refresh_parser = subparsers.add_parser("refresh", help="Regenerate one article")
    refresh_parser.add_argument("identifier")

    enqueue_parser = subparsers.add_parser("enqueue", help="Queue an identifier")
    enqueue_parser.add_argument("identifier")

    subparsers.add_parser("stats", help="Show queue and rate limit statistics")
    return parser


def _print(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


async def _run_worker(service: ArticleService) -> None:
    service.processor.start()
    try:
        while service.processor.running:
            await asyncio.sleep(1)
    finally:
        await service.processor.stop()


def _stats(settings: Settings) -> int:
    store = ArticleStore(settings.CONTENT_DIR)
    queue = GenerationQueue(settings.queue_path, settings.stats_path)
    _print(
        {
            "queue": queue.get_stats(total_generated=store.count()).model_dump(),
            "latest_articles": store.latest(),
        }
    )
    return 0


def _enqueue(settings: Settings, identifier: str) -> int:
    if not is_enqueueable_identifier(identifier):
        print(f"Error: invalid article identifier {identifier!r}", file=sys.stderr)
        return 1
    queue = GenerationQueue(settings.queue_path, settings.stats_path)
    added = queue.enqueue(identifier)
    _print({"identifier": identifier, "added": added, "position": queue.position(identifier)})
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)

    if args.command == "serve":
        import uvicorn

        from sarcasm_wiki.main import create_app

        uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)
        return 0
    if args.command == "stats":
        return _stats(settings)
    if args.command == "enqueue":
        return _enqueue(settings, args.identifier)

    try:
        service = build_service(settings)
    except NoProvidersConfiguredError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.command == "worker":
        try:
            asyncio.run(_run_worker(service))
        except KeyboardInterrupt:
            logger.info("Worker interrupted")
        return 0

    if args.command == "process-next":
        report = asyncio.run(service.process_next())
        _print(report.model_dump(mode="json"))
        return 0

    response = asyncio.run(service.force_refresh(args.identifier))
    _print(response.model_dump(mode="json", exclude={"article": {"body"}}))
    return 0 if response.status is ArticleStatus.READY else 1


if __name__ == "__main__":
    sys.exit(main())
