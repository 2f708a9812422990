"""
Graph Loader - ingestion service

Watches the ingestion tree and loads uploaded archives into Neo4j:
- One process directory watched per target database
- Archives extracted, loaded in one transaction, then parked in done/failed
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from loguru import logger

from app.utils.config import Settings, get_settings
from app.utils.neo4j_client import Neo4jClient, get_neo4j_client, close_neo4j_client
from domains.file_ingest.collectors.lifecycle import LifecycleCoordinator
from domains.file_ingest.collectors.watcher import DirectoryWatcher
from domains.file_ingest.processors.graph_writer import GraphSink
from domains.file_ingest.processors.loader import BatchLoader

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO"):
    """Replace loguru's default sink with the service format."""
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level.upper())


def resolve_targets(settings: Settings, client: Neo4jClient) -> List[str]:
    """Configured targets, or every database Neo4j knows about."""
    targets = settings.get_ingest_targets()
    if targets:
        return targets
    logger.info("Getting databases")
    return client.list_databases()


def build_watcher(settings: Settings, client: Neo4jClient, targets: List[str]) -> DirectoryWatcher:
    """Wire sink, loader, coordinator and watcher together."""
    loader = BatchLoader(GraphSink(client, batch_size=settings.batch_size))
    coordinator = LifecycleCoordinator(settings.ingest_root, loader)
    return DirectoryWatcher(
        settings.ingest_root,
        targets,
        coordinator,
        polling=settings.watch_polling,
        poll_interval=settings.poll_interval,
        queue_size=settings.event_queue_size,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Load archives dropped into the ingestion tree into Neo4j.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Root of the ingestion tree (default: INGEST_ROOT).",
    )
    parser.add_argument(
        "--poll",
        action="store_true",
        help="Poll directories instead of using native file system events.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    settings = get_settings()
    if args.root is not None:
        settings = settings.model_copy(update={"ingest_root": args.root})
    if args.poll:
        settings = settings.model_copy(update={"watch_polling": True})

    configure_logging(settings.log_level)
    logger.info(f"Starting Graph Loader on {settings.ingest_root}")

    try:
        client = get_neo4j_client()
    except Exception as e:
        logger.error(f"Failed to connect to Neo4j: {e}")
        return 1

    try:
        watcher = build_watcher(settings, client, resolve_targets(settings, client))
        if not watcher.registrations:
            logger.error("No target has a readable process directory")
            return 1

        stop_event = threading.Event()

        def _signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down.")
            stop_event.set()

        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)

        watcher.start()
        try:
            while not stop_event.is_set():
                stop_event.wait(1.0)
        finally:
            watcher.stop(timeout=settings.stop_timeout)
        return 0

    except Exception as e:
        logger.error(f"Graph Loader failed: {e}")
        return 1

    finally:
        close_neo4j_client()
        logger.success("Graph Loader shut down complete")


if __name__ == "__main__":
    sys.exit(main())
