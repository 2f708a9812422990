#!/usr/bin/env python3
"""
Initialize the ingestion tree and the Neo4j schema for every target.

Creates the upload/process/done/failed/query directories of each target and
the uniqueness constraint on Resource.uri in each target database.

Usage:
    python scripts/init_layout.py [--root DIR] [--target NAME ...]
"""

import argparse
import sys
from pathlib import Path

from loguru import logger

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.config import get_settings
from app.utils.neo4j_client import Neo4jClient
from domains.file_ingest.staging import ensure_layout

SCHEMA_STATEMENTS = [
    "CREATE CONSTRAINT resource_uri IF NOT EXISTS FOR (r:Resource) REQUIRE r.uri IS UNIQUE",
    "CREATE INDEX literal_value IF NOT EXISTS FOR (l:Literal) ON (l.value)",
]


def execute_schema_statements(client: Neo4jClient, target: str) -> int:
    """Apply schema statements to one target database, returning the failure count."""
    failed_count = 0

    for i, statement in enumerate(SCHEMA_STATEMENTS, 1):
        try:
            logger.info(f"[{target}] Executing statement {i}/{len(SCHEMA_STATEMENTS)}...")
            client.execute_write(statement, database=target)
            logger.success(f"[{target}] Statement {i} executed successfully")
        except Exception as e:
            logger.error(f"[{target}] Statement {i} failed: {e}")
            failed_count += 1

    return failed_count


def parse_args(argv=None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Create ingestion directories and schema.")
    parser.add_argument("--root", type=Path, default=None, help="Root of the ingestion tree.")
    parser.add_argument(
        "--target",
        action="append",
        default=[],
        help="Target to initialize (can be repeated, default: all databases).",
    )
    parser.add_argument(
        "--skip-schema",
        action="store_true",
        help="Only create directories.",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main initialization function."""
    args = parse_args(argv)
    settings = get_settings()
    root = args.root or settings.ingest_root

    client = Neo4jClient()
    try:
        targets = args.target or settings.get_ingest_targets() or client.list_databases()
        if not targets:
            logger.error("No targets to initialize")
            return 1

        failed = 0
        for target in targets:
            ensure_layout(root, target)
            logger.success(f"Layout ready for {target} under {root}")
            if not args.skip_schema:
                failed += execute_schema_statements(client, target)

        if failed == 0:
            logger.success("Initialization completed successfully")
            return 0
        logger.warning(f"Initialization completed with {failed} failures")
        return 1

    except Exception as e:
        logger.error(f"Initialization failed: {e}")
        return 1

    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(main())
