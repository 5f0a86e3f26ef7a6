#!/usr/bin/env python3
"""Apply the service's SQL migrations from the command line."""
from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path

import asyncpg  # type: ignore[import-untyped]
import structlog

from fluxdesk_webhooks.db.migrations import apply_pending, load_migrations, pending_migrations
from fluxdesk_webhooks.logging_config import configure_logging

logger = structlog.get_logger("migrate")


def _default_migrations_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "migrations"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply SQL migrations sequentially.")
    parser.add_argument(
        "--database-url",
        "-d",
        default=os.getenv("DATABASE_URL"),
        help="PostgreSQL connection string. Defaults to DATABASE_URL env variable.",
    )
    parser.add_argument(
        "--migrations-dir",
        "-m",
        type=Path,
        default=_default_migrations_dir(),
        help="Directory with *.sql migrations (sorted lexicographically).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list pending migrations without applying.",
    )
    return parser.parse_args()


async def run(database_url: str, migrations_dir: Path, dry_run: bool) -> None:
    if not migrations_dir.exists():
        raise SystemExit(f"Migrations directory does not exist: {migrations_dir}")
    migrations = load_migrations(migrations_dir)
    if not migrations:
        raise SystemExit(f"No *.sql files found in {migrations_dir}")
    conn = await asyncpg.connect(database_url)
    try:
        pending = await pending_migrations(conn, migrations)
        if not pending:
            logger.info("no pending migrations")
            return
        if dry_run:
            for _, path, _, _ in pending:
                logger.info("pending migration", migration=path.name, dry_run=True)
            logger.info("migrations pending", count=len(pending), dry_run=True)
            return
        await apply_pending(conn, pending)
        logger.info("migrations applied", count=len(pending))
    finally:
        await conn.close()


def main() -> None:
    args = parse_args()
    if not args.database_url:
        raise SystemExit("Database URL must be provided via --database-url or DATABASE_URL env.")
    configure_logging()
    asyncio.run(run(args.database_url, args.migrations_dir, args.dry_run))


if __name__ == "__main__":
    main()
