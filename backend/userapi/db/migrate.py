"""Migration Runner — applies a static SQL file statement by statement.

Invariants:
    - Statements are split on ';', trimmed, and empty fragments dropped
    - Statements run sequentially through Database.query, each in its own transaction
    - Only "already exists" failures are tolerated; anything else aborts the run
    - main() exits 0 on success, 1 on failure

Design Decisions:
    - Plain SQL file over autogenerated revisions: the schema is one table and
      re-running the file must be safe on an initialized database
"""

import asyncio
import logging
import sys
from pathlib import Path

from userapi.config import get_settings
from userapi.core.errors import DatabaseError
from userapi.infrastructure.database import Database
from userapi.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


def split_statements(sql: str) -> list[str]:
    """Split a SQL script into individual statements."""
    statements = []
    for chunk in sql.split(";"):
        lines = [
            line for line in chunk.splitlines()
            if not line.strip().startswith("--")
        ]
        statement = "\n".join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


async def run_migrations(database: Database, path: Path) -> int:
    """Execute every statement in path; returns how many were applied."""
    logger.info("Starting database migrations...")
    statements = split_statements(path.read_text(encoding="utf-8"))
    applied = 0
    for statement in statements:
        logger.info(f"Executing: {statement[:50]}...")
        try:
            await database.query(statement)
        except DatabaseError as e:
            if "already exists" not in e.message:
                raise
            logger.info("Object already exists, skipping...")
            continue
        applied += 1
    logger.info("Database migrations completed successfully")
    return applied


async def _run(path: Path) -> None:
    settings = get_settings()
    database = Database.from_settings(settings)
    try:
        await run_migrations(database, path)
    finally:
        await database.dispose()


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format, None)
    args = sys.argv[1:] if argv is None else argv
    path = Path(args[0] if args else settings.migrations_path)
    try:
        asyncio.run(_run(path))
    except Exception:
        logger.exception("Migration failed")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
