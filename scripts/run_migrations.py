#!/usr/bin/env python3
"""Apply SQL migrations for the braindump service to Postgres."""

import sys
from pathlib import Path

import psycopg2

from braindump.config import load_settings, require_postgres
from braindump.utils.logging import configure_logging, get_logger

configure_logging("braindump-migrations", level="INFO")
logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


def run_postgres_migrations(conn: psycopg2.extensions.connection) -> None:
    """Run every migration file in name order, each in its own transaction."""
    for migration_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
        logger.info(f"Running Postgres migration: {migration_file.name}")
        sql = migration_file.read_text(encoding="utf-8")

        try:
            with conn.cursor() as cur:
                cur.execute(sql)
            conn.commit()
            logger.info(f"Applied {migration_file.name}")
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to apply {migration_file.name}: {e}")
            raise


def main() -> None:
    """Main entry point."""
    settings = load_settings()
    try:
        require_postgres(settings)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info("Connecting to Postgres...")
    try:
        pg_conn = psycopg2.connect(
            host=settings.postgres_host,
            port=settings.postgres_port,
            dbname=settings.postgres_db,
            user=settings.postgres_user,
            password=settings.postgres_password,
        )
        run_postgres_migrations(pg_conn)
        pg_conn.close()
    except psycopg2.Error as e:
        logger.error(f"Postgres migration failed: {e}")
        sys.exit(1)

    logger.info("All migrations completed successfully")


if __name__ == "__main__":
    main()
