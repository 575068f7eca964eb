"""Apply preference-store migrations once the database accepts connections.

Deploys run this before the API starts so the profile and preference
tables match the ORM models.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

LOGGER = logging.getLogger("userprefs.migrations")
URL_PLACEHOLDER = "%(USERPREFS_DATABASE_URL)s"
BACKEND_ROOT = Path(__file__).resolve().parent.parent


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upgrade or downgrade the preference store schema.")
    parser.add_argument("--revision", default=os.getenv("USERPREFS_MIGRATION_REVISION", "head"))
    parser.add_argument(
        "--downgrade",
        action="store_true",
        help="Downgrade to --revision instead of upgrading.",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=int(os.getenv("USERPREFS_MIGRATION_TIMEOUT", "60")),
        help="Seconds to wait for the database to accept connections.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=float(os.getenv("USERPREFS_MIGRATION_POLL_INTERVAL", "2")),
    )
    parser.add_argument("--config", default=str(BACKEND_ROOT / "alembic.ini"))
    return parser.parse_args(argv)


def load_config(config_path: str) -> Config:
    config = Config(config_path)
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    return config


def resolve_database_url(config: Config) -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url and url != URL_PLACEHOLDER:
        return url
    env_url = os.getenv("USERPREFS_DATABASE_URL")
    if not env_url:
        raise RuntimeError("USERPREFS_DATABASE_URL must be set before running migrations.")
    config.set_main_option("sqlalchemy.url", env_url)
    return env_url


def wait_for_database(database_url: str, *, timeout: int, poll_interval: float) -> None:
    deadline = time.monotonic() + timeout
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    last_error: Optional[Exception] = None
    try:
        while True:
            try:
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                LOGGER.info("Database is reachable.")
                return
            except OperationalError as exc:
                last_error = exc
                LOGGER.warning("Database not ready yet: %s", exc)
            except SQLAlchemyError as exc:
                last_error = exc
                LOGGER.error("Database error during readiness probe: %s", exc)
                break
            if time.monotonic() >= deadline:
                break
            time.sleep(poll_interval)
    finally:
        engine.dispose()
    raise RuntimeError("Database did not become ready in time.") from last_error


def run_migrations(
    revision: str,
    *,
    timeout: int,
    poll_interval: float,
    downgrade: bool = False,
    config: Optional[Config] = None,
) -> None:
    config = config or load_config(str(BACKEND_ROOT / "alembic.ini"))
    database_url = resolve_database_url(config)
    wait_for_database(database_url, timeout=timeout, poll_interval=poll_interval)
    if downgrade:
        LOGGER.info("Downgrading schema to %s", revision)
        command.downgrade(config, revision)
    else:
        LOGGER.info("Upgrading schema to %s", revision)
        command.upgrade(config, revision)
    LOGGER.info("Migrations complete.")


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("USERPREFS_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        run_migrations(
            args.revision,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            downgrade=args.downgrade,
            config=load_config(args.config),
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Migration run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
