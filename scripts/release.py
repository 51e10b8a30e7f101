"""
Release step: apply Alembic migrations, then seed the initial admin.

Needs DATABASE_URL. Safe to run on every deploy; the seed never resets an
existing password.

    python scripts/release.py
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

logger = logging.getLogger("registry.release")


def release_database_url() -> str:
    """DATABASE_URL from the environment; production may not point at SQLite."""
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required for a release.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL points at SQLite while ENV=production; use Postgres.")
    return db_url


def migrate(db_url: str, revision: str = "head") -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, revision)


def run_release() -> None:
    db_url = release_database_url()

    logger.info("Applying migrations")
    migrate(db_url)

    from scripts import init_db

    logger.info("Seeding admin user")
    init_db.seed_only(database_url=db_url)
    logger.info("Release finished")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    run_release()


if __name__ == "__main__":
    main()
