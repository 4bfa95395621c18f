#!/usr/bin/env python3
"""
One-shot database initialisation script.

Creates all tables defined in the ORM models.  Safe to run multiple times;
``create_all`` is a no-op for tables that already exist.

Usage:
    python -m scripts.init_db          # from backend/
    python backend/scripts/init_db.py  # from project root
"""

import logging
import sys
from pathlib import Path

# Ensure the backend package is importable when running from project root.
_backend_dir = Path(__file__).resolve().parent.parent
if str(_backend_dir) not in sys.path:
    sys.path.insert(0, str(_backend_dir))

from sqlalchemy import inspect

from app.db.connection import get_engine
from app.db.models import Base

logger = logging.getLogger("init_db")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    engine = get_engine()
    logger.info("Database URL: %s", engine.url.render_as_string(hide_password=True))

    logger.info("Creating tables …")
    Base.metadata.create_all(bind=engine)

    tables = inspect(engine).get_table_names()
    logger.info("Tables present (%d):", len(tables))
    for t in sorted(tables):
        logger.info("  • %s", t)

    logger.info("Database initialisation complete.")


if __name__ == "__main__":
    main()
