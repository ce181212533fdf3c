#!/usr/bin/env python3
"""Database bootstrap: run Alembic migrations, then seed the content catalog.

Definition of done for production readiness:
- Always run `alembic upgrade head` on startup.
- If migrations fail, fail fast (don't start with an unknown schema).
- Seeding only adds missing default formats; admin edits are never overwritten.
"""

import os
import sys
import time
from dotenv import load_dotenv

load_dotenv()


def check_db_ready() -> bool:
    """Check if database is ready"""
    from core.database import check_db_connection

    return check_db_connection()


def _get_alembic_config():
    """Load Alembic config for programmatic migrations."""
    from alembic.config import Config

    here = os.path.dirname(os.path.abspath(__file__))
    cfg = Config(os.path.join(here, "alembic.ini"))
    return cfg


def alembic_upgrade_head() -> None:
    """Apply all pending migrations."""
    from alembic import command

    command.upgrade(_get_alembic_config(), "head")


def seed_catalog() -> int:
    """Install the default content formats; returns the catalog size."""
    from core.database import SessionLocal
    from services.content_catalog import seed_default_formats

    db = SessionLocal()
    try:
        return len(seed_default_formats(db))
    finally:
        db.close()


def main():
    print("Waiting for database to be ready...")
    max_retries = 30
    retry_count = 0

    while retry_count < max_retries:
        if check_db_ready():
            print("Database is ready!")
            break
        retry_count += 1
        print(f"Database is unavailable - sleeping (attempt {retry_count}/{max_retries})")
        time.sleep(1)
    else:
        print("ERROR: Database is not ready after maximum retries")
        sys.exit(1)

    # Production rule: always apply migrations.
    try:
        alembic_upgrade_head()
        print("Migrations completed successfully!")
    except Exception as e:
        print(f"ERROR: Alembic upgrade failed: {e}")
        sys.exit(1)

    try:
        count = seed_catalog()
        print(f"Content catalog ready ({count} active formats)")
    except Exception as e:
        print(f"ERROR: Content catalog seeding failed: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
