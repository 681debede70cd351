#!/usr/bin/env python
"""
Upgrade the recipes database to the latest (or a given) alembic revision.

Usage: python scripts/apply_migrations.py [revision]
"""
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("migrations")


def main():
    repo_root = Path(__file__).resolve().parents[1]
    env_path = repo_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    # Direct connection for DDL; the app may use the provider's pooled URL
    migrations_url = os.getenv("MIGRATIONS_DATABASE_URL")
    if migrations_url:
        os.environ["DATABASE_URL"] = migrations_url

    revision = sys.argv[1] if len(sys.argv) > 1 else "head"
    logger.info("Upgrading database to %s", revision)
    result = subprocess.run(["poetry", "run", "alembic", "upgrade", revision], cwd=repo_root)
    if result.returncode:
        logger.error("alembic upgrade failed with exit code %s", result.returncode)
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
