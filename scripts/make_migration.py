#!/usr/bin/env python
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("migrations")


def main():
    if len(sys.argv) < 2 or not sys.argv[1].strip():
        logger.error('Usage: python scripts/make_migration.py "add recipe column"')
        sys.exit(1)

    repo_root = Path(__file__).resolve().parents[1]
    env_path = repo_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    if os.getenv("MIGRATIONS_DATABASE_URL"):
        os.environ["DATABASE_URL"] = os.environ["MIGRATIONS_DATABASE_URL"]

    message = sys.argv[1].strip()
    logger.info("Autogenerating revision %r against %s", message, repo_root / "alembic" / "versions")
    result = subprocess.run(
        ["poetry", "run", "alembic", "revision", "--autogenerate", "-m", message],
        cwd=repo_root,
    )
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
