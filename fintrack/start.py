#!/usr/bin/env python3
"""
Production startup script: apply Alembic migrations, then serve the API.
"""
import subprocess
import sys
from pathlib import Path

import structlog
import uvicorn

from fintrack.core.config import get_settings
from fintrack.core.logging import configure_logging

logger = structlog.get_logger(__name__)

# alembic.ini lives at the project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent

def run_migrations():
    """Run Alembic migrations before starting the app"""
    logger.info("migrations_starting")
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        logger.error("migrations_failed", returncode=e.returncode, stdout=e.stdout, stderr=e.stderr)
        sys.exit(1)

    logger.info("migrations_completed", output=result.stdout.strip() or None)

def main():
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.log_json or settings.is_production)
    logger.info("backend_starting", port=settings.port, environment=settings.environment)

    # Run migrations first
    run_migrations()

    uvicorn.run(
        "fintrack.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )

if __name__ == "__main__":
    main()
