"""Apply Alembic migrations at startup."""
import subprocess
import sys
from pathlib import Path

from sampha.config import settings
from sampha.logging_config import get_logger

logger = get_logger(__name__)

MIGRATION_TIMEOUT_SECONDS = 60


def get_alembic_dir() -> Path:
    """Directory holding alembic.ini and the alembic/ scripts."""
    return Path(__file__).resolve().parent.parent


def _fail(message: str) -> None:
    logger.error(message)
    if settings.require_migrations:
        sys.exit(1)


def ensure_migrations() -> None:
    """
    Bring the schema to head with ``alembic upgrade head``.

    Alembic runs in a child process because env.py drives its own event
    loop, which cannot nest inside the FastAPI lifespan.
    """
    if not settings.auto_migrate:
        logger.info("AUTO_MIGRATE=false, skipping migrations")
        return

    alembic_dir = get_alembic_dir()
    if not (alembic_dir / "alembic.ini").exists():
        logger.warning(f"No alembic.ini in {alembic_dir}, skipping migrations")
        return

    logger.info("Running database migrations...")
    try:
        result = subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            cwd=alembic_dir,
            capture_output=True,
            text=True,
            timeout=MIGRATION_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired:
        _fail(f"Migration timed out after {MIGRATION_TIMEOUT_SECONDS}s")
        return

    if result.returncode != 0:
        _fail(f"Migration failed: {result.stderr.strip()}")
        return

    for line in (result.stdout + result.stderr).splitlines():
        if line.strip():
            logger.info(f"  {line}")
    logger.info("Migrations complete")
