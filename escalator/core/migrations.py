"""Database migration utilities."""

from pathlib import Path

from alembic import command
from alembic.config import Config

from escalator.config import settings
from escalator.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def get_alembic_config() -> Config:
    """Alembic configuration pointing at the project's migrations directory."""
    alembic_ini = PROJECT_ROOT / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    config.set_main_option("sqlalchemy.url", settings.database_url)
    return config


def run_migrations() -> None:
    """Upgrade the database to the latest revision."""
    logger.info("Running database migrations")
    try:
        command.upgrade(get_alembic_config(), "head")
    except Exception:
        logger.exception("Database migration failed")
        raise
    logger.info("Database migrations completed")


def main() -> None:
    """Console entry point run before the API starts."""
    setup_logging(
        log_format=settings.log_format,
        log_level=settings.log_level,
        service_name=settings.service_name,
    )
    run_migrations()
