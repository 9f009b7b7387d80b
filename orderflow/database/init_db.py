import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy import inspect

import orderflow.database.db as db_module
from orderflow.core.startup import bootstrap
from orderflow.models import Base

logger = logging.getLogger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _build_alembic_config(database_url: str) -> AlembicConfig:
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def create_schema() -> None:
    """Create every mapped table on the active engine (tests and local sqlite)."""
    Base.metadata.create_all(bind=db_module.get_engine())


def init_db(use_migrations: bool = True) -> None:
    bootstrap()
    active_url = db_module.get_active_database_url()
    if use_migrations:
        command.upgrade(_build_alembic_config(active_url), "head")
    else:
        create_schema()

    table_names = sorted(inspect(db_module.get_engine()).get_table_names())
    logger.info(
        "database.tables.created",
        extra={
            "event": "database.tables.created",
            "database_url_scheme": active_url.split("://", 1)[0],
            "tables": table_names,
        },
    )


if __name__ == "__main__":
    init_db()
