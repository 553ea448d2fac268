import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import event
from sqlmodel import create_engine
from starlette.concurrency import run_in_threadpool

from ..config import settings

logger = logging.getLogger(__name__)
_engine = None


def _enable_sqlite_fk(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine():
    global _engine
    if not _engine:
        _engine = create_engine(
            f"sqlite:///{settings.SQLITE_FILE}",
            connect_args={"check_same_thread": False},
        )
        event.listen(_engine, "connect", _enable_sqlite_fk)
    return _engine


def _alembic_config() -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(Path(__file__).resolve().parent.parent / "alembic"))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{settings.SQLITE_FILE}")
    return cfg


def migrate_db():
    Path(settings.SQLITE_FILE).parent.mkdir(parents=True, exist_ok=True)
    logger.info("Applying database migrations on %s", settings.SQLITE_FILE)
    command.upgrade(_alembic_config(), "head")


async def init_and_migrate_db():
    await run_in_threadpool(migrate_db)
