from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import logging
import structlog

logger = structlog.get_logger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Database handle: one engine and its session factory.

    Constructed explicitly (by the application lifespan or by tests) and
    handed to request handlers through ``app.state``.
    """

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        if url.startswith("sqlite"):
            connect_args = engine_kwargs.setdefault("connect_args", {})
            connect_args.setdefault("check_same_thread", False)
        else:
            engine_kwargs.setdefault("pool_pre_ping", True)

        self.engine: Engine = create_engine(url, **engine_kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def connect(self, retries: int = 5) -> None:
        """Open a first connection, retrying with exponential backoff (1s, 2s, 4s, ...)."""
        attempt = retry(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(retries),
            wait=wait_exponential(multiplier=1, min=1, max=16),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
            reraise=True,
        )(self._ping)
        attempt()
        logger.info("database_connected", url=self.engine.url.render_as_string(hide_password=True))

    def _ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def check_health(self) -> bool:
        try:
            self._ping()
            return True
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            return False

    def create_all(self) -> None:
        # Import models so every table is registered on the metadata
        import fintrack.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("database_disconnected")


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    database: Database = request.app.state.database
    db = database.SessionLocal()
    request.state.db = db
    try:
        yield db
    finally:
        db.close()
