import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from config import get_settings


logger = logging.getLogger(__name__)


def _create_engine() -> Engine:
    settings = get_settings()
    connect_args: dict[str, object] = {}
    engine_args: dict[str, object] = {"pool_pre_ping": True}
    if settings.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    else:
        engine_args.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_recycle=settings.pool_recycle_secs,
        )
    from sqlalchemy import create_engine

    eng = create_engine(settings.database_url, connect_args=connect_args, **engine_args)
    if settings.database_url.startswith("sqlite"):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


engine = _create_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"db_connect: attempt={retry_state.attempt_number} not ready error={exc}"
    )


def wait_for_database(
    eng: Engine, attempts: int, backoff_secs: float
) -> None:
    """Ping the store until it answers, giving up after ``attempts`` tries.

    Only connectivity errors are retried; the last one is re-raised.
    """
    for attempt in Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(backoff_secs),
        retry=retry_if_exception_type(OperationalError),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            with eng.connect() as conn:
                conn.execute(text("SELECT 1"))
    logger.info("db_connect: connected")


def create_schema(eng: Engine) -> None:
    import models  # noqa: F401  registers the mapped tables

    Base.metadata.create_all(eng)
    logger.info("db_schema: tables ensured")
