from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Annotated
import logging

from fastapi import Depends, Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the pooled engine the app is constructed with."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise every session sees an empty db.
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            # Cascades (Request -> Match, Opportunity -> Assignment) need this.
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_db_and_tables(engine: Engine) -> None:
    """Create all tables in the database if they don't exist."""
    import models  # noqa: F401  registers the tables on SQLModel.metadata

    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    with Session(request.app.state.engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """
    Run a block as one unit of work.

    Commits when the block exits cleanly; on any exception the whole
    transaction is rolled back and the exception propagates unchanged.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("Transaction rolled back", exc_info=True)
        raise
