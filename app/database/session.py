"""
Database session management.
"""
import logging
from contextlib import contextmanager
from typing import Callable, ContextManager, Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.database.engine import engine

logger = logging.getLogger("app.database")


def make_session_factory(bind: Engine) -> sessionmaker:
    """Session factory whose objects stay readable after commit."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


SessionLocal = make_session_factory(engine)


def get_session() -> Generator[Session, None, None]:
    """
    Dependency to get database session.

    Yields:
        Database session
    """
    session = SessionLocal()
    try:
        logger.debug("Database session created")
        yield session
    except Exception as e:
        logger.error(f"Database session error: {e}")
        session.rollback()
        raise
    finally:
        logger.debug("Database session closed")
        session.close()


def session_scope(factory: sessionmaker) -> Callable[[], ContextManager[Session]]:
    """
    Build a transactional context manager over a session factory.

    The session commits on success and rolls back on error.
    """
    @contextmanager
    def scope() -> Generator[Session, None, None]:
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return scope


get_db_session = session_scope(SessionLocal)
