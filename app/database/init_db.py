"""
Database initialization script.
"""
import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from app.database.engine import engine as default_engine

logger = logging.getLogger("app.database")


def init_database(engine: Engine = None) -> None:
    """
    Create all tables used by CareTrack.
    
    Args:
        engine: Engine to initialize, the application engine by default
    """
    logger.info("Initializing database...")
    
    # Register table models with the metadata
    from app.models.storage import KeyValueEntry  # noqa: F401
    from app.models.student import Attendance, LessonProgress, Student  # noqa: F401
    from app.models.user import User  # noqa: F401
    
    SQLModel.metadata.create_all(engine or default_engine)
    logger.info("Database tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_database()
