#!/usr/bin/env python3
"""
CareTrack database initialization.
Creates the tables and, when LOAD_TEST_DATA=true, loads a small demo dataset.
"""

import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.database.init_db import init_database
from app.database.session import get_db_session
from app.models.student import Attendance, LessonProgress, Student
from app.models.user import User
from app.services.config_service import config_service

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("scripts.init_db")

DEMO_STATUSES = ["present", "present", "late", "present", "absent"]
DEMO_PROGRESS = [100, 75, 50, 100, 0, 90]


def load_test_data():
    """Load demo data if LOAD_TEST_DATA is set and the database is empty."""
    if not config_service.get_bool("LOAD_TEST_DATA", False):
        logger.info("Demo data loading disabled (LOAD_TEST_DATA=false)")
        return True

    try:
        with get_db_session() as db:
            if db.query(Student).first() is not None:
                logger.info("Students already exist, skipping demo data")
                return True

            db.add(User(user_id="t1", email="teacher@caretrack.local", display_name="Demo Teacher", role="teacher"))

            today = config_service.now().date()
            for index in range(1, 6):
                student_id = f"s{index}"
                db.add(Student(id=student_id, name=f"Demo Child {index}", section_id="sec-a", parent_id=f"p{index}"))

                for day_offset in range(7):
                    day = today - timedelta(days=day_offset)
                    status = DEMO_STATUSES[(index + day_offset) % len(DEMO_STATUSES)]
                    db.add(Attendance(id=f"a-{student_id}-{day.isoformat()}", date=day, student_id=student_id, status=status))

                for lesson in range(1, 4):
                    value = DEMO_PROGRESS[(index + lesson) % len(DEMO_PROGRESS)]
                    db.add(LessonProgress(id=f"p-{student_id}-l{lesson}", user_id=student_id, lesson_id=f"l{lesson}", percentage=value))

        logger.info("Demo data loaded")
        return True
    except Exception as e:
        logger.error(f"Failed to load demo data: {e}")
        return False


def main():
    logger.info("Initializing database")
    init_database()

    if not load_test_data():
        sys.exit(1)

    logger.info("Database initialization complete")


if __name__ == "__main__":
    main()
