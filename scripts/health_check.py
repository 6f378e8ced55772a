#!/usr/bin/env python3
"""
CareTrack readiness check.
Probes the database, the API and the collection scheduler.
"""

import logging
import os
import sys
from pathlib import Path

import requests

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("scripts.health_check")

BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000")


def check_database():
    """Check that the database answers a trivial query."""
    try:
        from sqlalchemy import text

        from app.database.engine import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

        logger.info("Database is reachable")
        return True
    except Exception as e:
        logger.error(f"Database is unreachable: {e}")
        return False


def check_web_app():
    """Check the API health endpoint."""
    try:
        response = requests.get(f"{BASE_URL}/healthz", timeout=10)
        if response.status_code == 200:
            logger.info("API is reachable")
            return True
        logger.error(f"API is unreachable: HTTP {response.status_code}")
        return False
    except requests.RequestException as e:
        logger.error(f"API is unreachable: {e}")
        return False


def check_collection():
    """Check that data collection has run and the last run did not fail."""
    try:
        response = requests.get(f"{BASE_URL}/api/collection/status", timeout=10)
        response.raise_for_status()
        status = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Collection status unavailable: {e}")
        return False

    latest_run = status.get("latest_run")
    if latest_run is None:
        logger.warning(f"No collection run recorded yet (scheduler state: {status.get('state')})")
        return False
    if latest_run.get("status") == "error":
        logger.warning(f"Last collection run failed: {latest_run.get('error')}")
        return False

    stats = latest_run.get("stats", {})
    logger.info(
        f"Last collection run at {latest_run.get('timestamp')}: "
        f"quality={stats.get('data_quality')}, students={stats.get('total_students')}"
    )
    return True


def main():
    """Run all checks and exit non-zero when a critical one fails."""
    logger.info("Running CareTrack readiness checks")

    checks = [
        ("Database", check_database, True),
        ("API", check_web_app, True),
        ("Data collection", check_collection, False),
    ]

    results = []
    for name, check_func, critical in checks:
        logger.info(f"Checking {name}...")
        result = check_func()
        results.append((name, result))

        if not result and critical:
            logger.error(f"Critical component {name} is unavailable")
            sys.exit(1)

    for name, result in results:
        logger.info(f"  {name}: {'OK' if result else 'FAIL'}")

    failed_checks = [name for name, result in results if not result]
    if failed_checks:
        logger.warning(f"Unavailable components: {', '.join(failed_checks)}")
    else:
        logger.info("All components are ready")


if __name__ == "__main__":
    main()
