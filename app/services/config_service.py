"""
Configuration service for reading settings from environment.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger("app.config")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigService:
    """Service for managing application configuration and the application clock."""

    def __init__(self):
        self._cache: dict[str, Any] = {}

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get setting value from cache or environment.

        Priority: Cache (set_setting) > Environment > Default
        """
        if key in self._cache:
            return self._cache[key]

        value = os.getenv(key, default)

        self._cache[key] = value

        logger.debug(f"Retrieved setting {key}={value}")
        return value

    def set_setting(self, key: str, value: Any) -> None:
        """Override a setting for the lifetime of the process."""
        self._cache[key] = value
        logger.info(f"Set setting {key}={value}")

    def clear_cache(self) -> None:
        """Forget cached values so the environment is read again."""
        self._cache.clear()

    def get_int(self, key: str, default: int) -> int:
        value = self.get_setting(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid integer for {key}: {value!r}, using {default}")
            return default

    def get_float(self, key: str, default: float) -> float:
        value = self.get_setting(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid number for {key}: {value!r}, using {default}")
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get_setting(key, default)
        if isinstance(value, bool):
            return value
        normalized = str(value).strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        logger.warning(f"Invalid boolean for {key}: {value!r}, using {default}")
        return default

    def now(self) -> datetime:
        """
        Get current time (real or fake based on APP_NOW_MODE).

        Returns:
            Current datetime (real or fake)
        """
        now_mode = self.get_setting("APP_NOW_MODE", "real")

        if now_mode == "fake":
            fake_now_str = self.get_setting("APP_FAKE_NOW")
            if fake_now_str:
                try:
                    # Parse YYYY-MM-DD format
                    fake_date = datetime.strptime(fake_now_str, "%Y-%m-%d").replace(tzinfo=timezone.utc)
                    logger.debug(f"Using fake time: {fake_date}")
                    return fake_date
                except ValueError:
                    logger.warning(f"Invalid APP_FAKE_NOW format: {fake_now_str}, using real time")

        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        """Seconds from a monotonic clock, for measuring durations."""
        return time.monotonic()

    def is_fake_time_enabled(self) -> bool:
        """Check if fake time mode is enabled."""
        return self.get_setting("APP_NOW_MODE", "real") == "fake"

    def get_fake_time(self) -> Optional[datetime]:
        """Get fake time if enabled, None otherwise."""
        if not self.is_fake_time_enabled():
            return None

        fake_now_str = self.get_setting("APP_FAKE_NOW")
        if fake_now_str:
            try:
                return datetime.strptime(fake_now_str, "%Y-%m-%d").replace(tzinfo=timezone.utc)
            except ValueError:
                logger.warning(f"Invalid APP_FAKE_NOW format: {fake_now_str}")

        return None


# Global instance
config_service = ConfigService()
