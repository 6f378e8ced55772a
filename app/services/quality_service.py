"""
Data quality scoring for collected records.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from app.models.reporting import round_half_up
from app.services.errors import AggregationError

logger = logging.getLogger("app.quality")

_MISSING = object()


class QualityAnalyzer:
    """Scores the share of structurally valid records in a collection batch."""

    def score(self, attendance_records: Iterable[Any], progress_records: Iterable[Any]) -> int:
        """
        Calculate data quality score.

        An attendance record is valid when it has a non-empty status, a progress
        record when it has a percentage (0 included).

        Args:
            attendance_records: Attendance records (models or mappings)
            progress_records: Progress records (models or mappings)

        Returns:
            Score 0-100; 100 when there are no records at all

        Raises:
            AggregationError: if the input is not a list of records
        """
        attendance = as_records(attendance_records, "attendance")
        progress = as_records(progress_records, "progress")

        total_records = len(attendance) + len(progress)
        if total_records == 0:
            return 100

        valid_records = sum(1 for record in attendance if self.is_valid_attendance(record))
        valid_records += sum(1 for record in progress if self.is_valid_progress(record))

        score = round_half_up(valid_records / total_records * 100)
        logger.debug(f"Data quality: {valid_records}/{total_records} valid records, score={score}")
        return score

    def is_valid_attendance(self, record: Any) -> bool:
        status = _read_field(record, "status")
        return status is not _MISSING and status is not None and status != ""

    def is_valid_progress(self, record: Any) -> bool:
        value = _read_field(record, "percentage")
        return value is not _MISSING and value is not None


def as_records(records: Iterable[Any], kind: str) -> list:
    """
    Materialize a batch of records into a list.

    Raises:
        AggregationError: if the batch is not an iterable of records or cannot be read
    """
    if records is None or isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Iterable):
        raise AggregationError(f"Expected a list of {kind} records, got {type(records).__name__}")
    try:
        return list(records)
    except Exception as e:
        raise AggregationError(f"Could not read {kind} records: {type(e).__name__}: {e}") from e


def _read_field(record: Any, name: str) -> Any:
    """Read a field from a mapping or an object, rejecting anything else."""
    if isinstance(record, Mapping):
        return record.get(name, _MISSING)
    if record is None or isinstance(record, (str, bytes, int, float, bool, list, tuple)):
        raise AggregationError(f"Malformed record: {record!r}")
    return getattr(record, name, _MISSING)


# Global instance
quality_analyzer = QualityAnalyzer()
