"""
Key-value storage model.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, LargeBinary
from sqlmodel import SQLModel, Field


class KeyValueEntry(SQLModel, table=True):
    """Opaque value stored under a string key."""
    
    __tablename__ = "key_value_entries"
    
    key: str = Field(primary_key=True, max_length=100)
    value: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
