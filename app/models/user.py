"""
User models.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """Staff member or guardian account."""

    __tablename__ = "users"

    user_id: str = Field(primary_key=True, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255)
    role: str = Field(index=True, max_length=20)  # admin, teacher, parent
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
