"""Stored pick-up selector preferences."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class PickupFieldPreference(SQLModel, table=True):
    """Which inventory attributes the pick-up selector cascades over.

    ``field_config`` is the ordered list of ``{"name": ..., "included": ...}``
    entries. It is read once per request and handed to the selector; the
    selector never looks it up on its own.

    Attributes:
        id: Unique identifier (UUID).
        user_id: Owner of the preference (single user for now).
        field_config: Ordered field configuration as JSON.
        updated_at: Last time the preference was saved.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: int = Field(default=1, index=True, unique=True)
    field_config: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
