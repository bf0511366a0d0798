"""Guest model for people on an event's guest list."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.checkin import EventCheckin
    from app.models.event import Event


class Guest(SQLModel, table=True):
    """A person on the guest list of a main event.

    Guests belong to the main event; secondary events reuse the same list.
    Per-event attendance and gifts are tracked through ``checkins``.

    Attributes:
        id: Unique identifier (UUID).
        event_id: Foreign key to the owning main Event.
        first_name: Given name.
        last_name: Family name.
        email: Email address, stored lower-cased.
        job_title: Optional job title shown under the name.
        company: Optional company.
        attendee_type: Free-form attendee category ("General", "VIP", ...).
        notes: Staff notes.
        has_checked_in: True once the guest has at least one valid check-in.
        event: Reference to the owning Event.
        checkins: All check-ins, including undone ones.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    first_name: str
    last_name: str
    email: str | None = Field(default=None, index=True)
    job_title: str | None = None
    company: str | None = None
    attendee_type: str | None = None
    notes: str | None = None
    has_checked_in: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    event: Optional["Event"] = Relationship(back_populates="guests")
    checkins: list["EventCheckin"] = Relationship(back_populates="guest")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def valid_checkins(self) -> list["EventCheckin"]:
        return [c for c in self.checkins if c.is_valid]
