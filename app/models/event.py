"""Event model for main events and their secondary events.

A main event owns the guest list and the inventory pool. Secondary events
(sessions, dinners, side activities) hang off a main event through
``parent_event_id`` and share its guests and inventory, but each one gets
its own check-in and gift pickup.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.checkin import EventCheckin
    from app.models.guest import Guest
    from app.models.inventory import InventoryItem


class Event(SQLModel, table=True):
    """A main or secondary event.

    Attributes:
        id: Unique identifier (UUID).
        event_name: Display name.
        contract_number: Contract reference, stored upper-cased.
        start_time: When the event starts.
        end_time: When the event ends, if known.
        parent_event_id: For secondary events, the owning main event.
        is_main_event: True for top-level events.
        allow_multiple_gifts: Whether more than one gift may be handed out
            per check-in. The pick-up page still edits a single gift slot.
        is_active: Inactive secondary events are left out of check-in.
        is_archived: Archived events are read-only.
        secondary_events: Child events of a main event.
        guests: Guests invited to this (main) event.
        inventory_items: Inventory pool of this (main) event.
        checkins: Check-ins recorded against this event.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_name: str
    contract_number: str = Field(index=True)
    start_time: datetime
    end_time: datetime | None = None
    parent_event_id: UUID | None = Field(default=None, foreign_key="event.id", index=True)
    is_main_event: bool = Field(default=True)
    allow_multiple_gifts: bool = Field(default=False)
    is_active: bool = Field(default=True)
    is_archived: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    parent_event: Optional["Event"] = Relationship(
        back_populates="secondary_events",
        sa_relationship_kwargs={"remote_side": "Event.id"},
    )
    secondary_events: list["Event"] = Relationship(back_populates="parent_event")
    guests: list["Guest"] = Relationship(back_populates="event")
    inventory_items: list["InventoryItem"] = Relationship(back_populates="event")
    checkins: list["EventCheckin"] = Relationship(back_populates="event")

    @property
    def main_event_id(self) -> UUID:
        """Id of the event that owns guests and inventory for this one."""
        if self.is_main_event or self.parent_event_id is None:
            return self.id
        return self.parent_event_id
