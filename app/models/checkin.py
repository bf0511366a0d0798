"""Check-in and gift records.

An EventCheckin is a guest's attendance at one event; its GiftRecords are
the inventory handed out at that check-in. Undoing a check-in keeps the row
for the audit trail and flips ``is_valid``.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.event import Event
    from app.models.guest import Guest
    from app.models.inventory import InventoryItem


class EventCheckin(SQLModel, table=True):
    """A guest's check-in for one event.

    Attributes:
        id: Unique identifier (UUID).
        guest_id: Foreign key to the Guest.
        event_id: Foreign key to the Event checked into.
        checked_in_at: When the check-in was recorded.
        is_valid: False once the check-in has been undone.
        undo_reason: Reason given when undoing.
        undone_at: When the check-in was undone.
        notes: Staff notes.
        gifts: Gifts handed out at this check-in.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    guest_id: UUID = Field(foreign_key="guest.id", index=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    checked_in_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_valid: bool = Field(default=True)
    undo_reason: str | None = None
    undone_at: datetime | None = None
    notes: str | None = None

    # Relationships
    guest: Optional["Guest"] = Relationship(back_populates="checkins")
    event: Optional["Event"] = Relationship(back_populates="checkins")
    gifts: list["GiftRecord"] = Relationship(back_populates="checkin")


class GiftRecord(SQLModel, table=True):
    """An inventory item handed out at a check-in.

    Attributes:
        id: Unique identifier (UUID).
        checkin_id: Foreign key to the EventCheckin.
        inventory_id: Foreign key to the InventoryItem given out.
        quantity: Number of units.
        position: Slot of the gift within its check-in, 0 first. Editing a
            gift keeps its slot.
        distributed_at: When the gift was handed out or last changed.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    checkin_id: UUID = Field(foreign_key="eventcheckin.id", index=True)
    inventory_id: UUID = Field(foreign_key="inventoryitem.id", index=True)
    quantity: int = Field(default=1)
    position: int = Field(default=0)
    distributed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    checkin: Optional[EventCheckin] = Relationship(back_populates="gifts")
    inventory_item: Optional["InventoryItem"] = Relationship()
