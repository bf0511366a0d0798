"""Inventory models for the gift pool of a main event.

InventoryItem rows are the flat records the pick-up selector cascades over
(type, brand, gender, product, color, size). The brand is stored in the
``style`` column. InventoryHistory is the audit trail of every count change.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.event import Event

GENDERS = ("M", "W", "N/A")

INVENTORY_ACTIONS = (
    "initial",
    "checkin_distributed",
    "checkin_undone",
    "manual_adjustment",
    "post_event_count",
)


class InventoryItem(SQLModel, table=True):
    """A stock-keeping unit in a main event's gift pool.

    Attributes:
        id: Unique identifier (UUID).
        event_id: Foreign key to the main Event owning the pool.
        type: Category ("Hat", "Jacket", ...).
        style: Brand.
        product: Product name within the brand.
        gender: One of "M", "W" or "N/A".
        color: Color name.
        size: Size label.
        qty_warehouse: Units held back at the warehouse.
        qty_on_site: Units brought on site.
        current_inventory: Units still available for pick-up.
        is_active: Deactivated items are hidden from pick-up.
        history: Count changes, oldest first.
    """
    __table_args__ = (
        UniqueConstraint(
            "event_id", "type", "style", "product", "gender", "color", "size",
            name="uq_inventory_sku",
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    type: str
    style: str
    product: str | None = None
    gender: str = Field(default="N/A")
    color: str | None = None
    size: str
    qty_warehouse: int | None = None
    qty_on_site: int | None = None
    current_inventory: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    event: Optional["Event"] = Relationship(back_populates="inventory_items")
    history: list["InventoryHistory"] = Relationship(back_populates="inventory_item")


class InventoryHistory(SQLModel, table=True):
    """An immutable record of one inventory count change.

    Attributes:
        id: Unique identifier (UUID).
        inventory_id: Foreign key to the InventoryItem.
        action: One of INVENTORY_ACTIONS.
        quantity: Signed change (new_count - previous_count).
        previous_count: Count before the change.
        new_count: Count after the change.
        reason: Human-readable reason.
        performed_by: User ID (single user for now).
        timestamp: When the change happened.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    inventory_id: UUID = Field(foreign_key="inventoryitem.id", index=True)
    action: str
    quantity: int
    previous_count: int
    new_count: int
    reason: str = ""
    performed_by: int = Field(default=1)  # user_id
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    inventory_item: Optional[InventoryItem] = Relationship(back_populates="history")
