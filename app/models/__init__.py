from app.models.checkin import EventCheckin, GiftRecord
from app.models.event import Event
from app.models.guest import Guest
from app.models.inventory import InventoryHistory, InventoryItem
from app.models.preference import PickupFieldPreference

__all__ = [
    "Event",
    "Guest",
    "EventCheckin",
    "GiftRecord",
    "InventoryItem",
    "InventoryHistory",
    "PickupFieldPreference",
]
