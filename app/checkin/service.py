"""Check-in, gift distribution and inventory bookkeeping.

Routes call into this module for anything that changes inventory counts.
Every count change writes an InventoryHistory row. Decisions about which
events a pickup covers and whether a guest may pick up again are made on the
serialized guest/event payloads through ``app.checkin.reconcile``, the same
way the pick-up page sees them.
"""
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy import func
from sqlmodel import Session, select

from app.checkin.cascade import DEFAULT_FIELD_CONFIG, FieldConfig
from app.checkin.reconcile import (
    can_pick_up,
    events_to_consider,
    find_checkin_for_event,
    gift_pickup_status,
)
from app.checkin.refs import ref_id
from app.checkin.serializers import event_to_dict, guest_to_dict, inventory_to_dict
from app.core.config import settings
from app.models import (
    Event,
    EventCheckin,
    GiftRecord,
    Guest,
    InventoryHistory,
    InventoryItem,
    PickupFieldPreference,
)

logger = logging.getLogger(__name__)


class CheckinError(Exception):
    """A check-in or inventory operation that cannot be carried out."""


class AlreadyPickedUpError(CheckinError):
    """The guest already picked up gifts for every event in scope."""


class InsufficientInventoryError(CheckinError):
    """More units requested than are available."""


class CheckinUndoneError(CheckinError):
    """The check-in has already been undone."""


class InventoryNotFoundError(CheckinError):
    """The inventory item is missing, inactive or outside the event's pool."""


class EventArchivedError(CheckinError):
    """The event or its main event is archived and read-only."""


class GiftRequest(BaseModel):
    """One gift asked for at check-in."""
    inventory_id: UUID
    quantity: int = Field(default=1, ge=1)


# Preferences


def default_field_config() -> FieldConfig:
    """Field configuration from settings, or the built-in default if unusable."""
    try:
        return FieldConfig.parse(settings.pickup_fields)
    except ValidationError as e:
        logger.warning(f"Invalid PICKUP_FIELDS setting, using default: {e}")
        return DEFAULT_FIELD_CONFIG


def load_field_config(session: Session, user_id: int = 1) -> FieldConfig:
    """Stored pick-up field configuration for a user, falling back to the default."""
    preference = session.exec(
        select(PickupFieldPreference).where(PickupFieldPreference.user_id == user_id)
    ).first()
    if preference is None or not preference.field_config:
        return default_field_config()
    try:
        return FieldConfig(entries=preference.field_config)
    except ValidationError as e:
        logger.warning(f"Stored pick-up fields for user {user_id} are invalid: {e}")
        return default_field_config()


def save_field_config(session: Session, config: FieldConfig, user_id: int = 1) -> FieldConfig:
    preference = session.exec(
        select(PickupFieldPreference).where(PickupFieldPreference.user_id == user_id)
    ).first()
    if preference is None:
        preference = PickupFieldPreference(user_id=user_id)
    preference.field_config = [entry.model_dump() for entry in config.entries]
    preference.updated_at = datetime.now(UTC)
    session.add(preference)
    session.commit()
    logger.info(f"Saved pick-up fields for user {user_id}: {config.field_order()}")
    return config


# Inventory


def active_inventory(session: Session, main_event_id: UUID) -> list[InventoryItem]:
    """Active items of a main event's pool, ordered for display."""
    statement = (
        select(InventoryItem)
        .where(InventoryItem.event_id == main_event_id)
        .where(InventoryItem.is_active == True)  # noqa: E712
        .order_by(InventoryItem.type, InventoryItem.style, InventoryItem.size)
    )
    return list(session.exec(statement).all())


def adjust_inventory(
    session: Session,
    item: InventoryItem,
    new_count: int,
    action: str,
    reason: str = "",
) -> InventoryHistory:
    """Set an item's available count and record the change. Does not commit."""
    previous = item.current_inventory or 0
    entry = InventoryHistory(
        inventory_id=item.id,
        action=action,
        quantity=new_count - previous,
        previous_count=previous,
        new_count=new_count,
        reason=reason,
    )
    item.current_inventory = new_count
    session.add(item)
    session.add(entry)
    return entry


def create_inventory_item(session: Session, event: Event, **fields) -> InventoryItem:
    """Add an item to the pool of ``event``'s main event, available count = on-site count."""
    item = InventoryItem(event_id=event.main_event_id, **fields)
    on_site = item.qty_on_site or 0
    item.current_inventory = 0
    session.add(item)
    session.flush()
    adjust_inventory(session, item, on_site, "initial", "Initial inventory")
    session.commit()
    session.refresh(item)
    logger.info(f"Added inventory {item.type} / {item.style} / {item.size} ({on_site} on site)")
    return item


def distributed_quantity(session: Session, item: InventoryItem) -> int:
    """Units of ``item`` handed out over all valid check-ins."""
    statement = (
        select(func.coalesce(func.sum(GiftRecord.quantity), 0))
        .join(EventCheckin, GiftRecord.checkin_id == EventCheckin.id)
        .where(GiftRecord.inventory_id == item.id)
        .where(EventCheckin.is_valid == True)  # noqa: E712
    )
    return int(session.exec(statement).one())


def recalculate_current_inventory(session: Session, item: InventoryItem) -> int:
    """
    Recompute an item's available count from its on-site count.

    Available = max(0, on-site - distributed). Writes a history row only when
    the count actually changes. Does not commit.
    """
    new_count = max(0, (item.qty_on_site or 0) - distributed_quantity(session, item))
    if new_count != item.current_inventory:
        adjust_inventory(
            session, item, new_count, "manual_adjustment", "Recalculated from check-ins"
        )
    return new_count


def _pool_item(session: Session, event: Event, inventory_id: UUID) -> InventoryItem:
    item = session.get(InventoryItem, inventory_id)
    if item is None or not item.is_active or item.event_id != event.main_event_id:
        raise InventoryNotFoundError(f"Inventory item not found: {inventory_id}")
    return item


# Check-in


def ensure_open(event: Event) -> None:
    """Raise EventArchivedError when ``event`` or its main event is archived."""
    parent = event.parent_event
    if event.is_archived or (parent is not None and parent.is_archived):
        raise EventArchivedError(f"{event.event_name} is archived")


def pickup_events(session: Session, event: Event) -> list[Event]:
    """Event rows a pickup at ``event`` covers."""
    rows = []
    for target in events_to_consider(event_to_dict(event)):
        row = session.get(Event, UUID(ref_id(target)))
        if row is not None:
            rows.append(row)
    return rows


def checkin_context(session: Session, event: Event) -> dict:
    """Events offered at check-in and the shared inventory pool."""
    event_data = event_to_dict(event)
    available = events_to_consider(event_data)
    inventory = active_inventory(session, event.main_event_id)
    return {
        "currentEvent": event_data,
        "availableEvents": available,
        "checkinMode": "multi" if len(available) > 1 else "single",
        "inventory": [inventory_to_dict(item) for item in inventory],
    }


def check_in_guest(
    session: Session,
    guest: Guest,
    event: Event,
    selections: Mapping[str, Sequence[GiftRequest]],
    notes: str | None = None,
) -> dict:
    """
    Check a guest in and hand out gifts for the events ``event`` covers.

    ``selections`` maps event id -> requested gifts. Events without a
    requested gift and events the guest is already checked into are skipped
    and reported in ``results``. Inventory is validated for the whole request
    before anything is written.

    Raises:
        AlreadyPickedUpError: every covered event already has a gift.
        CheckinError: nothing to check in, or several gifts for an event that
            allows only one.
        InventoryNotFoundError: a requested item is not in the event's pool.
        InsufficientInventoryError: not enough units left.
        EventArchivedError: the event is archived.
    """
    ensure_open(event)
    guest_data = guest_to_dict(guest)
    scope = pickup_events(session, event)
    scope_data = [event_to_dict(row, include_secondary=False) for row in scope]

    status = gift_pickup_status(guest_data, scope_data)
    if not can_pick_up(status):
        logger.warning(f"Refused second pickup for {guest.full_name} at {event.event_name}")
        raise AlreadyPickedUpError(
            f"{guest.full_name} has already picked up gifts for {event.event_name}"
        )

    results = []
    planned: list[tuple[Event, list[GiftRequest]]] = []
    totals: dict[UUID, int] = {}
    for row in scope:
        requested = list(selections.get(str(row.id)) or [])
        if find_checkin_for_event(guest_data, row.id) is not None:
            results.append({
                "eventId": str(row.id),
                "eventName": row.event_name,
                "success": False,
                "message": "Already checked into this event",
            })
            continue
        if not requested:
            results.append({
                "eventId": str(row.id),
                "eventName": row.event_name,
                "success": False,
                "message": "No gift selected",
            })
            continue
        if len(requested) > 1 and not row.allow_multiple_gifts:
            raise CheckinError(f"{row.event_name} allows only one gift per guest")
        for gift in requested:
            totals[gift.inventory_id] = totals.get(gift.inventory_id, 0) + gift.quantity
        planned.append((row, requested))

    if not planned:
        raise CheckinError("No gift selected for any event")

    items = {}
    for inventory_id, quantity in totals.items():
        item = _pool_item(session, event, inventory_id)
        if item.current_inventory < quantity:
            raise InsufficientInventoryError(
                f"Insufficient inventory for {item.style}. "
                f"Available: {item.current_inventory}, Requested: {quantity}"
            )
        items[inventory_id] = item

    for row, requested in planned:
        checkin = EventCheckin(guest_id=guest.id, event_id=row.id, notes=notes)
        session.add(checkin)
        session.flush()
        for position, gift in enumerate(requested):
            session.add(
                GiftRecord(
                    checkin_id=checkin.id,
                    inventory_id=gift.inventory_id,
                    quantity=gift.quantity,
                    position=position,
                )
            )
        results.append({
            "eventId": str(row.id),
            "eventName": row.event_name,
            "success": True,
            "gifts": [
                {"inventoryId": str(gift.inventory_id), "quantity": gift.quantity}
                for gift in requested
            ],
        })

    for inventory_id, quantity in totals.items():
        item = items[inventory_id]
        adjust_inventory(
            session,
            item,
            item.current_inventory - quantity,
            "checkin_distributed",
            f"Distributed to {guest.full_name} across {len(planned)} events",
        )

    guest.has_checked_in = True
    session.add(guest)
    session.commit()
    session.refresh(guest)

    new_status = gift_pickup_status(guest_to_dict(guest), scope_data)
    logger.info(
        f"Checked in {guest.full_name} to {len(planned)} event(s) at {event.event_name}, "
        f"pickup now {new_status}"
    )
    return {
        "success": True,
        "message": f"{guest.full_name} checked into {len(planned)} events successfully!",
        "results": results,
        "status": new_status,
    }


def undo_checkin(session: Session, checkin: EventCheckin, reason: str = "") -> EventCheckin:
    """Invalidate a check-in and put its gifts back into inventory."""
    if not checkin.is_valid:
        raise CheckinUndoneError("Check-in already undone")

    for gift in checkin.gifts:
        item = session.get(InventoryItem, gift.inventory_id)
        if item is None:
            continue
        adjust_inventory(
            session,
            item,
            item.current_inventory + gift.quantity,
            "checkin_undone",
            f"Restored from undone check-in: {reason}",
        )

    checkin.is_valid = False
    checkin.undo_reason = reason
    checkin.undone_at = datetime.now(UTC)
    session.add(checkin)
    session.flush()

    guest = checkin.guest
    if guest is not None and not guest.valid_checkins:
        guest.has_checked_in = False
        session.add(guest)

    session.commit()
    session.refresh(checkin)
    logger.info(f"Undid check-in {checkin.id}: {reason}")
    return checkin


def modify_gift(
    session: Session,
    checkin: EventCheckin,
    inventory_id: UUID,
    quantity: int = 1,
    commit: bool = True,
) -> GiftRecord:
    """
    Replace the gift handed out at a check-in.

    Only the gift in the first slot is edited, matching the single gift slot
    of the pick-up page. The old item gets its units back before the new one
    is charged, so swapping within the same item only needs the difference.
    With ``commit=False`` the change is only flushed, so the caller can
    commit or roll back several changes together.
    """
    if not checkin.is_valid:
        raise CheckinUndoneError("Cannot change the gift of an undone check-in")
    ensure_open(checkin.event)

    new_item = _pool_item(session, checkin.event, inventory_id)
    gifts = sorted(checkin.gifts, key=lambda gift: gift.position)
    current = gifts[0] if gifts else None

    if current and current.inventory_id == inventory_id and current.quantity == quantity:
        return current

    returned = current.quantity if current and current.inventory_id == inventory_id else 0
    if new_item.current_inventory + returned < quantity:
        raise InsufficientInventoryError(
            f"Insufficient inventory for {new_item.style}. "
            f"Available: {new_item.current_inventory + returned}, Requested: {quantity}"
        )

    guest_name = checkin.guest.full_name if checkin.guest else "guest"
    if current is not None:
        old_item = session.get(InventoryItem, current.inventory_id)
        if old_item is not None:
            adjust_inventory(
                session,
                old_item,
                old_item.current_inventory + current.quantity,
                "checkin_undone",
                f"Gift changed for {guest_name}",
            )
        current.inventory_id = inventory_id
        current.quantity = quantity
        current.distributed_at = datetime.now(UTC)
    else:
        current = GiftRecord(checkin_id=checkin.id, inventory_id=inventory_id, quantity=quantity)

    adjust_inventory(
        session,
        new_item,
        new_item.current_inventory - quantity,
        "checkin_distributed",
        f"Gift changed for {guest_name}",
    )
    session.add(current)
    if commit:
        session.commit()
        session.refresh(current)
    else:
        session.flush()
    logger.info(f"Changed gift on check-in {checkin.id} to {inventory_id} x{quantity}")
    return current
