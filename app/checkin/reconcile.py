"""Match a guest's check-ins and gifts against events.

Guest payloads carry ``eventCheckins`` entries whose ``eventId`` and
``giftsReceived[].inventoryId`` may be bare ids or populated objects. All
comparisons go through ``app.checkin.refs`` so both forms behave the same.
Missing guests, events or lists count as "nothing picked up".
"""

from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from app.checkin.cascade import find_item
from app.checkin.refs import expanded_value, ref_id


class PickupStatus(StrEnum):
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"


def _checkins(guest: Any) -> list[Mapping]:
    if not isinstance(guest, Mapping):
        return []
    return [entry for entry in guest.get("eventCheckins") or [] if isinstance(entry, Mapping)]


def _gifts(checkin: Any) -> list[Mapping]:
    if not isinstance(checkin, Mapping):
        return []
    return [gift for gift in checkin.get("giftsReceived") or [] if isinstance(gift, Mapping)]


def _quantity(gift: Mapping) -> int:
    value = gift.get("quantity")
    if value is None:
        return 1
    try:
        return int(value)
    except (TypeError, ValueError):
        return 1


def find_checkin_for_event(guest: Any, event_id: Any) -> Mapping | None:
    """
    First check-in entry of ``guest`` for the given event.

    ``event_id`` may be a bare id or an event object; entries are matched on
    their normalized ``eventId`` compared as strings.
    """
    target = ref_id(event_id)
    if target is None:
        return None
    for entry in _checkins(guest):
        if ref_id(entry.get("eventId")) == target:
            return entry
    return None


def gifts_for_event(guest: Any, event_id: Any) -> list[Mapping]:
    """Gift records of the guest's check-in for an event, [] if none."""
    return _gifts(find_checkin_for_event(guest, event_id))


def events_to_consider(event: Any) -> list[Any]:
    """
    Events whose pickups decide a guest's status for ``event``.

    A main event with secondary events is covered by those secondary events;
    any other event only covers itself.
    """
    if not isinstance(event, Mapping):
        return []
    if event.get("isMainEvent"):
        secondary = [child for child in event.get("secondaryEvents") or [] if child is not None]
        if secondary:
            return secondary
    return [event]


def gift_pickup_status(guest: Any, events: Iterable[Any] | None) -> PickupStatus:
    """
    Pickup status over a set of events.

    ``full`` when every event has a check-in with at least one gift, ``none``
    when no event does (or there is nothing to consider), else ``partial``.
    """
    considered = [event for event in events or [] if ref_id(event) is not None]
    if not considered:
        return PickupStatus.NONE
    picked_up = sum(1 for event in considered if gifts_for_event(guest, event))
    if picked_up == 0:
        return PickupStatus.NONE
    if picked_up == len(considered):
        return PickupStatus.FULL
    return PickupStatus.PARTIAL


def can_pick_up(status: PickupStatus) -> bool:
    """A fully picked-up scope offers no further pickup."""
    return status != PickupStatus.FULL


def seed_gift_selections(guest: Any, events: Iterable[Any] | None) -> dict[str, dict[str, Any]]:
    """
    Initial gift choice per event for an existing guest.

    Only the first gift of each check-in is used: the pick-up page edits a
    single gift slot per event even though a check-in may hold several.
    """
    seeds = {}
    for event in events or []:
        event_id = ref_id(event)
        if event_id is None:
            continue
        gifts = gifts_for_event(guest, event)
        if not gifts:
            continue
        inventory_id = ref_id(gifts[0].get("inventoryId"))
        if inventory_id is None:
            continue
        seeds[event_id] = {"inventoryId": inventory_id, "quantity": _quantity(gifts[0])}
    return seeds


def describe_gifts(guest: Any, event: Any, inventory: Iterable[Any] | None = None) -> str:
    """One-line summary of what a guest picked up at an event."""
    event_obj = event if isinstance(event, Mapping) else expanded_value(event) or {}
    name = event_obj.get("eventName") or "Unknown Event"
    gifts = gifts_for_event(guest, event)
    if not gifts:
        return f"{name} - No gift selected"

    parts = []
    for gift in gifts:
        raw = gift.get("inventoryId")
        item = expanded_value(raw) or find_item(inventory, raw)
        if item is None:
            parts.append("Unknown gift")
            continue
        text = str(item.get("type") or "")
        if item.get("style"):
            text += f" ({item['style']})"
        quantity = _quantity(gift)
        if quantity > 1:
            text += f" x{quantity}"
        parts.append(text)
    return f"{name} - {', '.join(parts)}"
