"""Render database rows in the API's JSON shape.

Foreign keys come out as bare string ids by default. With ``populate=True``
they are expanded into the referenced object, the way the API returns them
from endpoints that join the related rows.
"""

from datetime import datetime

from app.models import Event, EventCheckin, GiftRecord, Guest, InventoryItem


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _naive(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; fresh rows still carry tzinfo.
    return value.replace(tzinfo=None)


def _id(value) -> str | None:
    return str(value) if value is not None else None


def inventory_to_dict(item: InventoryItem) -> dict:
    return {
        "_id": str(item.id),
        "eventId": str(item.event_id),
        "type": item.type,
        "style": item.style,
        "product": item.product,
        "gender": item.gender,
        "color": item.color,
        "size": item.size,
        "qtyWarehouse": item.qty_warehouse,
        "qtyOnSite": item.qty_on_site,
        "currentInventory": item.current_inventory,
        "isActive": item.is_active,
    }


def event_to_dict(event: Event, include_secondary: bool = True) -> dict:
    """Event payload; main events list their active secondary events."""
    data = {
        "_id": str(event.id),
        "eventName": event.event_name,
        "contractNumber": event.contract_number,
        "eventStart": _iso(event.start_time),
        "eventEnd": _iso(event.end_time),
        "parentEventId": _id(event.parent_event_id),
        "isMainEvent": event.is_main_event,
        "allowMultipleGifts": event.allow_multiple_gifts,
        "isActive": event.is_active,
        "isArchived": event.is_archived,
    }
    if include_secondary:
        children = sorted(
            (child for child in event.secondary_events if child.is_active),
            key=lambda child: _naive(child.start_time),
        )
        data["secondaryEvents"] = [
            event_to_dict(child, include_secondary=False) for child in children
        ]
    return data


def gift_to_dict(gift: GiftRecord, populate: bool = False) -> dict:
    if populate and gift.inventory_item is not None:
        inventory_ref = inventory_to_dict(gift.inventory_item)
    else:
        inventory_ref = str(gift.inventory_id)
    return {
        "inventoryId": inventory_ref,
        "quantity": gift.quantity,
        "distributedAt": _iso(gift.distributed_at),
    }


def checkin_to_dict(checkin: EventCheckin, populate: bool = False) -> dict:
    if populate and checkin.event is not None:
        event_ref = event_to_dict(checkin.event, include_secondary=False)
    else:
        event_ref = str(checkin.event_id)
    gifts = sorted(checkin.gifts, key=lambda gift: gift.position)
    return {
        "_id": str(checkin.id),
        "eventId": event_ref,
        "guestId": str(checkin.guest_id),
        "checkedIn": checkin.is_valid,
        "checkedInAt": _iso(checkin.checked_in_at),
        "notes": checkin.notes,
        "giftsReceived": [gift_to_dict(gift, populate) for gift in gifts],
    }


def guest_to_dict(guest: Guest, populate: bool = False) -> dict:
    """Guest payload with its valid check-ins, oldest first."""
    checkins = sorted(guest.valid_checkins, key=lambda checkin: _naive(checkin.checked_in_at))
    return {
        "_id": str(guest.id),
        "eventId": str(guest.event_id),
        "firstName": guest.first_name,
        "lastName": guest.last_name,
        "email": guest.email,
        "jobTitle": guest.job_title,
        "company": guest.company,
        "attendeeType": guest.attendee_type,
        "notes": guest.notes,
        "hasCheckedIn": guest.has_checked_in,
        "eventCheckins": [checkin_to_dict(checkin, populate) for checkin in checkins],
    }
