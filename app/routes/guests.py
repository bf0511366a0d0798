"""Guest routes for managing an event's guest list."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, SQLModel, select

from app.checkin.reconcile import (
    can_pick_up,
    describe_gifts,
    events_to_consider,
    gift_pickup_status,
    seed_gift_selections,
)
from app.checkin.serializers import event_to_dict, guest_to_dict, inventory_to_dict
from app.core.database import get_session
from app.models import Guest, InventoryItem
from app.routes.events import get_event_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_id}/guests", tags=["guests"])


class GuestCreate(SQLModel):
    first_name: str
    last_name: str
    email: str | None = None
    job_title: str | None = None
    company: str | None = None
    attendee_type: str | None = None
    notes: str | None = None


def get_guest_or_404(session: Session, event_id: UUID, guest_id: UUID) -> Guest:
    """Guest on the list of ``event_id``'s main event, or 404."""
    event = get_event_or_404(session, event_id)
    guest = session.get(Guest, guest_id)
    if not guest or guest.event_id != event.main_event_id:
        raise HTTPException(status_code=404, detail="Guest not found")
    return guest


@router.post("", status_code=201)
async def create_guest(
    event_id: UUID,
    data: GuestCreate,
    session: Session = Depends(get_session),
):
    """
    Add a guest to an event's guest list.

    Guests added through a secondary event land on the main event's list.
    Returns 400 for archived events or a duplicate email on the same list.
    """
    event = get_event_or_404(session, event_id)
    if event.is_archived:
        raise HTTPException(status_code=400, detail="Cannot modify archived event")

    email = data.email.strip().lower() if data.email and data.email.strip() else None
    if email:
        duplicate = session.exec(
            select(Guest)
            .where(Guest.event_id == event.main_event_id)
            .where(Guest.email == email)
        ).first()
        if duplicate:
            raise HTTPException(status_code=400, detail=f"Guest with email {email} already exists")

    guest = Guest(
        event_id=event.main_event_id,
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        email=email,
        job_title=data.job_title,
        company=data.company,
        attendee_type=data.attendee_type,
        notes=data.notes,
    )
    session.add(guest)
    session.commit()
    session.refresh(guest)
    logger.info(f"Added guest {guest.full_name} to {event.event_name}")
    return guest_to_dict(guest)


@router.get("")
async def list_guests(
    event_id: UUID,
    populate: bool = False,
    session: Session = Depends(get_session),
):
    """
    List the guests of an event with their pickup status.

    ``pickupStatus`` covers the events a pickup at ``event_id`` covers. With
    ``populate=true`` check-in references are expanded into objects.
    """
    event = get_event_or_404(session, event_id)
    scope = events_to_consider(event_to_dict(event))
    statement = (
        select(Guest)
        .where(Guest.event_id == event.main_event_id)
        .order_by(Guest.last_name, Guest.first_name)
    )
    guests = []
    for guest in session.exec(statement).all():
        data = guest_to_dict(guest, populate=populate)
        data["pickupStatus"] = gift_pickup_status(data, scope)
        guests.append(data)
    return guests


@router.get("/{guest_id}")
async def guest_detail(
    event_id: UUID,
    guest_id: UUID,
    populate: bool = False,
    session: Session = Depends(get_session),
):
    """Get a single guest with its check-ins."""
    guest = get_guest_or_404(session, event_id, guest_id)
    return guest_to_dict(guest, populate=populate)


@router.get("/{guest_id}/status")
async def guest_pickup_status(
    event_id: UUID,
    guest_id: UUID,
    session: Session = Depends(get_session),
):
    """
    Gift pickup status of a guest for an event.

    Returns the status (``none``, ``partial`` or ``full``), whether another
    pickup is allowed, the gift seed for each covered event and a one-line
    summary per covered event.
    """
    event = get_event_or_404(session, event_id)
    guest = get_guest_or_404(session, event_id, guest_id)
    guest_data = guest_to_dict(guest)
    scope = events_to_consider(event_to_dict(event))
    pool = session.exec(
        select(InventoryItem).where(InventoryItem.event_id == event.main_event_id)
    ).all()
    inventory = [inventory_to_dict(item) for item in pool]
    status = gift_pickup_status(guest_data, scope)
    return {
        "guestId": str(guest.id),
        "status": status,
        "canPickUp": can_pick_up(status),
        "seeds": seed_gift_selections(guest_data, scope),
        "summary": [describe_gifts(guest_data, ev, inventory) for ev in scope],
    }
