"""Event routes for creating and managing main and secondary events."""
import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, SQLModel, select

from app.checkin.serializers import event_to_dict
from app.checkin.service import checkin_context
from app.core.database import get_session
from app.models import Event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


class EventCreate(SQLModel):
    event_name: str
    contract_number: str
    start_time: datetime
    end_time: datetime | None = None
    allow_multiple_gifts: bool = False


def get_event_or_404(session: Session, event_id: UUID) -> Event:
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def _new_event(data: EventCreate, **extra) -> Event:
    return Event(
        event_name=data.event_name.strip(),
        contract_number=data.contract_number.strip().upper(),
        start_time=data.start_time,
        end_time=data.end_time,
        allow_multiple_gifts=data.allow_multiple_gifts,
        **extra,
    )


@router.post("", status_code=201)
async def create_event(data: EventCreate, session: Session = Depends(get_session)):
    """
    Create a main event.

    Main events own the guest list and inventory pool. The contract number
    is stored upper-cased.
    """
    event = _new_event(data, is_main_event=True)
    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info(f"Created event {event.event_name} ({event.contract_number})")
    return event_to_dict(event)


@router.get("")
async def list_events(session: Session = Depends(get_session)):
    """
    List active main events with their secondary events.

    Sorted by start time, soonest first. Archived events are listed
    separately under /events/archive.
    """
    statement = (
        select(Event)
        .where(Event.is_main_event == True)  # noqa: E712
        .where(Event.is_archived == False)  # noqa: E712
        .order_by(Event.start_time)
    )
    return [event_to_dict(event) for event in session.exec(statement).all()]


@router.get("/archive")
async def archived_events(session: Session = Depends(get_session)):
    """List archived main events, most recent first."""
    statement = (
        select(Event)
        .where(Event.is_main_event == True)  # noqa: E712
        .where(Event.is_archived == True)  # noqa: E712
        .order_by(Event.start_time.desc())
    )
    return [event_to_dict(event) for event in session.exec(statement).all()]


@router.get("/{event_id}")
async def event_detail(event_id: UUID, session: Session = Depends(get_session)):
    """
    Get a single event.

    Secondary events also carry their parent event under ``parentEvent``.
    """
    event = get_event_or_404(session, event_id)
    data = event_to_dict(event)
    if event.parent_event is not None:
        data["parentEvent"] = event_to_dict(event.parent_event, include_secondary=False)
    return data


@router.post("/{event_id}/secondary", status_code=201)
async def create_secondary_event(
    event_id: UUID,
    data: EventCreate,
    session: Session = Depends(get_session),
):
    """
    Add a secondary event under a main event.

    Secondary events share the main event's guests and inventory. Returns
    400 when the parent is itself a secondary event or is archived.
    """
    parent = get_event_or_404(session, event_id)
    if not parent.is_main_event:
        raise HTTPException(status_code=400, detail="Secondary events cannot have children")
    if parent.is_archived:
        raise HTTPException(status_code=400, detail="Cannot modify archived event")

    event = _new_event(data, is_main_event=False, parent_event_id=parent.id)
    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info(f"Added secondary event {event.event_name} to {parent.event_name}")
    return event_to_dict(event, include_secondary=False)


@router.get("/{event_id}/context")
async def event_checkin_context(event_id: UUID, session: Session = Depends(get_session)):
    """
    Check-in context for an event.

    Lists the events a pickup here covers (``multi`` mode when more than
    one) and the inventory pool shared by all of them.
    """
    event = get_event_or_404(session, event_id)
    return checkin_context(session, event)


@router.post("/{event_id}/archive")
async def archive_event(event_id: UUID, session: Session = Depends(get_session)):
    """
    Archive event (move to read-only).

    Archived events reject new guests, inventory, check-ins and gift changes.
    """
    event = get_event_or_404(session, event_id)
    event.is_archived = True
    session.add(event)
    session.commit()
    session.refresh(event)
    return event_to_dict(event)


@router.post("/{event_id}/unarchive")
async def unarchive_event(event_id: UUID, session: Session = Depends(get_session)):
    """Restore an archived event to active status."""
    event = get_event_or_404(session, event_id)
    event.is_archived = False
    session.add(event)
    session.commit()
    session.refresh(event)
    return event_to_dict(event)
