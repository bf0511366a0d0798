"""Check-in routes: the pick-up page, check-ins, undo and gift changes."""
import logging
from pathlib import Path
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlmodel import Session, SQLModel, select

from app.checkin.cascade import (
    FIELD_NAMES,
    FieldConfig,
    apply_selection,
    field_label,
    select_for_cascade,
    selections_from_item,
)
from app.checkin.reconcile import (
    can_pick_up,
    describe_gifts,
    events_to_consider,
    find_checkin_for_event,
    gift_pickup_status,
    seed_gift_selections,
)
from app.checkin.refs import ref_id
from app.checkin.serializers import (
    checkin_to_dict,
    event_to_dict,
    guest_to_dict,
    inventory_to_dict,
)
from app.checkin.service import (
    CheckinError,
    GiftRequest,
    InventoryNotFoundError,
    active_inventory,
    check_in_guest,
    modify_gift,
    undo_checkin,
)
from app.core.database import get_session
from app.models import EventCheckin
from app.routes.events import get_event_or_404
from app.routes.guests import get_guest_or_404
from app.routes.preferences import get_field_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkins"])
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

# Form and query parameters for the pick-up page are "<event id>__<name>".
PARAM_SEPARATOR = "__"


class EventGifts(SQLModel):
    event_id: UUID
    gifts: list[GiftRequest] = []


class CheckinCreate(SQLModel):
    guest_id: UUID
    event_id: UUID
    checkins: list[EventGifts]
    notes: str | None = None


class CheckinUndo(SQLModel):
    reason: str = ""


def wants_json(request: Request) -> bool:
    """Check if the client prefers JSON response (AJAX request)."""
    accept = request.headers.get("accept", "")
    return "application/json" in accept


def _http_error(error: CheckinError) -> HTTPException:
    status_code = 404 if isinstance(error, InventoryNotFoundError) else 400
    return HTTPException(status_code=status_code, detail=str(error))


def get_checkin_or_404(session: Session, checkin_id: UUID) -> EventCheckin:
    checkin = session.get(EventCheckin, checkin_id)
    if not checkin:
        raise HTTPException(status_code=404, detail="Check-in not found")
    return checkin


def _param(event_id: str, name: str) -> str:
    return f"{event_id}{PARAM_SEPARATOR}{name}"


def _build_selectors(
    params,
    scope: list,
    inventory: list[dict],
    config: FieldConfig,
    seeds: dict[str, dict],
) -> list[dict]:
    """One cascading selector per covered event, from query params or gift seeds."""
    order = config.field_order()
    changed = params.get("changed") or ""
    selectors = []
    for event in scope:
        event_id = ref_id(event)
        raw = {field: params.get(_param(event_id, field), "") for field in FIELD_NAMES}
        seed_id = seeds.get(event_id, {}).get("inventoryId")
        selected_id = params.get(_param(event_id, "item")) or seed_id

        prefix, _, changed_field = changed.partition(PARAM_SEPARATOR)
        if prefix == event_id and changed_field:
            raw = apply_selection(order, raw, changed_field, raw.get(changed_field, ""))
        elif selected_id and not any(raw.get(field) for field in order):
            raw = selections_from_item(inventory, order, selected_id)

        selectors.append({
            "event": event if isinstance(event, dict) else {"_id": event_id},
            "eventId": event_id,
            "prefix": _param(event_id, ""),
            "seedId": seed_id,
            "result": select_for_cascade(inventory, order, raw, selected_id=selected_id),
        })
    return selectors


@router.get("/events/{event_id}/checkin/{guest_id}", response_class=HTMLResponse)
async def checkin_page(
    event_id: UUID,
    guest_id: UUID,
    request: Request,
    config: FieldConfig = Depends(get_field_config),
    session: Session = Depends(get_session),
):
    """
    Display the pick-up page for a guest.

    Shows one gift selector per event the pickup covers. Selectors of events
    the guest already picked up at open on the existing gift. Returns JSON
    with the same content when Accept: application/json is sent.
    """
    event = get_event_or_404(session, event_id)
    guest = get_guest_or_404(session, event_id, guest_id)

    guest_data = guest_to_dict(guest)
    scope = events_to_consider(event_to_dict(event))
    inventory = [inventory_to_dict(item) for item in active_inventory(session, event.main_event_id)]
    status = gift_pickup_status(guest_data, scope)
    seeds = seed_gift_selections(guest_data, scope)
    selectors = _build_selectors(request.query_params, scope, inventory, config, seeds)

    if wants_json(request):
        return JSONResponse({
            "guest": guest_data,
            "status": status.value,
            "canPickUp": can_pick_up(status),
            "selectors": [
                {
                    "eventId": selector["eventId"],
                    "eventName": selector["event"].get("eventName"),
                    "seedId": selector["seedId"],
                    **selector["result"].model_dump(),
                    "resolvedId": selector["result"].resolved_id,
                }
                for selector in selectors
            ],
        })

    return templates.TemplateResponse(
        request,
        "checkin.html",
        {
            "event": event_to_dict(event),
            "guest": guest_data,
            "status": status.value,
            "can_pick_up": can_pick_up(status),
            "selectors": selectors,
            "summary": [describe_gifts(guest_data, ev, inventory) for ev in scope],
            "labels": {field: field_label(field) for field in FIELD_NAMES},
        },
    )


@router.post("/events/{event_id}/checkin/{guest_id}")
async def submit_checkin_page(
    event_id: UUID,
    guest_id: UUID,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Submit the pick-up page.

    Events without a check-in get one with the chosen gift. Events already
    picked up have their gift replaced when a different item or quantity was
    chosen. Nothing is saved unless the whole submit succeeds.
    Redirects back to the page, or returns JSON for AJAX requests.
    """
    event = get_event_or_404(session, event_id)
    guest = get_guest_or_404(session, event_id, guest_id)
    form = await request.form()

    guest_data = guest_to_dict(guest)
    scope = events_to_consider(event_to_dict(event))
    seeds = seed_gift_selections(guest_data, scope)

    new_gifts: dict[str, list[GiftRequest]] = {}
    changes: list[tuple[UUID, GiftRequest]] = []
    for target in scope:
        target_id = ref_id(target)
        item_id = form.get(_param(target_id, "item"))
        if not item_id:
            continue
        existing = find_checkin_for_event(guest_data, target_id)
        seed = seeds.get(target_id, {})
        try:
            gift = GiftRequest(
                inventory_id=item_id,
                quantity=form.get(_param(target_id, "qty")) or seed.get("quantity") or 1,
            )
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid gift selection")

        if existing is None:
            new_gifts[target_id] = [gift]
        elif (seed.get("inventoryId"), seed.get("quantity")) != (
            str(gift.inventory_id),
            gift.quantity,
        ):
            changes.append((UUID(existing["_id"]), gift))

    # Gift changes are only flushed and commit together with the new check-ins.
    result = {"success": True, "results": []}
    try:
        for checkin_id, gift in changes:
            checkin = get_checkin_or_404(session, checkin_id)
            modify_gift(session, checkin, gift.inventory_id, gift.quantity, commit=False)
        if new_gifts:
            result = check_in_guest(session, guest, event, new_gifts)
        else:
            session.commit()
    except CheckinError as e:
        session.rollback()
        raise _http_error(e)

    if wants_json(request):
        return JSONResponse({**result, "changed": len(changes)})

    return RedirectResponse(f"/events/{event_id}/checkin/{guest_id}", status_code=303)


@router.post("/checkins")
async def create_checkin(data: CheckinCreate, session: Session = Depends(get_session)):
    """
    Check a guest in through the JSON API.

    ``checkins`` lists the gifts per covered event. Returns 400 when the
    guest already picked up everything, nothing was selected, or inventory
    runs short, and 404 for unknown guests, events or items.
    """
    event = get_event_or_404(session, data.event_id)
    guest = get_guest_or_404(session, data.event_id, data.guest_id)
    selections = {str(entry.event_id): entry.gifts for entry in data.checkins}
    try:
        return check_in_guest(session, guest, event, selections, notes=data.notes)
    except CheckinError as e:
        raise _http_error(e)


@router.get("/checkins")
async def list_checkins(event_id: UUID, session: Session = Depends(get_session)):
    """List valid check-ins of an event with populated references, newest first."""
    get_event_or_404(session, event_id)
    statement = (
        select(EventCheckin)
        .where(EventCheckin.event_id == event_id)
        .where(EventCheckin.is_valid == True)  # noqa: E712
        .order_by(EventCheckin.checked_in_at.desc())
    )
    return [checkin_to_dict(checkin, populate=True) for checkin in session.exec(statement).all()]


@router.post("/checkins/{checkin_id}/undo")
async def undo_checkin_route(
    checkin_id: UUID,
    data: CheckinUndo,
    session: Session = Depends(get_session),
):
    """
    Undo a check-in.

    Gifts go back into inventory and the check-in is kept as invalid for the
    audit trail. Returns 400 if it was already undone.
    """
    checkin = get_checkin_or_404(session, checkin_id)
    try:
        checkin = undo_checkin(session, checkin, data.reason)
    except CheckinError as e:
        raise _http_error(e)
    return checkin_to_dict(checkin)


@router.post("/checkins/{checkin_id}/gift")
async def change_gift(
    checkin_id: UUID,
    data: GiftRequest,
    session: Session = Depends(get_session),
):
    """
    Replace the gift of a check-in.

    Only the first gift of the check-in is edited. Returns 400 for undone
    check-ins or missing stock, 404 for unknown items.
    """
    checkin = get_checkin_or_404(session, checkin_id)
    try:
        modify_gift(session, checkin, data.inventory_id, data.quantity)
    except CheckinError as e:
        raise _http_error(e)
    session.refresh(checkin)
    return checkin_to_dict(checkin)
