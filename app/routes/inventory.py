"""Inventory routes for an event's gift pool."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from app.checkin.cascade import (
    FIELD_NAMES,
    FieldConfig,
    apply_selection,
    select_for_cascade,
    selections_from_item,
)
from app.checkin.serializers import inventory_to_dict
from app.checkin.service import (
    active_inventory,
    adjust_inventory,
    create_inventory_item,
    recalculate_current_inventory,
)
from app.core.database import get_session
from app.models import InventoryHistory, InventoryItem
from app.models.inventory import GENDERS
from app.routes.events import get_event_or_404
from app.routes.preferences import get_field_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_id}/inventory", tags=["inventory"])


class InventoryCreate(SQLModel):
    type: str
    style: str
    size: str
    product: str | None = None
    gender: str = "N/A"
    color: str | None = None
    qty_warehouse: int | None = None
    qty_on_site: int | None = None


class InventoryAdjust(SQLModel):
    count: int
    reason: str = ""


def get_item_or_404(session: Session, event_id: UUID, item_id: UUID) -> InventoryItem:
    """Item in the pool of ``event_id``'s main event, or 404."""
    event = get_event_or_404(session, event_id)
    item = session.get(InventoryItem, item_id)
    if not item or item.event_id != event.main_event_id:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


@router.post("", status_code=201)
async def create_item(
    event_id: UUID,
    data: InventoryCreate,
    session: Session = Depends(get_session),
):
    """
    Add an item to the event's inventory pool.

    The available count starts at the on-site quantity and an ``initial``
    history entry is written. Returns 400 for an unknown gender, an archived
    event, or an item that already exists in the pool.
    """
    event = get_event_or_404(session, event_id)
    if event.is_archived:
        raise HTTPException(status_code=400, detail="Cannot modify archived event")
    if data.gender not in GENDERS:
        raise HTTPException(status_code=400, detail=f"Gender must be one of {', '.join(GENDERS)}")

    fields = {
        key: value.strip() if isinstance(value, str) else value
        for key, value in data.model_dump().items()
    }
    try:
        item = create_inventory_item(session, event, **fields)
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=400, detail="Inventory item already exists")
    return inventory_to_dict(item)


@router.get("")
async def list_items(event_id: UUID, session: Session = Depends(get_session)):
    """List active items of the event's pool, ordered by type, brand and size."""
    event = get_event_or_404(session, event_id)
    return [inventory_to_dict(item) for item in active_inventory(session, event.main_event_id)]


@router.get("/cascade")
async def cascade_options(
    event_id: UUID,
    request: Request,
    changed: str | None = Query(default=None),
    selected_id: str | None = Query(default=None),
    config: FieldConfig = Depends(get_field_config),
    session: Session = Depends(get_session),
):
    """
    Options of the cascading pick-up selector.

    Current choices are passed as query parameters named after the fields
    (``type``, ``brand``, ``gender``, ``product``, ``color``, ``size``).
    ``changed`` names the field the user just set; every field after it is
    cleared. ``selected_id`` seeds the choices from an existing item when no
    choice is given, and picks the item directly when no field is configured.
    """
    event = get_event_or_404(session, event_id)
    inventory = [inventory_to_dict(item) for item in active_inventory(session, event.main_event_id)]
    order = config.field_order()

    selections = {field: request.query_params.get(field, "") for field in FIELD_NAMES}
    if changed:
        selections = apply_selection(order, selections, changed, selections.get(changed, ""))

    if selected_id and not any(selections.get(field) for field in order):
        selections = selections_from_item(inventory, order, selected_id)

    result = select_for_cascade(inventory, order, selections, selected_id=selected_id)
    return {
        **result.model_dump(),
        "resolvedId": result.resolved_id,
    }


@router.get("/{item_id}/history")
async def item_history(event_id: UUID, item_id: UUID, session: Session = Depends(get_session)):
    """Count changes of an item, newest first."""
    item = get_item_or_404(session, event_id, item_id)
    statement = (
        select(InventoryHistory)
        .where(InventoryHistory.inventory_id == item.id)
        .order_by(InventoryHistory.timestamp.desc())
    )
    return [
        {
            "action": entry.action,
            "quantity": entry.quantity,
            "previousCount": entry.previous_count,
            "newCount": entry.new_count,
            "reason": entry.reason,
            "timestamp": entry.timestamp.isoformat(),
        }
        for entry in session.exec(statement).all()
    ]


@router.post("/{item_id}/adjust")
async def adjust_item(
    event_id: UUID,
    item_id: UUID,
    data: InventoryAdjust,
    session: Session = Depends(get_session),
):
    """
    Set the available count of an item by hand.

    Writes a ``manual_adjustment`` history entry. Negative counts are
    rejected with 400.
    """
    item = get_item_or_404(session, event_id, item_id)
    if data.count < 0:
        raise HTTPException(status_code=400, detail="Count cannot be negative")
    adjust_inventory(session, item, data.count, "manual_adjustment", data.reason)
    session.commit()
    session.refresh(item)
    logger.info(f"Adjusted {item.style} ({item.size}) to {item.current_inventory}")
    return inventory_to_dict(item)


@router.post("/{item_id}/deactivate")
async def deactivate_item(event_id: UUID, item_id: UUID, session: Session = Depends(get_session)):
    """Hide an item from pick-up while keeping its history."""
    item = get_item_or_404(session, event_id, item_id)
    item.is_active = False
    session.add(item)
    session.commit()
    session.refresh(item)
    return inventory_to_dict(item)


@router.post("/recalculate")
async def recalculate_items(event_id: UUID, session: Session = Depends(get_session)):
    """
    Recompute available counts of every active item from check-ins.

    Returns the number of items checked and how many changed.
    """
    event = get_event_or_404(session, event_id)
    items = active_inventory(session, event.main_event_id)
    changed = 0
    for item in items:
        before = item.current_inventory
        if recalculate_current_inventory(session, item) != before:
            changed += 1
    session.commit()
    logger.info(f"Recalculated inventory for {event.event_name}: {changed} changed")
    return {"checked": len(items), "changed": changed}
