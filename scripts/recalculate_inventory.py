#!/usr/bin/env python3
"""
Recompute available inventory counts from recorded check-ins.

For every active inventory item, the available count is reset to the
on-site quantity minus everything handed out through valid check-ins.
Useful after manual database fixes or undone check-ins imported by hand.

Usage:
    python scripts/recalculate_inventory.py [--dry-run]

Options:
    --dry-run    Show what would change without writing anything
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session, select

from app.checkin.service import distributed_quantity, recalculate_current_inventory
from app.core.database import create_db_and_tables, engine
from app.models import Event, InventoryItem


def main(dry_run: bool = False):
    """Recalculate every active item, grouped by main event."""
    create_db_and_tables()

    with Session(engine) as session:
        statement = (
            select(InventoryItem)
            .where(InventoryItem.is_active == True)  # noqa: E712
            .order_by(InventoryItem.event_id, InventoryItem.type, InventoryItem.style)
        )
        items = session.exec(statement).all()

        if not items:
            print("No active inventory found.")
            return

        changed = 0
        current_event = None
        for item in items:
            if item.event_id != current_event:
                current_event = item.event_id
                event = session.get(Event, item.event_id)
                print(f"\n{event.event_name if event else item.event_id}:")

            distributed = distributed_quantity(session, item)
            expected = max(0, (item.qty_on_site or 0) - distributed)
            label = f"{item.type} / {item.style} / {item.size}"

            if expected == item.current_inventory:
                print(f"  {label}: {item.current_inventory} (ok)")
                continue

            changed += 1
            print(f"  {label}: {item.current_inventory} -> {expected}")
            if not dry_run:
                recalculate_current_inventory(session, item)

        if dry_run:
            print(f"\n[DRY RUN] {changed} item(s) would change.")
        else:
            session.commit()
            print(f"\n{changed} item(s) updated.")


if __name__ == "__main__":
    main(dry_run="--dry-run" in sys.argv)
