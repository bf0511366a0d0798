"""Tests for check-in, gift and inventory operations."""

from uuid import uuid4

import pytest
from sqlmodel import Session, select

from app.checkin.cascade import DEFAULT_FIELD_CONFIG, FieldConfig
from app.checkin.reconcile import seed_gift_selections
from app.checkin.serializers import guest_to_dict
from app.checkin.service import (
    AlreadyPickedUpError,
    CheckinError,
    CheckinUndoneError,
    EventArchivedError,
    GiftRequest,
    InsufficientInventoryError,
    InventoryNotFoundError,
    check_in_guest,
    checkin_context,
    create_inventory_item,
    default_field_config,
    load_field_config,
    modify_gift,
    pickup_events,
    recalculate_current_inventory,
    save_field_config,
    undo_checkin,
)
from app.core.config import settings
from app.models import (
    Event,
    EventCheckin,
    Guest,
    InventoryHistory,
    InventoryItem,
    PickupFieldPreference,
)


def gift(item: InventoryItem, quantity: int = 1) -> list[GiftRequest]:
    return [GiftRequest(inventory_id=item.id, quantity=quantity)]


def history(session: Session, item: InventoryItem) -> list[InventoryHistory]:
    return session.exec(
        select(InventoryHistory).where(InventoryHistory.inventory_id == item.id)
    ).all()


class TestPickupScope:
    """Tests for which events a pickup covers."""

    def test_main_event_covers_secondary_events(
        self, session: Session, main_event: Event, secondary_events: list[Event]
    ):
        names = [row.event_name for row in pickup_events(session, main_event)]
        assert names == ["Day 1", "Day 2"]

    def test_secondary_event_covers_itself(self, session: Session, secondary_events: list[Event]):
        assert pickup_events(session, secondary_events[1]) == [secondary_events[1]]

    def test_checkin_context(
        self, session: Session, main_event: Event, inventory: list[InventoryItem]
    ):
        context = checkin_context(session, main_event)
        assert context["checkinMode"] == "multi"
        assert len(context["availableEvents"]) == 2
        assert len(context["inventory"]) == 3

    def test_single_mode(self, session: Session, single_event: Event):
        assert checkin_context(session, single_event)["checkinMode"] == "single"


class TestCheckInGuest:
    """Tests for checking a guest in with gifts."""

    def test_full_pickup(
        self,
        session: Session,
        main_event: Event,
        secondary_events: list[Event],
        guest: Guest,
        inventory: list[InventoryItem],
    ):
        day1, day2 = secondary_events
        result = check_in_guest(
            session,
            guest,
            main_event,
            {str(day1.id): gift(inventory[0]), str(day2.id): gift(inventory[0])},
        )

        assert result["success"] is True
        assert result["status"] == "full"
        session.refresh(inventory[0])
        assert inventory[0].current_inventory == 3
        assert guest.has_checked_in is True
        assert len(guest.valid_checkins) == 2

        entry = history(session, inventory[0])[0]
        assert entry.action == "checkin_distributed"
        assert entry.previous_count == 5
        assert entry.new_count == 3

    def test_partial_pickup_then_rest(
        self,
        session: Session,
        main_event: Event,
        secondary_events: list[Event],
        guest: Guest,
        inventory: list[InventoryItem],
    ):
        day1, day2 = secondary_events
        result = check_in_guest(session, guest, main_event, {str(day1.id): gift(inventory[0])})
        assert result["status"] == "partial"
        skipped = [entry for entry in result["results"] if not entry["success"]]
        assert skipped[0]["message"] == "No gift selected"

        result = check_in_guest(session, guest, main_event, {str(day2.id): gift(inventory[1])})
        assert result["status"] == "full"

    def test_second_pickup_refused(
        self,
        session: Session,
        single_event: Event,
        single_guest: Guest,
        single_inventory: list[InventoryItem],
    ):
        selections = {str(single_event.id): gift(single_inventory[0])}
        check_in_guest(session, single_guest, single_event, selections)

        with pytest.raises(AlreadyPickedUpError):
            check_in_guest(session, single_guest, single_event, selections)
        session.refresh(single_inventory[0])
        assert single_inventory[0].current_inventory == 4

    def test_insufficient_inventory_writes_nothing(
        self,
        session: Session,
        main_event: Event,
        secondary_events: list[Event],
        guest: Guest,
        inventory: list[InventoryItem],
    ):
        day1, day2 = secondary_events
        jacket = inventory[2]
        with pytest.raises(InsufficientInventoryError):
            check_in_guest(
                session,
                guest,
                main_event,
                {str(day1.id): gift(jacket), str(day2.id): gift(jacket)},
            )
        assert session.exec(select(EventCheckin)).all() == []
        assert jacket.current_inventory == 1

    def test_item_from_another_pool(
        self,
        session: Session,
        single_event: Event,
        single_guest: Guest,
        inventory: list[InventoryItem],
    ):
        with pytest.raises(InventoryNotFoundError):
            check_in_guest(
                session, single_guest, single_event, {str(single_event.id): gift(inventory[0])}
            )

    def test_nothing_selected(self, session: Session, single_event: Event, single_guest: Guest):
        with pytest.raises(CheckinError):
            check_in_guest(session, single_guest, single_event, {})

    def test_multiple_gifts_need_permission(
        self,
        session: Session,
        single_event: Event,
        single_guest: Guest,
        single_inventory: list[InventoryItem],
    ):
        two = gift(single_inventory[0]) + gift(single_inventory[1])
        with pytest.raises(CheckinError):
            check_in_guest(session, single_guest, single_event, {str(single_event.id): two})

        single_event.allow_multiple_gifts = True
        session.add(single_event)
        session.commit()
        result = check_in_guest(session, single_guest, single_event, {str(single_event.id): two})
        assert len(result["results"][0]["gifts"]) == 2

    def test_archived_event_refused(
        self,
        session: Session,
        main_event: Event,
        secondary_events: list[Event],
        guest: Guest,
        inventory: list[InventoryItem],
    ):
        """Secondary events of an archived main event are read-only too."""
        main_event.is_archived = True
        session.add(main_event)
        session.commit()

        day1 = secondary_events[0]
        with pytest.raises(EventArchivedError):
            check_in_guest(session, guest, day1, {str(day1.id): gift(inventory[0])})
        assert session.exec(select(EventCheckin)).all() == []


class TestUndoAndModify:
    """Tests for undoing check-ins and changing gifts."""

    @pytest.fixture(name="checkin")
    def checkin_fixture(
        self,
        session: Session,
        single_event: Event,
        single_guest: Guest,
        single_inventory: list[InventoryItem],
    ) -> EventCheckin:
        check_in_guest(
            session,
            single_guest,
            single_event,
            {str(single_event.id): gift(single_inventory[0], 2)},
        )
        return session.exec(select(EventCheckin)).one()

    def test_undo_restores_inventory(
        self,
        session: Session,
        checkin: EventCheckin,
        single_guest: Guest,
        single_inventory: list[InventoryItem],
    ):
        undo_checkin(session, checkin, "Wrong guest")

        session.refresh(single_inventory[0])
        session.refresh(single_guest)
        assert single_inventory[0].current_inventory == 5
        assert checkin.is_valid is False
        assert checkin.undo_reason == "Wrong guest"
        assert single_guest.has_checked_in is False
        actions = {entry.action for entry in history(session, single_inventory[0])}
        assert "checkin_undone" in actions

    def test_undo_twice(self, session: Session, checkin: EventCheckin):
        undo_checkin(session, checkin)
        with pytest.raises(CheckinUndoneError):
            undo_checkin(session, checkin)

    def test_pickup_allowed_after_undo(
        self,
        session: Session,
        checkin: EventCheckin,
        single_event: Event,
        single_guest: Guest,
        single_inventory: list[InventoryItem],
    ):
        undo_checkin(session, checkin)
        result = check_in_guest(
            session, single_guest, single_event, {str(single_event.id): gift(single_inventory[1])}
        )
        assert result["status"] == "full"

    def test_modify_gift_swaps_items(
        self, session: Session, checkin: EventCheckin, single_inventory: list[InventoryItem]
    ):
        old, new = single_inventory[0], single_inventory[1]
        record = modify_gift(session, checkin, new.id, 1)

        session.refresh(old)
        session.refresh(new)
        assert record.inventory_id == new.id
        assert old.current_inventory == 5
        assert new.current_inventory == 2

    def test_modify_same_item_charges_difference(
        self, session: Session, checkin: EventCheckin, single_inventory: list[InventoryItem]
    ):
        item = single_inventory[0]
        modify_gift(session, checkin, item.id, 1)
        session.refresh(item)
        assert item.current_inventory == 4

    def test_modify_gift_insufficient(
        self, session: Session, checkin: EventCheckin, single_inventory: list[InventoryItem]
    ):
        with pytest.raises(InsufficientInventoryError):
            modify_gift(session, checkin, single_inventory[2].id, 2)

    def test_modify_undone_checkin(
        self, session: Session, checkin: EventCheckin, single_inventory: list[InventoryItem]
    ):
        undo_checkin(session, checkin)
        with pytest.raises(CheckinUndoneError):
            modify_gift(session, checkin, single_inventory[1].id)

    def test_modify_unknown_item(self, session: Session, checkin: EventCheckin):
        with pytest.raises(InventoryNotFoundError):
            modify_gift(session, checkin, uuid4())

    def test_modify_without_commit_can_roll_back(
        self, session: Session, checkin: EventCheckin, single_inventory: list[InventoryItem]
    ):
        modify_gift(session, checkin, single_inventory[1].id, 1, commit=False)
        session.rollback()

        session.refresh(checkin)
        session.refresh(single_inventory[1])
        assert checkin.gifts[0].inventory_id == single_inventory[0].id
        assert single_inventory[1].current_inventory == 3

    def test_modify_archived_event(
        self,
        session: Session,
        checkin: EventCheckin,
        single_event: Event,
        single_inventory: list[InventoryItem],
    ):
        single_event.is_archived = True
        session.add(single_event)
        session.commit()

        with pytest.raises(EventArchivedError):
            modify_gift(session, checkin, single_inventory[1].id)


class TestGiftSlots:
    """Tests for editing the first gift of a multi-gift check-in."""

    def test_repeated_edits_keep_the_same_slot(
        self,
        session: Session,
        single_event: Event,
        single_guest: Guest,
        single_inventory: list[InventoryItem],
    ):
        nike_m, nike_l, adidas = single_inventory
        single_event.allow_multiple_gifts = True
        session.add(single_event)
        session.commit()
        check_in_guest(
            session,
            single_guest,
            single_event,
            {str(single_event.id): gift(nike_m) + gift(nike_l)},
        )
        checkin = session.exec(select(EventCheckin)).one()

        modify_gift(session, checkin, adidas.id)
        modify_gift(session, checkin, nike_m.id)

        session.refresh(checkin)
        slots = sorted(checkin.gifts, key=lambda record: record.position)
        assert [(record.position, record.inventory_id) for record in slots] == [
            (0, nike_m.id),
            (1, nike_l.id),
        ]
        session.refresh(adidas)
        assert adidas.current_inventory == 1

        seeds = seed_gift_selections(guest_to_dict(single_guest), [str(single_event.id)])
        assert seeds[str(single_event.id)]["inventoryId"] == str(nike_m.id)


class TestInventoryBookkeeping:
    """Tests for inventory creation and recalculation."""

    def test_create_writes_initial_history(self, session: Session, main_event: Event):
        item = create_inventory_item(
            session, main_event, type="Mug", style="Acme", size="One", qty_on_site=12
        )
        assert item.current_inventory == 12
        entries = history(session, item)
        assert [(entry.action, entry.new_count) for entry in entries] == [("initial", 12)]

    def test_create_from_secondary_event_uses_main_pool(
        self, session: Session, main_event: Event, secondary_events: list[Event]
    ):
        item = create_inventory_item(
            session, secondary_events[0], type="Mug", style="Acme", size="One", qty_on_site=1
        )
        assert item.event_id == main_event.id

    def test_recalculate_from_checkins(
        self,
        session: Session,
        single_event: Event,
        single_guest: Guest,
        single_inventory: list[InventoryItem],
    ):
        item = single_inventory[0]
        check_in_guest(session, single_guest, single_event, {str(single_event.id): gift(item, 2)})
        item.current_inventory = 0
        session.add(item)
        session.commit()

        assert recalculate_current_inventory(session, item) == 3
        session.commit()
        session.refresh(item)
        assert item.current_inventory == 3

    def test_recalculate_unchanged_writes_no_history(
        self, session: Session, single_inventory: list[InventoryItem]
    ):
        item = single_inventory[1]
        assert recalculate_current_inventory(session, item) == 3
        assert history(session, item) == []


class TestFieldConfigPreference:
    """Tests for loading and saving the selector configuration."""

    def test_default_when_nothing_saved(self, session: Session):
        assert load_field_config(session).field_order() == ["brand", "size"]

    def test_save_and_load(self, session: Session):
        save_field_config(session, FieldConfig.parse("size,type,brand:off"))
        assert load_field_config(session).field_order() == ["size", "type"]

    def test_invalid_stored_config_falls_back(self, session: Session):
        session.add(PickupFieldPreference(field_config=[{"name": "weight"}]))
        session.commit()
        assert load_field_config(session).field_order() == ["brand", "size"]

    def test_invalid_setting_falls_back(self, monkeypatch):
        monkeypatch.setattr(settings, "pickup_fields", "brand,brand")
        assert default_field_config() == DEFAULT_FIELD_CONFIG
