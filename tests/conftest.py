"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from app.core.database import get_session
from app.main import app
from app.models import Event, Guest, InventoryItem


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Create a test client with the test database session."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="single_event")
def single_event_fixture(session: Session) -> Event:
    """Create a main event without secondary events."""
    event = Event(
        event_name="Product Launch",
        contract_number="C-100",
        start_time=datetime.now(UTC) + timedelta(days=1),
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="main_event")
def main_event_fixture(session: Session) -> Event:
    """Create a main event with two secondary events (Day 1, Day 2)."""
    start = datetime.now(UTC) + timedelta(days=1)
    event = Event(
        event_name="Summit",
        contract_number="C-200",
        start_time=start,
    )
    session.add(event)
    session.flush()

    for offset, name in enumerate(["Day 1", "Day 2"]):
        session.add(
            Event(
                event_name=name,
                contract_number="C-200",
                start_time=start + timedelta(days=offset),
                parent_event_id=event.id,
                is_main_event=False,
            )
        )

    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="secondary_events")
def secondary_events_fixture(main_event: Event, session: Session) -> list[Event]:
    """The secondary events of main_event, in start order."""
    session.refresh(main_event)
    return sorted(main_event.secondary_events, key=lambda child: child.event_name)


@pytest.fixture(name="archived_event")
def archived_event_fixture(session: Session) -> Event:
    """Create an archived event for testing."""
    event = Event(
        event_name="Old Conference",
        contract_number="C-001",
        start_time=datetime.now(UTC) - timedelta(days=30),
        is_archived=True,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


def _add_guest(session: Session, event: Event) -> Guest:
    guest = Guest(
        event_id=event.id,
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
    )
    session.add(guest)
    session.commit()
    session.refresh(guest)
    return guest


@pytest.fixture(name="guest")
def guest_fixture(main_event: Event, session: Session) -> Guest:
    """A guest on main_event's list."""
    return _add_guest(session, main_event)


@pytest.fixture(name="single_guest")
def single_guest_fixture(single_event: Event, session: Session) -> Guest:
    """A guest on single_event's list."""
    return _add_guest(session, single_event)


def _add_inventory(session: Session, event: Event) -> list[InventoryItem]:
    items = [
        InventoryItem(event_id=event.id, type="Hat", style="Nike", size="M",
                      qty_on_site=5, current_inventory=5),
        InventoryItem(event_id=event.id, type="Hat", style="Nike", size="L",
                      qty_on_site=3, current_inventory=3),
        InventoryItem(event_id=event.id, type="Jacket", style="Adidas", size="S",
                      qty_on_site=1, current_inventory=1),
    ]
    for item in items:
        session.add(item)
    session.commit()
    for item in items:
        session.refresh(item)
    return items


@pytest.fixture(name="inventory")
def inventory_fixture(main_event: Event, session: Session) -> list[InventoryItem]:
    """Inventory pool of main_event: Nike M, Nike L, Adidas S (1 left)."""
    return _add_inventory(session, main_event)


@pytest.fixture(name="single_inventory")
def single_inventory_fixture(single_event: Event, session: Session) -> list[InventoryItem]:
    """Inventory pool of single_event."""
    return _add_inventory(session, single_event)
