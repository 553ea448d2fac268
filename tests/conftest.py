"""
Shared pytest fixtures for tripsync tests.

Every test gets a fresh in-memory database; the app engine is swapped for it,
so HTTP routes and the realtime endpoint see the same rows.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from tripsync.db import core
from tripsync.main import app
from tripsync.models.models import (ItineraryItem, MemberRole, Trip,
                                    TripMember, User)
from tripsync.realtime.broker import RoomBroker
from tripsync.security import create_access_token, hash_password

USERS = ("alice", "bob", "carol", "dave")


@pytest.fixture
def engine(monkeypatch, tmp_path):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(core, "_engine", engine)
    monkeypatch.setattr(core.settings, "RECEIPTS_FOLDER", str(tmp_path / "receipts"))
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def users(session):
    for username in USERS:
        session.add(User(username=username, password=hash_password("password")))
    session.commit()
    return USERS


@pytest.fixture
def broker():
    app.state.broker = RoomBroker()
    return app.state.broker


@pytest.fixture
def client(engine, users, broker):
    # No context manager: the lifespan would migrate the on-disk database
    return TestClient(app)


def auth_headers(username: str, connection_id: str | None = None) -> dict:
    headers = {"Authorization": f"Bearer {create_access_token({'sub': username})}"}
    if connection_id:
        headers["X-Connection-Id"] = connection_id
    return headers


def ws_url(username: str) -> str:
    return f"/api/ws?token={create_access_token({'sub': username})}"


def make_trip(session: Session, owner: str = "alice", members: dict[str, MemberRole] | None = None) -> Trip:
    trip = Trip(title="Lisbon", user=owner, country={"name": "Portugal", "flag": "PT"}, budget={})
    session.add(trip)
    session.commit()
    session.refresh(trip)
    for username, role in (members or {}).items():
        session.add(TripMember(trip_id=trip.id, user=username, role=role, added_by=owner))
    session.commit()
    session.refresh(trip)
    return trip


def make_items(session: Session, trip: Trip, layout: list[tuple[int, int]]) -> list[ItineraryItem]:
    """Create items from ``(day, order)`` pairs, in insertion order."""
    items = []
    for index, (day, order) in enumerate(layout):
        item = ItineraryItem(title=f"stop {index}", day=day, order=order, trip_id=trip.id)
        session.add(item)
        items.append(item)
    session.commit()
    for item in items:
        session.refresh(item)
    return items


@pytest.fixture
def trip(session, users):
    return make_trip(session, members={"bob": MemberRole.EDITOR, "carol": MemberRole.VIEWER})
