from typing import Annotated

from fastapi import APIRouter, Depends

from .. import itinerary as engine
from ..deps import BrokerDep, OriginDep, SessionDep, get_current_username
from ..errors import NotFound
from ..models.models import (ItineraryDayDuplicate, ItineraryItem,
                             ItineraryItemCreate, ItineraryItemRead,
                             ItineraryItemUpdate, ItineraryReorder, Trip)
from ..permissions import ensure_can_edit, ensure_can_read
from ..realtime.events import EventType, emit
from .trips import get_trip_or_404

router = APIRouter(prefix="/api/trips", tags=["itinerary"])


def _item_or_404(db_trip: Trip, item_id: int) -> ItineraryItem:
    item = next((i for i in db_trip.itinerary if i.id == item_id), None)
    if not item:
        raise NotFound()
    return item


def _dump(items: list[ItineraryItem]) -> list[ItineraryItemRead]:
    return [ItineraryItemRead.serialize(item) for item in engine.sorted_items(items)]


@router.get("/{trip_id}/itinerary", response_model=list[ItineraryItemRead])
def read_itinerary(
    session: SessionDep, trip_id: int, current_user: Annotated[str, Depends(get_current_username)]
) -> list[ItineraryItemRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_read(db_trip, current_user)
    return _dump(db_trip.itinerary)


@router.post("/{trip_id}/itinerary", response_model=ItineraryItemRead)
def create_itinerary_item(
    item: ItineraryItemCreate,
    trip_id: int,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> ItineraryItemRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    new_item = engine.add_item(db_trip.itinerary, item, trip_id)
    session.add(new_item)
    session.commit()
    session.refresh(new_item)

    item_read = ItineraryItemRead.serialize(new_item)
    emit(broker, trip_id, EventType.ITEM_ADDED, {"item": item_read.model_dump(mode="json")}, current_user, origin)
    return item_read


@router.put("/{trip_id}/itinerary/reorder", response_model=list[ItineraryItemRead])
def reorder_itinerary(
    data: ItineraryReorder,
    trip_id: int,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> list[ItineraryItemRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    engine.reorder_day(db_trip.itinerary, data.day, data.item_ids)
    session.add(db_trip)
    session.commit()
    session.refresh(db_trip)

    emit(
        broker,
        trip_id,
        EventType.ITEMS_REORDERED,
        {"day": data.day, "item_ids": data.item_ids},
        current_user,
        origin,
    )
    return [ItineraryItemRead.serialize(i) for i in engine.day_items(db_trip.itinerary, data.day)]


@router.post("/{trip_id}/itinerary/days/duplicate", response_model=list[ItineraryItemRead])
def duplicate_itinerary_day(
    data: ItineraryDayDuplicate,
    trip_id: int,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> list[ItineraryItemRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    copies = engine.duplicate_day(db_trip.itinerary, data.from_day, data.to_day)
    session.add_all(copies)
    session.commit()
    for copy in copies:
        session.refresh(copy)

    items = [ItineraryItemRead.serialize(copy) for copy in copies]
    emit(
        broker,
        trip_id,
        EventType.DAY_DUPLICATED,
        {
            "from_day": data.from_day,
            "to_day": data.to_day,
            "items": [i.model_dump(mode="json") for i in items],
        },
        current_user,
        origin,
    )
    return items


@router.delete("/{trip_id}/itinerary/days/{day}", response_model=list[ItineraryItemRead])
def delete_itinerary_day(
    trip_id: int,
    day: int,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
    renumber: bool = False,
) -> list[ItineraryItemRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    removed = engine.delete_day(db_trip.itinerary, day, renumber)
    removed_ids = [item.id for item in removed]
    for item in removed:
        session.delete(item)
    session.commit()
    session.refresh(db_trip)

    emit(
        broker,
        trip_id,
        EventType.DAY_DELETED,
        {"day": day, "renumber": renumber, "item_ids": removed_ids},
        current_user,
        origin,
    )
    return _dump(db_trip.itinerary)


@router.put("/{trip_id}/itinerary/{item_id}", response_model=ItineraryItemRead)
def update_itinerary_item(
    item: ItineraryItemUpdate,
    trip_id: int,
    item_id: int,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> ItineraryItemRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    db_item = _item_or_404(db_trip, item_id)
    engine.update_item(db_item, item.model_dump(exclude_unset=True))
    session.add(db_item)
    session.commit()
    session.refresh(db_item)

    item_read = ItineraryItemRead.serialize(db_item)
    emit(broker, trip_id, EventType.ITEM_UPDATED, {"item": item_read.model_dump(mode="json")}, current_user, origin)
    return item_read


@router.delete("/{trip_id}/itinerary/{item_id}")
def delete_itinerary_item(
    trip_id: int,
    item_id: int,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
):
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    session.delete(_item_or_404(db_trip, item_id))
    session.commit()

    emit(broker, trip_id, EventType.ITEM_DELETED, {"item_id": item_id}, current_user, origin)
    return {}
