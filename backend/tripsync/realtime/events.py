import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..utils.date import dt_utc
from .broker import RoomBroker

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    ITEM_ADDED = "itinerary:item_added"
    ITEM_UPDATED = "itinerary:item_updated"
    ITEM_DELETED = "itinerary:item_deleted"
    ITEMS_REORDERED = "itinerary:reordered"
    DAY_DUPLICATED = "itinerary:day_duplicated"
    DAY_DELETED = "itinerary:day_deleted"
    MEMBER_ADDED = "members:added"
    MEMBER_UPDATED = "members:updated"
    MEMBER_REMOVED = "members:removed"
    COMMENT_ADDED = "comments:added"
    COMMENT_REMOVED = "comments:removed"
    EXPENSE_ADDED = "expenses:added"
    EXPENSE_REMOVED = "expenses:removed"
    RECEIPTS_UPLOADED = "receipts:uploaded"
    RECEIPT_REMOVED = "receipts:removed"
    TRIP_UPDATED = "trip:updated"
    TRIP_DELETED = "trip:deleted"
    FAVORITE_TOGGLED = "trip:favorite_toggled"
    USER_JOINED = "trip:user_joined"
    USER_LEFT = "trip:user_left"
    USER_TYPING = "trip:user_typing"
    CURSOR_UPDATE = "trip:cursor_update"


class TripEvent(BaseModel):
    type: EventType
    trip_id: int
    updated_by: str | None = None
    timestamp: datetime = Field(default_factory=dt_utc)
    data: dict[str, Any] = {}

    def to_message(self) -> dict:
        return self.model_dump(mode="json")


def emit(
    broker: RoomBroker,
    trip_id: int,
    event_type: EventType,
    data: dict[str, Any] | None = None,
    updated_by: str | None = None,
    origin: str | None = None,
) -> int:
    """Fan a committed mutation out to the trip room. Never raises."""
    try:
        event = TripEvent(type=event_type, trip_id=trip_id, updated_by=updated_by, data=data or {})
        return broker.publish(trip_id, event.to_message(), exclude=origin)
    except Exception:
        logger.exception("Failed to publish %s for trip %s", event_type.value, trip_id)
        return 0
