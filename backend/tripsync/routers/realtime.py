import asyncio
import logging
from contextlib import suppress
from typing import Literal
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ValidationError
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from ..config import settings
from ..db.core import get_engine
from ..errors import AuthFailed, AuthRequired
from ..models.models import Trip, User
from ..permissions import can_read
from ..realtime.broker import Connection, RoomBroker
from ..realtime.events import EventType, TripEvent
from ..security import decode_token
from ..utils.date import dt_utc

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class ClientMessage(BaseModel):
    type: Literal[
        "trip:join",
        "trip:leave",
        "trip:typing_start",
        "trip:typing_stop",
        "trip:cursor_move",
        "notification:send",
    ]
    trip_id: int | None = None
    section: str | None = None
    position: dict | None = None
    user: str | None = None
    notification: dict | None = None


def _authenticate(token: str | None) -> str:
    username = decode_token(token)
    with Session(get_engine()) as session:
        if not session.get(User, username):
            raise AuthFailed()
    return username


def _can_join(trip_id: int, username: str) -> bool:
    with Session(get_engine()) as session:
        trip = session.get(Trip, trip_id)
        return bool(trip) and can_read(trip, username)


def _presence(event_type: str, username: str) -> dict:
    return {"type": event_type, "user": username, "timestamp": dt_utc().isoformat()}


def _relay(broker: RoomBroker, connection: Connection, event_type: EventType, trip_id: int, data: dict):
    event = TripEvent(type=event_type, trip_id=trip_id, updated_by=connection.user, data=data)
    broker.publish(trip_id, event.to_message(), exclude=connection.id)


def _notify(message: ClientMessage, connection: Connection, broker: RoomBroker):
    if not (message.user and message.notification):
        connection.deliver({"type": "error", "detail": "Invalid message"})
        return

    notification = {
        **message.notification,
        "type": "notification",
        "from": connection.user,
        "id": uuid4().hex,
        "timestamp": dt_utc().isoformat(),
    }
    delivered = broker.send_to_user(message.user, notification)
    connection.deliver({"type": "notification:sent", "user": message.user, "delivered": delivered})


async def _handle(message: ClientMessage, connection: Connection, broker: RoomBroker):
    if message.type == "notification:send":
        _notify(message, connection, broker)
        return

    trip_id = message.trip_id
    if trip_id is None:
        connection.deliver({"type": "error", "detail": "Invalid message"})
        return

    if message.type == "trip:join":
        if not await run_in_threadpool(_can_join, trip_id, connection.user):
            connection.deliver({"type": "error", "detail": "Not found", "trip_id": trip_id})
            return
        if broker.subscribe(trip_id, connection):
            logger.info("%r joined trip room %s", connection, trip_id)
            _relay(broker, connection, EventType.USER_JOINED, trip_id, {"user": connection.user})
        connection.deliver({"type": "trip:joined", "trip_id": trip_id})
        return

    if message.type == "trip:leave":
        if broker.unsubscribe(trip_id, connection):
            logger.info("%r left trip room %s", connection, trip_id)
            _relay(broker, connection, EventType.USER_LEFT, trip_id, {"user": connection.user})
        connection.deliver({"type": "trip:left", "trip_id": trip_id})
        return

    if not broker.is_subscribed(trip_id, connection):
        connection.deliver({"type": "error", "detail": "Not joined", "trip_id": trip_id})
        return

    match message.type:
        case "trip:typing_start" | "trip:typing_stop":
            _relay(
                broker,
                connection,
                EventType.USER_TYPING,
                trip_id,
                {"user": connection.user, "section": message.section, "typing": message.type == "trip:typing_start"},
            )
        case "trip:cursor_move":
            _relay(
                broker,
                connection,
                EventType.CURSOR_UPDATE,
                trip_id,
                {"user": connection.user, "section": message.section, "position": message.position},
            )


@router.websocket("/api/ws")
async def trip_updates(websocket: WebSocket, token: str | None = None):
    try:
        username = await run_in_threadpool(_authenticate, token)
    except (AuthRequired, AuthFailed) as exc:
        logger.info("Rejected realtime handshake: %s", exc.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
        return

    broker: RoomBroker = websocket.app.state.broker
    await websocket.accept()

    connection = Connection(username, websocket.send_json, settings.WS_MAX_PENDING)
    pump = asyncio.create_task(connection.pump())
    first = broker.connect(connection)
    connection.deliver({"type": "connection:ready", "connection_id": connection.id, "user": username})
    connection.deliver({"type": "users:online", "users": broker.online_users()})
    if first:
        broker.broadcast(_presence("user:joined", username), exclude=connection.id)
    logger.info("%r connected", connection)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = ClientMessage.model_validate_json(raw)
            except ValidationError:
                connection.deliver({"type": "error", "detail": "Invalid message"})
                continue
            await _handle(message, connection, broker)
    except WebSocketDisconnect:
        pass
    finally:
        for trip_id in broker.unsubscribe_all(connection):
            _relay(broker, connection, EventType.USER_LEFT, trip_id, {"user": username})
        if broker.disconnect(connection):
            broker.broadcast(_presence("user:left", username))
        pump.cancel()
        with suppress(asyncio.CancelledError):
            await pump
        logger.info("%r disconnected", connection)
