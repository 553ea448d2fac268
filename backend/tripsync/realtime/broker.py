"""In-memory, per-process fan-out of trip events to live connections.

Rooms are keyed by trip id and hold the connections currently subscribed to
that trip. There is no history: a room disappears with its last subscriber,
and events published while a client is disconnected are lost.

Independently of rooms, every live connection is indexed by user, which backs
the online list and the per-user notification channel.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    id: str
    user: str

    def deliver(self, message: dict) -> None: ...


class Connection:
    """A live client. Outbound messages go through a bounded queue drained by :meth:`pump`.

    :meth:`deliver` may be called from any thread; it never blocks. When the
    queue is full the message is dropped for this connection only.
    """

    def __init__(self, user: str, send: Callable[[dict], Awaitable[None]], max_pending: int = 100):
        self.id = uuid4().hex
        self.user = user
        self._send = send
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=max_pending)
        self.closed = False

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user}>"

    def deliver(self, message: dict) -> None:
        if self.closed:
            return
        self._loop.call_soon_threadsafe(self._enqueue, message)

    def _enqueue(self, message: dict) -> None:
        if self.closed:
            return
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Outbox full for %r, dropping %s", self, message.get("type"))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def pump(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._send(message)
            except Exception:
                logger.info("Send failed for %r, stopping outbox", self)
                self.close()
                return

    def close(self) -> None:
        """Stop accepting messages and drop whatever is still queued."""
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()


class RoomBroker:
    def __init__(self):
        self._rooms: dict[int, dict[str, Subscriber]] = {}
        self._users: dict[str, dict[str, Subscriber]] = {}
        self._lock = threading.Lock()

    def connect(self, connection: Subscriber) -> bool:
        """Register a live connection. Returns True if it is the user's first one."""
        with self._lock:
            connections = self._users.setdefault(connection.user, {})
            first = not connections
            connections[connection.id] = connection
        return first

    def disconnect(self, connection: Subscriber) -> bool:
        """Forget a connection. Returns True if the user has no connection left."""
        with self._lock:
            connections = self._users.get(connection.user)
            if not connections or connections.pop(connection.id, None) is None:
                return False
            if connections:
                return False
            del self._users[connection.user]
        return True

    def online_users(self) -> list[str]:
        with self._lock:
            return sorted(self._users)

    def subscribe(self, trip_id: int, connection: Subscriber) -> bool:
        """Add ``connection`` to the trip room. Returns False if it was already there."""
        with self._lock:
            room = self._rooms.setdefault(trip_id, {})
            if connection.id in room:
                return False
            room[connection.id] = connection
        logger.debug("%r joined room %s", connection, trip_id)
        return True

    def unsubscribe(self, trip_id: int, connection: Subscriber) -> bool:
        with self._lock:
            room = self._rooms.get(trip_id)
            if not room or room.pop(connection.id, None) is None:
                return False
            if not room:
                del self._rooms[trip_id]
        logger.debug("%r left room %s", connection, trip_id)
        return True

    def unsubscribe_all(self, connection: Subscriber) -> list[int]:
        """Drop ``connection`` from every room, returning the trip ids it had joined."""
        left = []
        with self._lock:
            for trip_id in list(self._rooms):
                room = self._rooms[trip_id]
                if room.pop(connection.id, None) is not None:
                    left.append(trip_id)
                    if not room:
                        del self._rooms[trip_id]
        return left

    def evict(self, trip_id: int, user: str) -> list[Subscriber]:
        """Remove every connection of ``user`` from the trip room."""
        with self._lock:
            room = self._rooms.get(trip_id, {})
            evicted = [c for c in room.values() if c.user == user]
            for connection in evicted:
                del room[connection.id]
            if trip_id in self._rooms and not room:
                del self._rooms[trip_id]
        if evicted:
            logger.info("Evicted %d connection(s) of %s from room %s", len(evicted), user, trip_id)
        return evicted

    def close_room(self, trip_id: int) -> list[Subscriber]:
        """Drop the whole room, e.g. once its trip is gone."""
        with self._lock:
            room = self._rooms.pop(trip_id, {})
        if room:
            logger.info("Closed room %s with %d connection(s)", trip_id, len(room))
        return list(room.values())

    def is_subscribed(self, trip_id: int, connection: Subscriber) -> bool:
        with self._lock:
            return connection.id in self._rooms.get(trip_id, {})

    def subscribers(self, trip_id: int) -> list[Subscriber]:
        with self._lock:
            return list(self._rooms.get(trip_id, {}).values())

    def rooms(self) -> list[int]:
        with self._lock:
            return list(self._rooms)

    def _fan_out(self, connections: list[Subscriber], event: dict, exclude: str | None) -> int:
        delivered = 0
        for connection in connections:
            if exclude and connection.id == exclude:
                continue
            try:
                connection.deliver(event)
            except Exception:
                logger.exception("Could not deliver %s to %r", event.get("type"), connection)
                continue
            delivered += 1
        return delivered

    def publish(self, trip_id: int, event: dict, exclude: str | None = None) -> int:
        """Hand ``event`` to every subscriber of ``trip_id`` except ``exclude``.

        Delivery is best effort and independent per subscriber. Returns the
        number of subscribers the event was handed to.
        """
        return self._fan_out(self.subscribers(trip_id), event, exclude)

    def broadcast(self, event: dict, exclude: str | None = None) -> int:
        """Hand ``event`` to every live connection, in a room or not."""
        with self._lock:
            connections = [c for user in self._users.values() for c in user.values()]
        return self._fan_out(connections, event, exclude)

    def send_to_user(self, user: str, event: dict) -> int:
        with self._lock:
            connections = list(self._users.get(user, {}).values())
        return self._fan_out(connections, event, None)
