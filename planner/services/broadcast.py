"""
Broadcast Hub

In-process fan-out of domain change messages to live subscribers.

Delivery is best-effort: a subscriber whose ``send`` raises is dropped on the
spot and the rest still get the message. After the fan-out the message is
forwarded to a secondary mirror (the SSE room), whose failures are swallowed.
Delivery failures never raise into the mutation that triggered the publish;
only a value outside the closed message union is rejected, with TypeError.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, runtime_checkable

from planner.services.messages import MESSAGE_TYPES, BroadcastMessage, channel_for, to_wire

logger = logging.getLogger(__name__)

DEFAULT_ROOM = "events"


@runtime_checkable
class Sendable(Protocol):
    """Anything that can take a serialized message: a WebSocket adapter, a test double."""

    def send(self, data: str) -> None: ...


class SecondaryMirror(Protocol):
    def emit(self, channel: str, payload: dict) -> None: ...


class NullMirror:
    """Mirror used until a real secondary transport is wired in."""

    def emit(self, channel: str, payload: dict) -> None:
        return None


class BroadcastHub:
    """Registry of connected subscribers plus the publish fan-out."""

    def __init__(self, mirror: Optional[SecondaryMirror] = None):
        self.mirror: SecondaryMirror = mirror or NullMirror()
        # id(subscriber) -> subscriber; dicts keep registration order
        self._subscribers: dict[int, Sendable] = {}

    def init(self) -> None:
        self._subscribers = {}

    def shutdown(self) -> None:
        """Close every subscriber that supports it and forget them all."""
        subscribers = list(self._subscribers.values())
        self._subscribers = {}
        for subscriber in subscribers:
            close = getattr(subscriber, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception:
                logger.debug("Subscriber close failed during shutdown", exc_info=True)

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber) -> bool:
        return self._subscribers.get(id(subscriber)) is subscriber

    def register(self, subscriber: Sendable) -> Callable[[], None]:
        """Add a subscriber. Returns a removal closure that is safe to call repeatedly."""
        key = id(subscriber)
        self._subscribers[key] = subscriber
        removed = False

        def unregister() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            self._discard(key, subscriber)

        return unregister

    def _discard(self, key: int, subscriber: Sendable) -> None:
        if self._subscribers.get(key) is subscriber:
            del self._subscribers[key]

    def publish(self, message: BroadcastMessage) -> int:
        """Deliver a message to every subscriber, then mirror it. Returns the delivery count."""
        if not isinstance(message, MESSAGE_TYPES):
            raise TypeError(f"not a broadcast message: {type(message).__name__}")
        wire = to_wire(message)
        payload = json.dumps(wire)

        delivered = 0
        for key, subscriber in list(self._subscribers.items()):
            try:
                subscriber.send(payload)
                delivered += 1
            except Exception:
                logger.debug("Dropping subscriber after failed send", exc_info=True)
                self._discard(key, subscriber)

        try:
            self.mirror.emit(channel_for(message), wire)
        except Exception:
            logger.debug("Secondary mirror emit failed for %s", message.type, exc_info=True)

        return delivered


class QueueSubscriber:
    """Sendable backed by a bounded asyncio.Queue.

    ``send`` never awaits; a transport task drains the queue. A full queue or a
    closed subscriber raises, which makes the hub drop it.
    """

    def __init__(self, maxsize: int = 256):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("subscriber closed")
        self.queue.put_nowait(data)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Wake the drain loop; drop the oldest item if needed to make room
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            self.queue.get_nowait()
            self.queue.put_nowait(None)


# ============== SSE mirror ==============

class SSEMirror:
    """Room-scoped SSE connections that receive every published message as a plain object."""

    def __init__(self, room: str = DEFAULT_ROOM, maxsize: int = 256):
        self.room = room
        self.maxsize = maxsize
        self.rooms: dict[str, dict[str, asyncio.Queue]] = {}

    def connect(self, session_id: str, room: Optional[str] = None) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self.maxsize)
        self.rooms.setdefault(room or self.room, {})[session_id] = queue
        return queue

    def disconnect(self, session_id: str, room: Optional[str] = None):
        connections = self.rooms.get(room or self.room)
        if connections and session_id in connections:
            del connections[session_id]

    def is_connected(self, session_id: str, room: Optional[str] = None) -> bool:
        return session_id in self.rooms.get(room or self.room, {})

    def connection_count(self, room: Optional[str] = None) -> int:
        return len(self.rooms.get(room or self.room, {}))

    def emit(self, channel: str, payload: dict) -> None:
        message = {
            "event": channel,
            "data": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        connections = self.rooms.get(self.room, {})
        for session_id, queue in list(connections.items()):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.info("SSE client %s is not keeping up, disconnecting", session_id)
                self.disconnect(session_id)
