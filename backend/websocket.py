"""
WebSocket server for real-time updates.

CS Concept: **Pub/Sub Pattern** - each connection belongs to one signed-in
user and subscribes to topics. Record-store topics are backed by live
subscriptions on the RecordStore; "dashboard" is backed by a
DashboardController; "timer" listens to the user's stopwatch.

Architecture:
┌─────────────┐     ┌─────────────┐     ┌─────────────┐
│  Client A   │────►│  WebSocket  │◄────│ RecordStore │
│  (browser)  │◄────│   Manager   │     │  (publish)  │
└─────────────┘     └──────┬──────┘     └─────────────┘
                           │
                    ┌──────▼──────┐
                    │  Outbound   │
                    │   queue     │
                    └─────────────┘

Store callbacks are synchronous; they hand messages to the connection's
outbound queue with ``loop.call_soon_threadsafe`` and a per-connection
sender task writes them to the socket in order.
"""

from fastapi import WebSocket, WebSocketDisconnect
from typing import Any, Dict, Optional
import json
import asyncio
import logging
from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum

from timetrack.dashboard.controller import DashboardController
from timetrack.store.subscriptions import Snapshot
from timetrack.utils.errors import handle_operation

logger = logging.getLogger("backend.websocket")

# Custom close code: connection attempted without a valid session
CLOSE_UNAUTHORIZED = 4401


class TopicType(str, Enum):
    """Available subscription topics"""
    TASKS = "tasks"
    CATEGORIES = "categories"
    TIME_ENTRIES = "time_entries"
    DASHBOARD = "dashboard"
    TIMER = "timer"


@dataclass
class Connection:
    """Represents a WebSocket connection"""
    websocket: WebSocket
    user_id: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    # topic -> Subscription or DashboardController
    handles: Dict[str, Any] = field(default_factory=dict)
    sender: Optional[asyncio.Task] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def topics(self):
        return set(self.handles)

    def enqueue(self, message: dict) -> None:
        """Queue a message from any thread."""
        message.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        self.loop.call_soon_threadsafe(self.queue.put_nowait, message)


class WebSocketManager:
    """
    Manages WebSocket connections and their live subscriptions.

    Usage:
        manager = WebSocketManager(store, timers, config)

        # In WebSocket endpoint
        conn_id = await manager.connect(websocket, user_id)
        await manager.subscribe(websocket, ["tasks", "dashboard"])
        ...
        await manager.disconnect(websocket)   # releases everything
    """

    def __init__(self, store, timers, config=None):
        self.store = store
        self.timers = timers
        self.config = config
        # Map of connection_id -> Connection
        self.connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    def _get_connection_id(self, websocket: WebSocket) -> str:
        """Generate unique ID for a connection"""
        return f"{id(websocket)}"

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        """
        Accept and register a new WebSocket connection.

        Returns:
            Connection ID
        """
        await websocket.accept()

        conn_id = self._get_connection_id(websocket)
        connection = Connection(
            websocket=websocket,
            user_id=user_id,
            loop=asyncio.get_running_loop(),
        )
        connection.sender = asyncio.create_task(self._pump(connection))

        async with self._lock:
            self.connections[conn_id] = connection

        logger.info("Client connected: %s (user %s)", conn_id, user_id)
        return conn_id

    async def _pump(self, connection: Connection) -> None:
        while True:
            message = await connection.queue.get()
            try:
                await connection.websocket.send_text(json.dumps(message))
            except Exception as e:
                logger.warning("Failed to send to %s: %s", connection.user_id, e)
                return

    async def disconnect(self, websocket: WebSocket):
        """Remove a connection and release all its subscriptions"""
        conn_id = self._get_connection_id(websocket)

        async with self._lock:
            connection = self.connections.pop(conn_id, None)

        if connection is None:
            return

        for topic in list(connection.handles):
            self._release(connection, topic)
        if connection.sender is not None:
            connection.sender.cancel()
        logger.info("Client disconnected: %s", conn_id)

    # =========================================================================
    # Topics
    # =========================================================================

    def _open(self, connection: Connection, topic: str):
        user_id = connection.user_id

        if topic == TopicType.DASHBOARD.value:
            def push(view):
                connection.enqueue({"type": "dashboard_update", "data": view.to_dict()})

            preferences = {}
            if self.config is not None:
                preferences = {
                    "months": int(self.config.get("analytics_months", "preferences", 6)),
                    "top_limit": int(self.config.get("top_tasks_limit", "preferences", 10)),
                    "week_start": self.config.get("first_day_of_week", "preferences", "sunday"),
                    "clock": self.config.now,
                }
            controller = DashboardController(self.store, user_id, on_change=push, **preferences)
            controller.activate()
            return controller

        if topic == TopicType.TIMER.value:
            def push_timer(state):
                connection.enqueue({"type": "timer_tick", "data": state})

            subscription = self.timers.add_listener(user_id, push_timer)
            push_timer(self.timers.get(user_id).state())
            return subscription

        def push_snapshot(snapshot: Snapshot):
            connection.enqueue({
                "type": "snapshot",
                "topic": snapshot.collection,
                "items": [item.to_dict() for item in snapshot.items],
                "error": snapshot.error,
            })

        return self.store.subscribe(user_id, topic, push_snapshot)

    def _release(self, connection: Connection, topic: str) -> None:
        handle = connection.handles.pop(topic, None)
        if isinstance(handle, DashboardController):
            handle.deactivate()
        elif handle is not None:
            handle.unsubscribe()

    async def subscribe(self, websocket: WebSocket, topics: list) -> list:
        """
        Subscribe a connection to topics.

        Returns:
            Topics that were unknown and ignored
        """
        connection = self.connections.get(self._get_connection_id(websocket))
        if connection is None:
            return []

        unknown = []
        for topic in topics:
            if not isinstance(topic, str) or topic not in TopicType._value2member_map_:
                unknown.append(topic)
                continue
            if topic in connection.handles:
                continue
            result = handle_operation(
                lambda: self._open(connection, topic),
                context=f"subscribe {topic}",
                user_id=connection.user_id,
            )
            if not result.ok:
                connection.enqueue({
                    "type": "error",
                    "code": "SUBSCRIBE_FAILED",
                    "topic": topic,
                    "message": result.error.message,
                })
                continue
            connection.handles[topic] = result.data
            logger.debug("%s subscribed to %s", connection.user_id, topic)
        return unknown

    async def unsubscribe(self, websocket: WebSocket, topics: list):
        """Unsubscribe a connection from topics"""
        connection = self.connections.get(self._get_connection_id(websocket))
        if connection is None:
            return

        for topic in topics:
            if isinstance(topic, str):
                self._release(connection, topic)

    async def close_all(self) -> None:
        for connection in list(self.connections.values()):
            await self.disconnect(connection.websocket)

    def get_connection_count(self) -> int:
        """Get number of active connections"""
        return len(self.connections)

    def get_topic_subscriber_count(self, topic: str) -> int:
        """Get number of connections subscribed to a topic"""
        return sum(1 for c in self.connections.values() if topic in c.handles)


async def websocket_endpoint(websocket: WebSocket, manager: WebSocketManager,
                             user_id: Optional[str]):
    """
    Main WebSocket endpoint handler.

    Protocol:
        Client sends: { "type": "subscribe", "topics": ["tasks", "dashboard"] }
        Client sends: { "type": "unsubscribe", "topics": ["tasks"] }
        Client sends: { "type": "ping", "timestamp": 1234567890 }
        Server sends: { "type": "snapshot", "topic": "tasks", "items": [...], ... }
        Server sends: { "type": "dashboard_update", "data": {...}, ... }
        Server sends: { "type": "timer_tick", "data": {...}, ... }
        Server sends: { "type": "pong", "timestamp": 1234567890, "serverTime": "..." }
    """
    if user_id is None:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return

    await manager.connect(websocket, user_id)
    connection = manager.connections[manager._get_connection_id(websocket)]

    try:
        while True:
            # Receive message from client
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                connection.enqueue({
                    "type": "error",
                    "code": "INVALID_JSON",
                    "message": "Message must be valid JSON",
                })
                continue

            msg_type = message.get("type") if isinstance(message, dict) else None

            if msg_type in ("subscribe", "unsubscribe") and not isinstance(
                message.get("topics", []), list
            ):
                connection.enqueue({
                    "type": "error",
                    "code": "INVALID_MESSAGE",
                    "message": "topics must be a list of topic names",
                })

            elif msg_type == "subscribe":
                unknown = await manager.subscribe(websocket, message.get("topics", []))
                if unknown:
                    connection.enqueue({
                        "type": "error",
                        "code": "UNKNOWN_TOPIC",
                        "message": f"Unknown topics: {', '.join(map(str, unknown))}",
                    })

            elif msg_type == "unsubscribe":
                await manager.unsubscribe(websocket, message.get("topics", []))

            elif msg_type == "ping":
                connection.enqueue({
                    "type": "pong",
                    "timestamp": message.get("timestamp"),
                    "serverTime": datetime.now(timezone.utc).isoformat(),
                })

            else:
                connection.enqueue({
                    "type": "error",
                    "code": "UNKNOWN_MESSAGE_TYPE",
                    "message": f"Unknown message type: {msg_type}",
                })

    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
