"""Push feed over WebSocket.

Subscribers receive every event the scheduler publishes and can ask for
the current status or listing without polling the REST routes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

IDLE_PING_SECONDS = 60.0


def _orjson_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FeedEvent(BaseModel):
    """One message on the feed.

    ``type`` is one of ranking, analysis, product, currency, status for
    published events, or a reply type for client requests.
    """

    type: str
    data: Any = None
    timestamp: datetime = Field(default_factory=_now)

    def to_json(self) -> str:
        return _orjson_dumps(self.model_dump(mode="json"))


class ConnectionManager:
    """Connected subscribers. Implements the scheduler's PushFeed."""

    def __init__(self):
        self._connections: list[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.append(websocket)
        logger.info(f"Subscriber connected ({len(self._connections)} total)")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            if websocket in self._connections:
                self._connections.remove(websocket)
        logger.info(f"Subscriber disconnected ({len(self._connections)} total)")

    async def broadcast(self, event_type: str, data: dict[str, Any]) -> None:
        """Send an event to every subscriber, dropping dead connections."""
        if not self._connections:
            return

        text = FeedEvent(type=event_type, data=data).to_json()
        async with self._lock:
            dead = []
            for websocket in self._connections:
                try:
                    await websocket.send_text(text)
                except Exception as e:
                    logger.warning(f"Dropping subscriber after failed send: {e}")
                    dead.append(websocket)
            for websocket in dead:
                self._connections.remove(websocket)

    @property
    def connection_count(self) -> int:
        return len(self._connections)


manager = ConnectionManager()


async def _reply(websocket: WebSocket, event_type: str, data: Any = None) -> None:
    await websocket.send_text(FeedEvent(type=event_type, data=data).to_json())


async def websocket_endpoint(websocket: WebSocket):
    """
    Subscriber connection.

    Client requests:
    - {"type": "ping"} -> pong
    - {"type": "status"} -> engine status snapshot
    - {"type": "rankings", "data": {"count": 10, "pairs": ["BTC-USD"]}}
      -> sorted listing, limited to ``pairs`` if given, else to ``count``

    An idle connection gets a ping every 60 seconds.
    """
    await manager.connect(websocket)

    try:
        await _reply(websocket, "connected", {"message": "Connected to Pair Ranker"})

        while True:
            try:
                text = await asyncio.wait_for(websocket.receive_text(), timeout=IDLE_PING_SECONDS)
            except asyncio.TimeoutError:
                await _reply(websocket, "ping", {})
                continue

            try:
                message = orjson.loads(text)
            except orjson.JSONDecodeError:
                await _reply(websocket, "error", {"message": "Invalid JSON"})
                continue
            await handle_client_message(websocket, message)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: Any) -> None:
    """Answer one client request."""
    msg_type = message.get("type", "") if isinstance(message, dict) else ""

    if msg_type == "ping":
        await _reply(websocket, "pong", {})
        return
    if msg_type not in ("status", "rankings"):
        await _reply(websocket, "error", {"message": f"Unknown message type: {msg_type}"})
        return

    scheduler = getattr(websocket.app.state, "scheduler", None)
    if scheduler is None:
        await _reply(websocket, "error", {"message": "Ranking engine not started"})
        return

    if msg_type == "status":
        await _reply(websocket, "status", scheduler.status_snapshot())
        return

    params = message.get("data") or {}
    pairs = [str(pair).upper() for pair in params.get("pairs") or []]
    if pairs:
        records = [r for r in scheduler.get_sorted_rankings({"count": 0}) if r.pair_id in pairs]
    else:
        count = params.get("count")
        override = {"count": count} if isinstance(count, int) and count >= 0 else None
        records = scheduler.get_sorted_rankings(override)
    await _reply(websocket, "rankings", [record.model_dump(mode="json") for record in records])
