"""
Realtime push to websocket connections.

Publishers are called from synchronous code (request handlers running in the
thread pool, background dispatch). ``RedisPublisher`` fans out through Redis
pub/sub so every web process relays to its own connections via a
``RedisBridge``; ``LocalPublisher`` hands the payload straight to this
process's registry on the event loop.
"""
import asyncio
import json
import logging
import threading
import uuid
from typing import Any, Optional, Protocol

import redis
import redis.asyncio as aioredis
from fastapi import WebSocket

from app.config import settings

logger = logging.getLogger(__name__)


class Connection:
    """A registered websocket plus its liveness flag."""

    def __init__(self, websocket: WebSocket):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.alive = True
        self._send_lock = asyncio.Lock()

    async def send(self, payload: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(payload)


class ConnectionRegistry:
    """Connections keyed by id.

    Broadcast works on a snapshot; connections that fail are marked dead
    during the pass and removed once it finishes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def add(self, websocket: WebSocket) -> Connection:
        connection = Connection(websocket)
        with self._lock:
            self._connections[connection.id] = connection
        logger.info("Realtime connection %s registered", connection.id)
        return connection

    def remove(self, connection_id: str) -> None:
        with self._lock:
            removed = self._connections.pop(connection_id, None)
        if removed is not None:
            removed.alive = False
            logger.info("Realtime connection %s removed", connection_id)

    def snapshot(self) -> list[Connection]:
        with self._lock:
            return list(self._connections.values())

    async def broadcast(self, payload: dict) -> int:
        """Send payload to every live connection. Returns the delivery count."""
        delivered = 0
        dead = []
        for connection in self.snapshot():
            if not connection.alive:
                continue
            try:
                await connection.send(payload)
                delivered += 1
            except Exception as e:
                logger.warning("Realtime send to %s failed: %s", connection.id, e)
                connection.alive = False
                dead.append(connection.id)
        for connection_id in dead:
            self.remove(connection_id)
        return delivered


class Publisher(Protocol):
    def publish(self, payload: dict) -> None: ...


class LocalPublisher:
    """Schedules broadcasts on the application's event loop."""

    def __init__(self, registry: ConnectionRegistry, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.registry = registry
        self.loop = loop

    def publish(self, payload: dict) -> None:
        if self.loop is None or self.loop.is_closed():
            logger.debug("No event loop bound, dropping realtime payload")
            return
        asyncio.run_coroutine_threadsafe(self.registry.broadcast(payload), self.loop)


class RedisPublisher:
    """Publishes realtime payloads via Redis pub/sub."""

    def __init__(self, url: Optional[str] = None, channel: Optional[str] = None):
        self.redis = redis.from_url(url or settings.redis_url)
        self.channel = channel or settings.realtime_channel

    def publish(self, payload: dict) -> None:
        self.redis.publish(self.channel, json.dumps(payload, default=str))

    def close(self):
        """Close Redis connection."""
        self.redis.close()


class RedisBridge:
    """Relays messages from the Redis channel to the local registry."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        url: Optional[str] = None,
        channel: Optional[str] = None,
        retry_delay: float = 1.0,
    ):
        self.registry = registry
        self.url = url or settings.redis_url
        self.channel = channel or settings.realtime_channel
        self.retry_delay = retry_delay
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            client = aioredis.from_url(self.url)
            pubsub = client.pubsub()
            try:
                await pubsub.subscribe(self.channel)
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    payload = _decode(message["data"])
                    if payload is not None:
                        await self.registry.broadcast(payload)
            except redis.RedisError as e:
                logger.warning("Realtime bridge lost Redis connection: %s", e)
                await asyncio.sleep(self.retry_delay)
            finally:
                await pubsub.aclose()
                await client.aclose()


def _decode(data: Any) -> Optional[dict]:
    try:
        payload = json.loads(data)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Ignoring malformed realtime payload")
        return None
    return payload if isinstance(payload, dict) else None
