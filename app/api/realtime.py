"""Websocket endpoint for realtime push.

The socket is meant for a trusted relay (the frontend server), not for end
users: it is gated by the shared server key and receives every payload with
its ``targets`` so the relay can route it.
"""

import asyncio
import hmac
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _key_allowed(key: str) -> bool:
    return bool(settings.server_key) and hmac.compare_digest(key.encode(), settings.server_key.encode())


async def _ping(connection, interval: float) -> None:
    while connection.alive:
        await asyncio.sleep(interval)
        try:
            await connection.send({"type": "ping"})
        except Exception as e:
            logger.info("Ping to %s failed: %s", connection.id, e)
            connection.alive = False


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, key: str = Query("")):
    if not _key_allowed(key):
        logger.warning("Refused realtime connection with a bad key")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    registry = websocket.app.state.registry
    connection = registry.add(websocket)
    pinger = asyncio.create_task(_ping(connection, settings.websocket_ping_interval))
    try:
        while connection.alive:
            # Any frame from the relay (pongs included) counts as liveness
            message = await asyncio.wait_for(
                websocket.receive(), timeout=settings.websocket_read_deadline
            )
            if message["type"] == "websocket.disconnect":
                break
    except asyncio.TimeoutError:
        logger.info("Realtime connection %s missed its read deadline", connection.id)
        await websocket.close(code=status.WS_1001_GOING_AWAY)
    except WebSocketDisconnect:
        pass
    finally:
        pinger.cancel()
        registry.remove(connection.id)
