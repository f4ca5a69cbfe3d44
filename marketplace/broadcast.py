"""
Realtime fan-out of booking and message events.

Every connected client receives every event; relevance filtering happens
client-side. Publishing only enqueues, it never waits for delivery.
"""

import asyncio
import logging
from typing import Protocol, Set

from fastapi import WebSocket, WebSocketDisconnect

from .events import build_event, to_json, ROUTING_KEYS
from .rabbitmq import RabbitPublisher

logger = logging.getLogger(__name__)

CLIENT_QUEUE_SIZE = 256


class BroadcastChannel(Protocol):
    async def publish(self, event_name: str, payload: dict) -> None:
        ...


class ClientConnection:
    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=CLIENT_QUEUE_SIZE)
        self.writer: asyncio.Task | None = None

    async def _drain(self):
        while True:
            body = await self.queue.get()
            if body is None:
                return
            try:
                await self.websocket.send_text(body)
            except Exception as e:
                logger.info("dropping realtime client after send failure: %s", e)
                return

    def start(self):
        self.writer = asyncio.create_task(self._drain())

    def offer(self, body: str) -> bool:
        try:
            self.queue.put_nowait(body)
            return True
        except asyncio.QueueFull:
            return False

    async def stop(self):
        if self.writer is None:
            return
        if not self.writer.done():
            self.writer.cancel()
        try:
            await self.writer
        except (asyncio.CancelledError, Exception):
            pass


class RealtimeHub:
    def __init__(self, mirror: RabbitPublisher | None = None):
        self._clients: Set[ClientConnection] = set()
        self._pending: Set[asyncio.Task] = set()
        self.mirror = mirror

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> ClientConnection:
        await websocket.accept()
        client = ClientConnection(websocket)
        client.start()
        self._clients.add(client)
        # A writer only exits once its socket is unusable or the client is stopped
        client.writer.add_done_callback(lambda _: self._clients.discard(client))
        logger.info("realtime client connected (%d total)", len(self._clients))
        return client

    async def disconnect(self, client: ClientConnection):
        self._clients.discard(client)
        await client.stop()
        logger.info("realtime client disconnected (%d total)", len(self._clients))

    async def serve(self, websocket: WebSocket):
        client = await self.connect(websocket)
        try:
            # Inbound frames are ignored; the loop only detects disconnects
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            await self.disconnect(client)

    async def publish(self, event_name: str, payload: dict) -> None:
        body = to_json(build_event(event_name, payload))

        for client in list(self._clients):
            if not client.offer(body):
                logger.warning("realtime client queue full, dropping %s", event_name)

        if self.mirror and self.mirror.enabled:
            routing_key = ROUTING_KEYS.get(event_name, event_name)
            task = asyncio.create_task(self.mirror.publish(routing_key, body))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def close(self):
        clients = list(self._clients)
        self._clients.clear()
        for client in clients:
            await client.stop()
            try:
                await client.websocket.close()
            except Exception:
                pass

        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

        if self.mirror:
            await self.mirror.close()
