"""Realtime transports used by the client-side connection manager.

A transport owns one network connection and delivers decoded
``(event, data)`` pairs for the channels it is subscribed to. It reports
connection loss through ``on_state_change`` so the manager can drop its
cached handle and reconnect on the next ``connect`` call.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

import redis
import redis.asyncio as aioredis

from ..errors import TransportError
from ..services.fanout import decode_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict[str, Any]], None]
StateListener = Callable[[str], None]


class RealtimeTransport(ABC):
    on_state_change: StateListener | None = None

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    async def subscribe(self, channel: str, handler: EventHandler) -> None: ...

    @abstractmethod
    async def unsubscribe(self, channel: str) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    def _notify_state(self, state: str) -> None:
        if self.on_state_change is not None:
            self.on_state_change(state)


class RedisTransport(RealtimeTransport):
    """Redis pub/sub connection with a background reader task."""

    def __init__(self, url: str, *, poll_timeout: float = 1.0):
        self._url = url
        self._poll_timeout = poll_timeout
        self._client: aioredis.Redis | None = None
        self._pubsub = None
        self._reader: asyncio.Task | None = None
        self._handlers: dict[str, EventHandler] = {}

    async def connect(self) -> None:
        client = aioredis.Redis.from_url(self._url, socket_connect_timeout=5)
        try:
            await client.ping()
        except redis.RedisError as exc:
            await client.aclose()
            raise TransportError(f"connect failed: {exc}") from exc
        self._client = client
        self._pubsub = client.pubsub()
        logger.info("[realtime] redis transport connected")

    async def subscribe(self, channel: str, handler: EventHandler) -> None:
        if self._pubsub is None:
            raise TransportError("transport is not connected", channel=channel)
        try:
            await self._pubsub.subscribe(channel)
        except redis.RedisError as exc:
            raise TransportError(f"subscribe failed: {exc}", channel=channel) from exc
        self._handlers[channel] = handler
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_loop())

    async def unsubscribe(self, channel: str) -> None:
        self._handlers.pop(channel, None)
        if self._pubsub is None:
            return
        try:
            await self._pubsub.unsubscribe(channel)
        except redis.RedisError as exc:
            raise TransportError(f"unsubscribe failed: {exc}", channel=channel) from exc

    async def close(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        self._handlers.clear()
        pubsub, self._pubsub = self._pubsub, None
        client, self._client = self._client, None
        try:
            if pubsub is not None:
                await pubsub.aclose()
            if client is not None:
                await client.aclose()
        except redis.RedisError as exc:
            raise TransportError(f"close failed: {exc}") from exc

    async def _read_loop(self) -> None:
        while True:
            try:
                message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=self._poll_timeout)
            except redis.RedisError as exc:
                logger.warning(f"[realtime] redis connection lost: {exc}")
                self._lost()
                return
            except Exception:
                logger.exception("[realtime] reader failed, dropping connection")
                self._lost()
                return
            if not message or message.get("type") != "message":
                continue
            channel = message.get("channel")
            if isinstance(channel, bytes):
                channel = channel.decode("utf-8", errors="replace")
            handler = self._handlers.get(channel)
            if handler is None:
                continue
            try:
                # Payloads arrive as raw bytes; invalid UTF-8 surfaces here as ValueError.
                event, data = decode_event(message["data"])
            except ValueError as exc:
                logger.warning(f"[realtime] dropped malformed event on {channel}: {exc}")
                continue
            handler(event, data)

    def _lost(self) -> None:
        self._reader = None
        self._notify_state("disconnected")
