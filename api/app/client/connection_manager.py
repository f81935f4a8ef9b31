"""Shared realtime connection for every live-update consumer in one client.

Chat windows, notification banners and header badges all register here
instead of opening their own connections. The manager keeps at most one
transport connection and one subscription to the user's personal channel,
binds the channel handler once, and dispatches every incoming event to all
registered subscribers. The connection is closed when the last subscriber
leaves.

Build one ``ConnectionManager`` at application start and hand it to the
components that need it.
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from ..errors import TransportError
from ..services.fanout import (
    MATCH_LIKE,
    MATCH_NEW,
    MESSAGE_READ_RECEIPT,
    MESSAGE_RECEIVE,
    TYPING_USER_TYPING,
    user_channel,
)
from .transport import RealtimeTransport

logger = logging.getLogger(__name__)

Callback = Callable[[dict[str, Any]], Any]

EVENT_CALLBACKS = {
    MESSAGE_RECEIVE: "on_message",
    TYPING_USER_TYPING: "on_typing",
    MESSAGE_READ_RECEIPT: "on_read_receipt",
    MATCH_NEW: "on_match",
    MATCH_LIKE: "on_like",
}


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


@dataclass
class SubscriberConfig:
    user_id: str
    on_message: Callback | None = None
    on_typing: Callback | None = None
    on_read_receipt: Callback | None = None
    on_match: Callback | None = None
    on_like: Callback | None = None


class ConnectionManager:
    def __init__(self, transport_factory: Callable[[], RealtimeTransport]):
        self._transport_factory = transport_factory
        self._transport: RealtimeTransport | None = None
        self._channel: str | None = None
        self._user_id: str | None = None
        self._state = ConnectionState.IDLE
        self._connecting: asyncio.Task | None = None
        self._subscribers: dict[str, SubscriberConfig] = {}
        self._background: set[asyncio.Task] = set()
        self.connections_opened = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    async def connect(self, config: SubscriberConfig) -> str:
        """Register a subscriber, opening the shared connection if needed.

        Returns the subscriber handle to pass to :meth:`disconnect`.
        """
        if self._user_id is not None and self._user_id != config.user_id:
            logger.info(f"[realtime] switching user {self._user_id} -> {config.user_id}, tearing down")
            await self._teardown()

        subscriber_id = f"subscriber-{uuid.uuid4().hex}"
        self._subscribers[subscriber_id] = config

        if self._state == ConnectionState.CONNECTED and self._transport is not None:
            logger.debug(f"[realtime] reusing connection for {subscriber_id}")
            return subscriber_id

        if self._connecting is None:
            self._user_id = config.user_id
            self._connecting = asyncio.ensure_future(self._open(config.user_id))
        else:
            logger.debug("[realtime] connection in progress, waiting")

        try:
            await asyncio.shield(self._connecting)
        except BaseException:
            self._subscribers.pop(subscriber_id, None)
            if not self._subscribers and self._connecting is not None:
                # Cancelled while the shared connect is still running.
                self._spawn(self._release_if_unused())
            raise
        return subscriber_id

    async def disconnect(self, subscriber_id: str | None = None) -> None:
        """Remove one subscriber; the connection closes when none remain.

        Without a handle every subscriber is dropped and the connection closed.
        """
        if subscriber_id is not None:
            if self._subscribers.pop(subscriber_id, None) is None:
                return
            logger.debug(f"[realtime] removed {subscriber_id}, remaining={len(self._subscribers)}")
            if self._subscribers:
                return
        await self._teardown()

    async def _open(self, user_id: str) -> None:
        self._state = ConnectionState.CONNECTING
        transport = self._transport_factory()
        transport.on_state_change = lambda state: self._on_transport_state(transport, state)
        channel = user_channel(user_id)
        try:
            await transport.connect()
            # One handler per channel; fan-out to subscribers happens in _dispatch.
            await transport.subscribe(channel, self._dispatch)
        except BaseException as exc:
            self._state = ConnectionState.FAILED
            self._user_id = None
            self._connecting = None
            await self._close_quietly(transport)
            logger.warning(f"[realtime] connection failed for user {user_id}: {exc}")
            if isinstance(exc, Exception) and not isinstance(exc, TransportError):
                raise TransportError(f"connect failed: {exc}", channel=channel) from exc
            raise
        self._transport = transport
        self._channel = channel
        self._state = ConnectionState.CONNECTED
        self._connecting = None
        self.connections_opened += 1
        logger.info(f"[realtime] connected channel={channel}")

    async def _teardown(self) -> None:
        if self._connecting is not None:
            try:
                await asyncio.shield(self._connecting)
            except TransportError:
                pass
        transport, channel = self._transport, self._channel
        self._transport = None
        self._channel = None
        self._user_id = None
        self._subscribers.clear()
        if transport is None:
            return
        if channel is not None:
            try:
                await transport.unsubscribe(channel)
            except TransportError as exc:
                logger.warning(f"[realtime] unsubscribe failed channel={channel}: {exc}")
        await self._close_quietly(transport)
        self._state = ConnectionState.DISCONNECTED
        logger.info(f"[realtime] disconnected channel={channel}")

    async def _release_if_unused(self) -> None:
        if self._connecting is not None:
            try:
                await asyncio.shield(self._connecting)
            except TransportError:
                return
        if not self._subscribers:
            await self._teardown()

    async def _close_quietly(self, transport: RealtimeTransport) -> None:
        try:
            await transport.close()
        except TransportError as exc:
            logger.warning(f"[realtime] transport close failed: {exc}")

    def _on_transport_state(self, transport: RealtimeTransport, state: str) -> None:
        if transport is not self._transport or state != ConnectionState.DISCONNECTED.value:
            return
        # Keep subscribers; the next connect() opens a fresh transport for them.
        self._transport = None
        self._channel = None
        self._state = ConnectionState.DISCONNECTED
        logger.warning("[realtime] transport dropped, will reconnect on next connect()")
        self._spawn(self._close_quietly(transport))

    def _dispatch(self, event: str, data: dict[str, Any]) -> None:
        name = EVENT_CALLBACKS.get(event)
        if name is None:
            logger.debug(f"[realtime] ignoring unknown event {event}")
            return
        for subscriber_id, config in list(self._subscribers.items()):
            callback = getattr(config, name)
            if callback is None:
                continue
            try:
                result = callback(data)
            except Exception:
                logger.exception(f"[realtime] subscriber {subscriber_id} failed handling {event}")
                continue
            if inspect.isawaitable(result):
                self._spawn(result)

    def _spawn(self, awaitable: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[realtime] background task failed: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait for callbacks and cleanups spawned by event dispatch."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
