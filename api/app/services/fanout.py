"""Per-user fanout over Redis pub/sub.

Every realtime event for a user goes to that user's personal channel
(``user-<id>``); there are no per-conversation channels. Payloads are wrapped
in a ``{"event": ..., "data": ...}`` envelope so a single subscription can
carry every event type.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any

import redis

from ..config import REDIS_URL
from ..errors import TransportError

logger = logging.getLogger(__name__)

MESSAGE_RECEIVE = "message:receive"
TYPING_USER_TYPING = "typing:user_typing"
MESSAGE_READ_RECEIPT = "message:read_receipt"
MATCH_NEW = "match:new"
MATCH_LIKE = "match:like"

EVENT_NAMES = (MESSAGE_RECEIVE, TYPING_USER_TYPING, MESSAGE_READ_RECEIPT, MATCH_NEW, MATCH_LIKE)


def user_channel(user_id: str) -> str:
    return f"user-{user_id}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def encode_event(event: str, data: dict[str, Any]) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


def decode_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    envelope = json.loads(raw)
    if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
        raise ValueError("event envelope must be an object with an 'event' name")
    data = envelope.get("data")
    return envelope["event"], data if isinstance(data, dict) else {}


class FanoutPublisher:
    """Publishes domain events to users' personal channels.

    The underlying redis client keeps a connection pool, so one publisher is
    shared by all request handlers.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "FanoutPublisher":
        return cls(redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=5))

    def publish(self, user_id: str, event: str, data: dict[str, Any]) -> int:
        channel = user_channel(user_id)
        try:
            receivers = self._client.publish(channel, encode_event(event, data))
        except redis.RedisError as exc:
            raise TransportError(f"publish failed: {exc}", channel=channel, event=event) from exc
        logger.debug(f"[fanout] published event={event} channel={channel} receivers={receivers}")
        return int(receivers or 0)

    def deliver(self, user_id: str, event: str, data: dict[str, Any]) -> bool:
        """Publish without raising; returns whether the transport accepted the event."""
        try:
            self.publish(user_id, event, data)
        except TransportError as exc:
            logger.warning(f"[fanout] delivery failed event={exc.event} channel={exc.channel} error={exc}")
            return False
        return True

    def message_received(self, receiver_id: str, message: dict[str, Any]) -> bool:
        return self.deliver(
            receiver_id,
            MESSAGE_RECEIVE,
            {
                "matchId": message["matchId"],
                "senderId": message["senderId"],
                "content": message["content"],
                "messageType": message["messageType"],
                "timestamp": message["createdAt"],
                "message": message,
            },
        )

    def typing_changed(self, receiver_id: str, match_id: str, user_id: str, is_typing: bool) -> bool:
        return self.deliver(
            receiver_id,
            TYPING_USER_TYPING,
            {"matchId": match_id, "userId": user_id, "isTyping": is_typing},
        )

    def read_receipt(self, recipient_id: str, match_id: str, read_by_user_id: str, timestamp: str | None = None) -> bool:
        return self.deliver(
            recipient_id,
            MESSAGE_READ_RECEIPT,
            {"matchId": match_id, "readByUserId": read_by_user_id, "timestamp": timestamp or utc_timestamp()},
        )

    def match_formed(self, user_id: str, match_id: str, counterpart: dict[str, Any]) -> bool:
        return self.deliver(
            user_id,
            MATCH_NEW,
            {"match": {"id": match_id, "user": counterpart}, "timestamp": utc_timestamp()},
        )

    def like_received(self, target_id: str, liker: dict[str, Any]) -> bool:
        return self.deliver(target_id, MATCH_LIKE, {"liker": liker, "timestamp": utc_timestamp()})

    def close(self) -> None:
        self._client.close()


_publisher: FanoutPublisher | None = None
_publisher_lock = threading.Lock()


def get_fanout() -> FanoutPublisher:
    global _publisher
    if _publisher is None:
        with _publisher_lock:
            if _publisher is None:
                _publisher = FanoutPublisher.from_url(REDIS_URL)
                logger.info("[fanout] publisher created")
    return _publisher


def close_fanout() -> None:
    global _publisher
    with _publisher_lock:
        if _publisher is not None:
            _publisher.close()
            _publisher = None
