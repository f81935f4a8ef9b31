"""Local, event-driven copy of a user's conversations and messages.

Events can arrive twice (push and re-fetch) and out of order across event
types, so every mutation here is idempotent: messages are keyed by id,
history fetches merge instead of replacing, and read receipts for messages
not yet known are remembered and applied when those messages show up.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from ..services.payloads import as_datetime, conversation_sort_key

logger = logging.getLogger(__name__)


def _message_key(message: dict[str, Any]) -> str:
    if message.get("id"):
        return str(message["id"])
    return f"{message.get('matchId')}:{message.get('senderId')}:{message.get('createdAt')}"


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _message_order(message: dict[str, Any]) -> tuple[datetime, str]:
    return (as_datetime(message.get("createdAt")) or _EPOCH, _message_key(message))


class ConversationState:
    def __init__(self, user_id: str):
        self.user_id = user_id
        self._conversations: dict[str, dict[str, Any]] = {}
        self._messages: dict[str, dict[str, dict[str, Any]]] = {}
        self._read_watermarks: dict[str, datetime] = {}
        self._typing: dict[str, set[str]] = {}
        self.likes_received: list[dict[str, Any]] = []

    # -- conversations -------------------------------------------------

    @staticmethod
    def _conversation_key(view: dict[str, Any]) -> str:
        if view.get("matchId"):
            return str(view["matchId"])
        return f"pending:{view['otherUser']['id']}"

    def load_conversations(self, views: list[dict[str, Any]]) -> None:
        self._conversations = {self._conversation_key(v): dict(v) for v in views}

    @property
    def conversations(self) -> list[dict[str, Any]]:
        return sorted(self._conversations.values(), key=conversation_sort_key, reverse=True)

    def conversation(self, match_id: str) -> dict[str, Any] | None:
        return self._conversations.get(match_id)

    def can_message(self, match_id: str | None) -> bool:
        if not match_id:
            return False
        view = self._conversations.get(match_id)
        return bool(view and view.get("status") == "accepted")

    # -- messages ------------------------------------------------------

    def messages_for(self, match_id: str) -> list[dict[str, Any]]:
        return sorted(self._messages.get(match_id, {}).values(), key=_message_order)

    def merge_history(self, match_id: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        bucket = self._messages.setdefault(match_id, {})
        for message in messages:
            key = _message_key(message)
            known = bucket.get(key)
            merged = {**known, **message} if known else dict(message)
            if known and known.get("isRead") and not merged.get("isRead"):
                merged["isRead"] = True
                merged["readAt"] = known.get("readAt")
            bucket[key] = self._apply_watermark(match_id, merged)
        return self.messages_for(match_id)

    def append_own(self, message: dict[str, Any]) -> bool:
        """Optimistically add a message this user just sent. False if already present."""
        return self._add_message(message, incoming=False)

    def apply_incoming_message(self, data: dict[str, Any]) -> bool:
        message = data.get("message")
        if not isinstance(message, dict):
            message = {
                "matchId": data.get("matchId"),
                "senderId": data.get("senderId"),
                "receiverId": self.user_id,
                "content": data.get("content"),
                "messageType": data.get("messageType") or "text",
                "isRead": False,
                "createdAt": data.get("timestamp"),
            }
        sender_id = str(message.get("senderId"))
        match_id = str(message.get("matchId"))
        self._typing.get(match_id, set()).discard(sender_id)
        return self._add_message(message, incoming=sender_id != self.user_id)

    def _add_message(self, message: dict[str, Any], *, incoming: bool) -> bool:
        match_id = str(message.get("matchId"))
        bucket = self._messages.setdefault(match_id, {})
        key = _message_key(message)
        if key in bucket:
            logger.debug(f"[state] duplicate message {key} ignored")
            return False
        bucket[key] = self._apply_watermark(match_id, dict(message))

        view = self._conversations.get(match_id)
        if view is not None:
            view["lastMessageAt"] = message.get("createdAt")
            view["latestMessage"] = {
                "id": message.get("id"),
                "content": message.get("content"),
                "senderId": message.get("senderId"),
                "createdAt": message.get("createdAt"),
                "messageType": message.get("messageType") or "text",
            }
            if incoming:
                view["unreadCount"] = int(view.get("unreadCount") or 0) + 1
        return True

    # -- receipts and read state -----------------------------------------

    def apply_read_receipt(self, data: dict[str, Any]) -> int:
        """Mark this user's messages in the match as read by the other party."""
        match_id = str(data.get("matchId"))
        read_by = str(data.get("readByUserId"))
        if read_by == self.user_id:
            return 0
        read_at = as_datetime(data.get("timestamp"))
        if read_at is not None:
            current = self._read_watermarks.get(match_id)
            if current is None or read_at > current:
                self._read_watermarks[match_id] = read_at
        updated = 0
        for message in self._messages.get(match_id, {}).values():
            if str(message.get("senderId")) != self.user_id or message.get("isRead"):
                continue
            created = as_datetime(message.get("createdAt"))
            if read_at is not None and created is not None and created > read_at:
                continue
            message["isRead"] = True
            message["readAt"] = data.get("timestamp")
            updated += 1
        return updated

    def _apply_watermark(self, match_id: str, message: dict[str, Any]) -> dict[str, Any]:
        watermark = self._read_watermarks.get(match_id)
        if watermark is None or message.get("isRead") or str(message.get("senderId")) != self.user_id:
            return message
        created = as_datetime(message.get("createdAt"))
        if created is not None and created <= watermark:
            message["isRead"] = True
            message["readAt"] = watermark.isoformat()
        return message

    def mark_conversation_read(self, match_id: str) -> None:
        for message in self._messages.get(match_id, {}).values():
            if str(message.get("receiverId")) == self.user_id:
                message["isRead"] = True
        view = self._conversations.get(match_id)
        if view is not None:
            view["unreadCount"] = 0

    # -- typing ----------------------------------------------------------

    def apply_typing(self, data: dict[str, Any]) -> None:
        user_id = str(data.get("userId"))
        if user_id == self.user_id:
            return
        users = self._typing.setdefault(str(data.get("matchId")), set())
        if data.get("isTyping"):
            users.add(user_id)
        else:
            users.discard(user_id)

    def typing_users(self, match_id: str) -> set[str]:
        return set(self._typing.get(match_id, set()))

    # -- matches and likes -----------------------------------------------

    def apply_match(self, data: dict[str, Any]) -> bool:
        match = data.get("match") or {}
        match_id = match.get("id")
        user = match.get("user") or {}
        if not match_id or not user.get("id"):
            return False
        match_id = str(match_id)
        self._conversations.pop(f"pending:{user['id']}", None)
        if match_id in self._conversations:
            return False
        self._conversations[match_id] = {
            "matchId": match_id,
            "otherUser": dict(user),
            "matchedAt": data.get("timestamp"),
            "lastMessageAt": None,
            "latestMessage": None,
            "unreadCount": 0,
            "seenByMe": False,
            "status": "accepted",
            "canMessage": True,
        }
        return True

    def apply_like(self, data: dict[str, Any]) -> None:
        liker = data.get("liker") or {}
        if any(like.get("liker", {}).get("id") == liker.get("id") for like in self.likes_received):
            return
        self.likes_received.append({"liker": dict(liker), "timestamp": data.get("timestamp")})

    def add_pending(self, user: dict[str, Any], liked_at: str | None) -> None:
        key = f"pending:{user['id']}"
        if key in self._conversations or any(
            v.get("otherUser", {}).get("id") == user["id"] for v in self._conversations.values()
        ):
            return
        self._conversations[key] = {
            "matchId": None,
            "otherUser": dict(user),
            "matchedAt": liked_at,
            "lastMessageAt": None,
            "latestMessage": None,
            "unreadCount": 0,
            "seenByMe": True,
            "status": "pending",
            "canMessage": False,
        }
