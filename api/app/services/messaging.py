"""Message pipeline: persist, then fan out to the receiver.

The durable write always happens before the publish. A failed publish is
logged and reported as ``published: False`` but never undoes the write; the
message is still returned by the next history fetch.
"""

import logging
import math
from typing import Any

from .. import repo
from ..config import MESSAGE_MAX_LENGTH, MESSAGE_PAGE_MAX, MESSAGE_TYPES
from ..errors import NotAllowedError, ValidationFailed
from .fanout import FanoutPublisher, utc_timestamp
from .match_actions import normalize_id, require_active_match
from .payloads import iso, message_payload, other_participant

logger = logging.getLogger(__name__)


def validate_content(content: Any, message_type: Any) -> tuple[str, str]:
    message_type = str(message_type or "text").strip().lower()
    if message_type not in MESSAGE_TYPES:
        raise ValidationFailed("messageType must be one of: text, image, emoji")
    if not isinstance(content, str) or not content.strip():
        raise ValidationFailed("Receiver ID and content are required")
    content = content.strip()
    if len(content) > MESSAGE_MAX_LENGTH:
        raise ValidationFailed(f"Message must be {MESSAGE_MAX_LENGTH} characters or fewer")
    if message_type == "image":
        # Images are stored by reference only.
        if content.lower().startswith("data:") or any(ch.isspace() for ch in content):
            raise ValidationFailed("Image messages must reference an uploaded image URL")
    return content, message_type


def _require_pair_match(user_id: str, other_id: str, match_id: str | None, detail: str) -> dict[str, Any]:
    match = repo.find_active_mutual_match(user_id, other_id)
    if not match:
        raise NotAllowedError(detail)
    if match_id is not None and str(match["id"]) != normalize_id(match_id, field="matchId"):
        raise NotAllowedError("Invalid match ID")
    return match


def send_message(
    sender_id: str,
    receiver_id: Any,
    content: Any,
    message_type: Any = "text",
    *,
    fanout: FanoutPublisher,
    match_id: str | None = None,
) -> dict[str, Any]:
    receiver_id = normalize_id(receiver_id, field="receiverId")
    if receiver_id == sender_id:
        raise ValidationFailed("You cannot message yourself")
    content, message_type = validate_content(content, message_type)

    match = _require_pair_match(sender_id, receiver_id, match_id, "Cannot send message - no mutual match exists")
    row = repo.create_message(str(match["id"]), sender_id, receiver_id, content, message_type)
    if not row:
        raise NotAllowedError("Cannot send message - no mutual match exists")

    message = message_payload(row)
    # Receiver only: the sender appends its own copy from this response.
    published = fanout.message_received(receiver_id, message)
    if not published:
        logger.warning(f"[messages] stored but not pushed message_id={message['id']} match_id={message['matchId']}")
    return {"success": True, "message": message, "published": published}


def mark_as_read(match_id: str, viewer_id: str, *, fanout: FanoutPublisher, publish_when_empty: bool = True) -> dict[str, Any]:
    return _mark_read(require_active_match(match_id, viewer_id), viewer_id, fanout=fanout, publish_when_empty=publish_when_empty)


def _mark_read(match: dict[str, Any], viewer_id: str, *, fanout: FanoutPublisher, publish_when_empty: bool) -> dict[str, Any]:
    match_id = str(match["id"])
    updated = repo.mark_messages_read(match_id, viewer_id)
    published = False
    if updated or publish_when_empty:
        read_at = iso(updated[0].get("read_at")) if updated else None
        published = fanout.read_receipt(other_participant(match, viewer_id), match_id, viewer_id, read_at or utc_timestamp())
    return {
        "success": True,
        "matchId": match_id,
        "updated": len(updated),
        "messageIds": [str(r["id"]) for r in updated],
        "published": published,
    }


def list_messages(match_id: str, viewer_id: str, page: int = 1, limit: int = 50, *, fanout: FanoutPublisher) -> dict[str, Any]:
    if page < 1:
        raise ValidationFailed("page must be 1 or greater")
    if limit < 1 or limit > MESSAGE_PAGE_MAX:
        raise ValidationFailed(f"limit must be between 1 and {MESSAGE_PAGE_MAX}")

    match = require_active_match(match_id, viewer_id)
    match_id = str(match["id"])
    _mark_read(match, viewer_id, fanout=fanout, publish_when_empty=False)

    offset = (page - 1) * limit
    rows = repo.list_messages(match_id, limit=limit, offset=offset)
    total = repo.count_messages(match_id)
    messages = [message_payload(r) for r in reversed(rows)]
    return {
        "success": True,
        "messages": messages,
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit) if total else 0,
            "totalMessages": total,
            "hasMore": offset + len(rows) < total,
        },
    }


def set_typing(match_id: Any, sender_id: str, receiver_id: Any, is_typing: Any, *, fanout: FanoutPublisher) -> dict[str, Any]:
    if not isinstance(is_typing, bool):
        raise ValidationFailed("isTyping must be a boolean")
    if not match_id:
        raise ValidationFailed("matchId is required")
    receiver_id = normalize_id(receiver_id, field="receiverId")
    match = _require_pair_match(sender_id, receiver_id, str(match_id), "Invalid match")
    published = fanout.typing_changed(receiver_id, str(match["id"]), sender_id, is_typing)
    return {"success": True, "published": published}


def unread_total(viewer_id: str) -> dict[str, Any]:
    return {"success": True, "unreadCount": repo.count_unread_total(viewer_id)}
