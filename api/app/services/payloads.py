from datetime import datetime, timezone
from typing import Any


def iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def display_name(name: Any, email: Any) -> str:
    if name:
        return str(name)
    if email:
        return str(email).split("@")[0]
    return "Student"


def user_summary(row: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Public ``{id, name, image}`` card, read from ``row`` columns with an optional prefix."""
    user_id = row.get(f"{prefix}user_id") if prefix else None
    if user_id is None:
        user_id = row.get(f"{prefix}id")
    return {
        "id": str(user_id) if user_id is not None else None,
        "name": display_name(row.get(f"{prefix}display_name"), row.get(f"{prefix}email")),
        "image": row.get(f"{prefix}image_url"),
    }


def profile_summary(profile: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(profile["id"]),
        "name": display_name(profile.get("display_name"), profile.get("email")),
        "image": profile.get("image_url"),
    }


def message_payload(row: dict[str, Any]) -> dict[str, Any]:
    payload = {
        "id": str(row["id"]),
        "matchId": str(row["match_id"]),
        "senderId": str(row["sender_id"]),
        "receiverId": str(row["receiver_id"]),
        "content": row["content"],
        "messageType": row.get("message_type") or "text",
        "isRead": bool(row.get("is_read")),
        "readAt": iso(row.get("read_at")),
        "createdAt": iso(row.get("created_at")),
    }
    if "sender_display_name" in row or "sender_image_url" in row:
        payload["sender"] = {
            "id": str(row["sender_id"]),
            "name": display_name(row.get("sender_display_name"), None),
            "image": row.get("sender_image_url"),
        }
    return payload


def seen_by(match_row: dict[str, Any], viewer_id: str) -> bool:
    if str(match_row["user_low_id"]) == viewer_id:
        return bool(match_row.get("user_low_seen"))
    return bool(match_row.get("user_high_seen"))


def other_participant(match_row: dict[str, Any], viewer_id: str) -> str:
    low = str(match_row["user_low_id"])
    high = str(match_row["user_high_id"])
    return high if low == viewer_id else low


def is_participant(match_row: dict[str, Any], user_id: str) -> bool:
    return user_id in {str(match_row["user_low_id"]), str(match_row["user_high_id"])}


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def as_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def conversation_sort_key(view: dict[str, Any]) -> tuple[bool, datetime, datetime]:
    """Sort descending on this key: ``lastMessageAt`` with nulls last, then ``matchedAt``."""
    last = as_datetime(view.get("lastMessageAt"))
    matched = as_datetime(view.get("matchedAt")) or _EPOCH
    return (last is not None, last or _EPOCH, matched)
