from typing import Any

from .. import repo
from .payloads import conversation_sort_key, iso, seen_by, user_summary
from .state_machine import conversation_status


def _accepted_view(row: dict[str, Any], viewer_id: str) -> dict[str, Any]:
    latest = None
    if row.get("latest_message_id"):
        latest = {
            "id": str(row["latest_message_id"]),
            "content": row.get("latest_message_content"),
            "senderId": str(row["latest_message_sender_id"]),
            "createdAt": iso(row.get("latest_message_created_at")),
            "messageType": row.get("latest_message_type") or "text",
        }
    match_id = str(row["id"])
    return {
        "matchId": match_id,
        "otherUser": {**user_summary(row, "other_"), "lastActive": iso(row.get("other_last_active_at"))},
        "matchedAt": iso(row.get("matched_at")),
        "lastMessageAt": iso(row.get("last_message_at")),
        "latestMessage": latest,
        "unreadCount": int(row.get("unread_count") or 0),
        "seenByMe": seen_by(row, viewer_id),
        "status": conversation_status(match_id),
        "canMessage": True,
    }


def _pending_view(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "matchId": None,
        "otherUser": {
            "id": str(row["target_id"]),
            **{k: v for k, v in user_summary(row, "other_").items() if k != "id"},
            "lastActive": iso(row.get("other_last_active_at")),
        },
        "matchedAt": iso(row.get("liked_at")),
        "lastMessageAt": None,
        "latestMessage": None,
        "unreadCount": 0,
        "seenByMe": True,
        "status": conversation_status(None),
        "canMessage": False,
    }


def list_conversations(viewer_id: str) -> list[dict[str, Any]]:
    views = [_accepted_view(r, viewer_id) for r in repo.list_conversation_rows(viewer_id)]
    accepted_with = {v["otherUser"]["id"] for v in views}
    for row in repo.list_pending_likes(viewer_id):
        if str(row["target_id"]) in accepted_with:
            continue
        views.append(_pending_view(row))
    views.sort(key=conversation_sort_key, reverse=True)
    return views
