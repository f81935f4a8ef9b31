"""Match actions and the mutual-match lifecycle.

A like/reject/skip is recorded per ordered pair (actor -> target). The second
reciprocal like creates the canonical mutual match, which is what unlocks
messaging between the two users.
"""

import logging
import uuid
from typing import Any

from .. import repo
from ..errors import AlreadyActedError, NotAllowedError, NotFoundError, ValidationFailed
from .fanout import FanoutPublisher
from .payloads import iso, is_participant, other_participant, profile_summary, seen_by, user_summary
from .state_machine import transition_action

logger = logging.getLogger(__name__)


def normalize_id(raw: Any, field: str = "targetUserId") -> str:
    value = str(raw or "").strip()
    if not value:
        raise ValidationFailed(f"{field} is required")
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise ValidationFailed(f"{field} must be a valid id")


def record_action(actor_id: str, target_id: str, action: str, *, fanout: FanoutPublisher) -> dict[str, Any]:
    action = str(action or "").strip().lower()
    target_id = normalize_id(target_id)
    if target_id == actor_id:
        raise ValidationFailed("You cannot act on your own profile")

    existing = repo.get_match_action(actor_id, target_id)
    transition_action(existing["action"] if existing else None, action)

    target = repo.get_user_public_profile(target_id)
    if not target:
        raise NotFoundError("User not found")

    result = repo.apply_match_action(actor_id, target_id, action)
    if result["action"] is None:
        # Another request made the row terminal after our read.
        raise AlreadyActedError()
    logger.info(f"[match] action recorded actor={actor_id} target={target_id} action={action}")

    mutual = result.get("mutual_match")
    if result.get("mutual_created") and mutual:
        match_id = str(mutual["id"])
        actor = repo.get_user_public_profile(actor_id)
        target_card = profile_summary(target)
        fanout.match_formed(target_id, match_id, profile_summary(actor) if actor else {"id": actor_id})
        fanout.match_formed(actor_id, match_id, target_card)
        logger.info(f"[match] mutual match formed match_id={match_id} users={actor_id},{target_id}")
        return {"success": True, "match": True, "mutualMatch": {"id": match_id, "user": target_card}}

    if action == "like" and not mutual:
        actor = repo.get_user_public_profile(actor_id)
        fanout.like_received(target_id, profile_summary(actor) if actor else {"id": actor_id})

    return {"success": True, "match": False}


def list_matches(viewer_id: str) -> list[dict[str, Any]]:
    rows = repo.list_active_mutual_matches(viewer_id)
    return [
        {
            "id": str(r["id"]),
            "matchedAt": iso(r.get("matched_at")),
            "lastMessageAt": iso(r.get("last_message_at")),
            "user": {**user_summary(r, "other_"), "lastActive": iso(r.get("other_last_active_at"))},
            "seen": seen_by(r, viewer_id),
        }
        for r in rows
    ]


def require_active_match(match_id: str, viewer_id: str) -> dict[str, Any]:
    match_id = normalize_id(match_id, field="matchId")
    row = repo.get_mutual_match(match_id)
    if not row:
        raise NotFoundError("Match not found")
    if not is_participant(row, viewer_id) or not row.get("is_active"):
        raise NotAllowedError("Access denied to this conversation")
    return row


def mark_match_seen(match_id: str, viewer_id: str) -> dict[str, Any]:
    row = require_active_match(match_id, viewer_id)
    updated = repo.set_match_seen(str(row["id"]), viewer_id) or row
    return {"id": str(updated["id"]), "seen": seen_by(updated, viewer_id)}


def unmatch(match_id: str, viewer_id: str) -> dict[str, Any]:
    row = require_active_match(match_id, viewer_id)
    ended = repo.deactivate_mutual_match(str(row["id"]), viewer_id)
    if not ended:
        raise NotFoundError("Match not found")
    logger.info(f"[match] unmatched match_id={row['id']} by={viewer_id} other={other_participant(row, viewer_id)}")
    return {"id": str(ended["id"]), "isActive": False}
