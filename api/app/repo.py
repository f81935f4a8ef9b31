import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import text

from app.database import SessionLocal
from app.services.events import log_product_event
from app.services.state_machine import canonical_pair


def get_user_by_id(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text("SELECT * FROM user_account WHERE id=CAST(:id AS uuid)"),
            {"id": user_id},
        ).mappings().first()
    return dict(row) if row else None


def get_user_public_profile(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                SELECT id, email, display_name, image_url, last_active_at
                FROM user_account
                WHERE id=CAST(:id AS uuid)
                  AND disabled_at IS NULL
                """
            ),
            {"id": user_id},
        ).mappings().first()
    return dict(row) if row else None


def touch_user_activity(user_id: str) -> datetime | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                UPDATE user_account
                SET last_active_at=now()
                WHERE id=CAST(:id AS uuid)
                RETURNING last_active_at
                """
            ),
            {"id": user_id},
        ).mappings().first()
        db.commit()
    return row["last_active_at"] if row else None


def get_match_action(actor_id: str, target_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                SELECT id, actor_id, target_id, action, created_at, updated_at
                FROM match_action
                WHERE actor_id=CAST(:actor_id AS uuid)
                  AND target_id=CAST(:target_id AS uuid)
                """
            ),
            {"actor_id": actor_id, "target_id": target_id},
        ).mappings().first()
    return dict(row) if row else None


def apply_match_action(actor_id: str, target_id: str, action: str) -> dict[str, Any]:
    """Record ``actor -> target`` and create the mutual match when the like is reciprocated.

    Runs in one transaction holding an advisory lock on the canonical pair, so
    two users liking each other at the same moment cannot both miss the other's
    like. Returns ``{"action": None, ...}`` when the existing row is terminal.
    """
    low_id, high_id = canonical_pair(actor_id, target_id)
    with SessionLocal() as db:
        db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:pair_key))"),
            {"pair_key": f"{low_id}:{high_id}"},
        )
        action_row = db.execute(
            text(
                """
                INSERT INTO match_action (id, actor_id, target_id, action)
                VALUES (CAST(:id AS uuid), CAST(:actor_id AS uuid), CAST(:target_id AS uuid), :action)
                ON CONFLICT (actor_id, target_id) DO UPDATE
                  SET action=EXCLUDED.action, updated_at=now()
                  WHERE match_action.action='skip'
                    AND EXCLUDED.action <> 'skip'
                RETURNING id, actor_id, target_id, action, created_at, updated_at
                """
            ),
            {"id": str(uuid.uuid4()), "actor_id": actor_id, "target_id": target_id, "action": action},
        ).mappings().first()
        if not action_row:
            db.rollback()
            return {"action": None, "mutual_match": None, "mutual_created": False}

        mutual_row = None
        mutual_created = False
        if action == "like":
            reciprocal = db.execute(
                text(
                    """
                    SELECT 1
                    FROM match_action
                    WHERE actor_id=CAST(:target_id AS uuid)
                      AND target_id=CAST(:actor_id AS uuid)
                      AND action='like'
                    """
                ),
                {"actor_id": actor_id, "target_id": target_id},
            ).first()
            if reciprocal:
                mutual_row = db.execute(
                    text(
                        """
                        INSERT INTO mutual_match (id, user_low_id, user_high_id, user_low_seen, user_high_seen)
                        VALUES (CAST(:id AS uuid), CAST(:low AS uuid), CAST(:high AS uuid), :low_seen, :high_seen)
                        ON CONFLICT (user_low_id, user_high_id) WHERE is_active DO NOTHING
                        RETURNING *
                        """
                    ),
                    {
                        "id": str(uuid.uuid4()),
                        "low": low_id,
                        "high": high_id,
                        # The second liker has already seen the connection; the first has not.
                        "low_seen": low_id == actor_id,
                        "high_seen": high_id == actor_id,
                    },
                ).mappings().first()
                if mutual_row:
                    mutual_created = True
                    log_product_event(
                        db,
                        event_name="mutual_match_formed",
                        user_id=actor_id,
                        properties={"match_id": str(mutual_row["id"]), "other_user_id": target_id},
                    )
                else:
                    mutual_row = _select_active_match(db, low_id, high_id)

        log_product_event(
            db,
            event_name="match_action_recorded",
            user_id=actor_id,
            properties={"target_user_id": target_id, "action": action},
        )
        db.commit()
    return {
        "action": dict(action_row),
        "mutual_match": dict(mutual_row) if mutual_row else None,
        "mutual_created": mutual_created,
    }


def _select_active_match(db, low_id: str, high_id: str):
    return db.execute(
        text(
            """
            SELECT *
            FROM mutual_match
            WHERE user_low_id=CAST(:low AS uuid)
              AND user_high_id=CAST(:high AS uuid)
              AND is_active
            """
        ),
        {"low": low_id, "high": high_id},
    ).mappings().first()


def find_active_mutual_match(user_a_id: str, user_b_id: str) -> dict[str, Any] | None:
    low_id, high_id = canonical_pair(user_a_id, user_b_id)
    with SessionLocal() as db:
        row = _select_active_match(db, low_id, high_id)
    return dict(row) if row else None


def get_mutual_match(match_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text("SELECT * FROM mutual_match WHERE id=CAST(:id AS uuid)"),
            {"id": match_id},
        ).mappings().first()
    return dict(row) if row else None


def list_active_mutual_matches(user_id: str) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT
                  mm.*,
                  u.id AS other_user_id,
                  u.display_name AS other_display_name,
                  u.email AS other_email,
                  u.image_url AS other_image_url,
                  u.last_active_at AS other_last_active_at
                FROM mutual_match mm
                JOIN user_account u
                  ON u.id = (
                    CASE
                      WHEN mm.user_low_id = CAST(:user_id AS uuid) THEN mm.user_high_id
                      ELSE mm.user_low_id
                    END
                  )
                WHERE mm.is_active
                  AND u.disabled_at IS NULL
                  AND (
                    mm.user_low_id = CAST(:user_id AS uuid)
                   OR mm.user_high_id = CAST(:user_id AS uuid)
                  )
                ORDER BY mm.matched_at DESC
                """
            ),
            {"user_id": user_id},
        ).mappings().all()
    return [dict(r) for r in rows]


def set_match_seen(match_id: str, user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                UPDATE mutual_match
                SET
                  user_low_seen = CASE WHEN user_low_id = CAST(:user_id AS uuid) THEN true ELSE user_low_seen END,
                  user_high_seen = CASE WHEN user_high_id = CAST(:user_id AS uuid) THEN true ELSE user_high_seen END
                WHERE id=CAST(:id AS uuid)
                  AND is_active
                RETURNING *
                """
            ),
            {"id": match_id, "user_id": user_id},
        ).mappings().first()
        db.commit()
    return dict(row) if row else None


def deactivate_mutual_match(match_id: str, user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                UPDATE mutual_match
                SET is_active=false
                WHERE id=CAST(:id AS uuid)
                  AND is_active
                RETURNING *
                """
            ),
            {"id": match_id},
        ).mappings().first()
        if row:
            log_product_event(
                db,
                event_name="mutual_match_ended",
                user_id=user_id,
                properties={"match_id": match_id},
            )
        db.commit()
    return dict(row) if row else None


def create_message(
    match_id: str,
    sender_id: str,
    receiver_id: str,
    content: str,
    message_type: str,
) -> dict[str, Any] | None:
    """Persist a message and bump the match's ``last_message_at``.

    The insert only happens while the match is active and contains both
    parties; ``None`` means the relationship went away in between.
    """
    message_id = str(uuid.uuid4())
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                INSERT INTO message (id, match_id, sender_id, receiver_id, content, message_type)
                SELECT
                  CAST(:id AS uuid),
                  mm.id,
                  CAST(:sender_id AS uuid),
                  CAST(:receiver_id AS uuid),
                  :content,
                  :message_type
                FROM mutual_match mm
                WHERE mm.id = CAST(:match_id AS uuid)
                  AND mm.is_active
                  AND mm.user_low_id = LEAST(CAST(:sender_id AS uuid), CAST(:receiver_id AS uuid))
                  AND mm.user_high_id = GREATEST(CAST(:sender_id AS uuid), CAST(:receiver_id AS uuid))
                RETURNING id, match_id, sender_id, receiver_id, content, message_type, is_read, read_at, created_at
                """
            ),
            {
                "id": message_id,
                "match_id": match_id,
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "content": content,
                "message_type": message_type,
            },
        ).mappings().first()
        if not row:
            db.rollback()
            return None
        db.execute(
            text("UPDATE mutual_match SET last_message_at=:created_at WHERE id=CAST(:id AS uuid)"),
            {"id": match_id, "created_at": row["created_at"]},
        )
        log_product_event(
            db,
            event_name="message_sent",
            user_id=sender_id,
            properties={"match_id": match_id, "message_type": message_type},
        )
        db.commit()
    return dict(row)


def list_messages(match_id: str, limit: int, offset: int) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT m.id, m.match_id, m.sender_id, m.receiver_id, m.content, m.message_type,
                       m.is_read, m.read_at, m.created_at,
                       u.display_name AS sender_display_name, u.image_url AS sender_image_url
                FROM message m
                LEFT JOIN user_account u ON u.id = m.sender_id
                WHERE m.match_id=CAST(:match_id AS uuid)
                ORDER BY m.created_at DESC, m.id DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            {"match_id": match_id, "limit": limit, "offset": offset},
        ).mappings().all()
    return [dict(r) for r in rows]


def count_messages(match_id: str) -> int:
    with SessionLocal() as db:
        value = db.execute(
            text("SELECT COUNT(*) FROM message WHERE match_id=CAST(:match_id AS uuid)"),
            {"match_id": match_id},
        ).scalar()
    return int(value or 0)


def mark_messages_read(match_id: str, receiver_id: str) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                UPDATE message
                SET is_read=true, read_at=now()
                WHERE match_id=CAST(:match_id AS uuid)
                  AND receiver_id=CAST(:receiver_id AS uuid)
                  AND NOT is_read
                RETURNING id, read_at
                """
            ),
            {"match_id": match_id, "receiver_id": receiver_id},
        ).mappings().all()
        db.commit()
    return [dict(r) for r in rows]


def count_unread_total(user_id: str) -> int:
    with SessionLocal() as db:
        value = db.execute(
            text(
                """
                SELECT COUNT(*)
                FROM message m
                JOIN mutual_match mm ON mm.id = m.match_id
                WHERE m.receiver_id=CAST(:user_id AS uuid)
                  AND NOT m.is_read
                  AND mm.is_active
                """
            ),
            {"user_id": user_id},
        ).scalar()
    return int(value or 0)


def list_conversation_rows(user_id: str) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT
                  mm.id,
                  mm.user_low_id,
                  mm.user_high_id,
                  mm.matched_at,
                  mm.last_message_at,
                  mm.user_low_seen,
                  mm.user_high_seen,
                  u.id AS other_user_id,
                  u.display_name AS other_display_name,
                  u.email AS other_email,
                  u.image_url AS other_image_url,
                  u.last_active_at AS other_last_active_at,
                  lm.id AS latest_message_id,
                  lm.content AS latest_message_content,
                  lm.sender_id AS latest_message_sender_id,
                  lm.message_type AS latest_message_type,
                  lm.created_at AS latest_message_created_at,
                  COALESCE(unread.cnt, 0) AS unread_count
                FROM mutual_match mm
                JOIN user_account u
                  ON u.id = (
                    CASE
                      WHEN mm.user_low_id = CAST(:user_id AS uuid) THEN mm.user_high_id
                      ELSE mm.user_low_id
                    END
                  )
                LEFT JOIN LATERAL (
                  SELECT m.id, m.content, m.sender_id, m.message_type, m.created_at
                  FROM message m
                  WHERE m.match_id = mm.id
                  ORDER BY m.created_at DESC
                  LIMIT 1
                ) lm ON TRUE
                LEFT JOIN LATERAL (
                  SELECT COUNT(*) AS cnt
                  FROM message m
                  WHERE m.match_id = mm.id
                    AND m.receiver_id = CAST(:user_id AS uuid)
                    AND NOT m.is_read
                ) unread ON TRUE
                WHERE mm.is_active
                  AND u.disabled_at IS NULL
                  AND (
                    mm.user_low_id = CAST(:user_id AS uuid)
                   OR mm.user_high_id = CAST(:user_id AS uuid)
                  )
                """
            ),
            {"user_id": user_id},
        ).mappings().all()
    return [dict(r) for r in rows]


def list_pending_likes(user_id: str) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT
                  ma.id,
                  ma.target_id,
                  ma.updated_at AS liked_at,
                  u.display_name AS other_display_name,
                  u.email AS other_email,
                  u.image_url AS other_image_url,
                  u.last_active_at AS other_last_active_at
                FROM match_action ma
                JOIN user_account u ON u.id = ma.target_id
                WHERE ma.actor_id = CAST(:user_id AS uuid)
                  AND ma.action = 'like'
                  AND u.disabled_at IS NULL
                  AND NOT EXISTS (
                    SELECT 1
                    FROM mutual_match mm
                    WHERE mm.user_low_id = LEAST(ma.actor_id, ma.target_id)
                      AND mm.user_high_id = GREATEST(ma.actor_id, ma.target_id)
                  )
                """
            ),
            {"user_id": user_id},
        ).mappings().all()
    return [dict(r) for r in rows]
