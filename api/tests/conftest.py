import uuid
from datetime import datetime, timedelta, timezone

import pytest
import redis

from app import repo
from app.services.fanout import FanoutPublisher, decode_event
from app.services.state_machine import canonical_pair


class FakeClock:
    def __init__(self):
        self.current = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class FakeStore:
    """In-memory stand-in for the functions in ``app.repo``."""

    def __init__(self):
        self.clock = FakeClock()
        self.users = {}
        self.actions = {}
        self.matches = {}
        self.messages = []
        self.events = []

    def add_user(self, name: str, disabled: bool = False) -> str:
        user_id = str(uuid.uuid4())
        self.users[user_id] = {
            "id": user_id,
            "email": f"{name.lower()}@campus.edu",
            "display_name": name,
            "image_url": f"https://img.campus.edu/{name.lower()}.jpg",
            "last_active_at": None,
            "disabled_at": self.clock.now() if disabled else None,
        }
        return user_id

    def install(self, monkeypatch) -> "FakeStore":
        for name in (
            "get_user_by_id",
            "get_user_public_profile",
            "touch_user_activity",
            "get_match_action",
            "apply_match_action",
            "find_active_mutual_match",
            "get_mutual_match",
            "list_active_mutual_matches",
            "set_match_seen",
            "deactivate_mutual_match",
            "create_message",
            "list_messages",
            "count_messages",
            "mark_messages_read",
            "count_unread_total",
            "list_conversation_rows",
            "list_pending_likes",
        ):
            monkeypatch.setattr(repo, name, getattr(self, name))
        return self

    # users

    def get_user_by_id(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    def get_user_public_profile(self, user_id):
        user = self.users.get(user_id)
        if not user or user["disabled_at"]:
            return None
        return {k: user[k] for k in ("id", "email", "display_name", "image_url", "last_active_at")}

    def touch_user_activity(self, user_id):
        user = self.users.get(user_id)
        if not user:
            return None
        user["last_active_at"] = self.clock.now()
        return user["last_active_at"]

    def _other_columns(self, user_id):
        user = self.users[user_id]
        return {
            "other_user_id": user_id,
            "other_display_name": user["display_name"],
            "other_email": user["email"],
            "other_image_url": user["image_url"],
            "other_last_active_at": user["last_active_at"],
        }

    # match actions

    def get_match_action(self, actor_id, target_id):
        row = self.actions.get((actor_id, target_id))
        return dict(row) if row else None

    def apply_match_action(self, actor_id, target_id, action):
        now = self.clock.now()
        existing = self.actions.get((actor_id, target_id))
        if existing and not (existing["action"] == "skip" and action != "skip"):
            return {"action": None, "mutual_match": None, "mutual_created": False}
        row = existing or {"id": str(uuid.uuid4()), "actor_id": actor_id, "target_id": target_id, "created_at": now}
        row.update({"action": action, "updated_at": now})
        self.actions[(actor_id, target_id)] = row
        self.events.append(("match_action_recorded", actor_id))

        mutual, created = None, False
        reciprocal = self.actions.get((target_id, actor_id))
        if action == "like" and reciprocal and reciprocal["action"] == "like":
            mutual = self.find_active_mutual_match(actor_id, target_id)
            if mutual is None:
                low, high = canonical_pair(actor_id, target_id)
                mutual = {
                    "id": str(uuid.uuid4()),
                    "user_low_id": low,
                    "user_high_id": high,
                    "matched_at": now,
                    "last_message_at": None,
                    "user_low_seen": low == actor_id,
                    "user_high_seen": high == actor_id,
                    "is_active": True,
                }
                self.matches[mutual["id"]] = mutual
                self.events.append(("mutual_match_formed", actor_id))
                created = True
        return {"action": dict(row), "mutual_match": dict(mutual) if mutual else None, "mutual_created": created}

    # mutual matches

    def find_active_mutual_match(self, user_a_id, user_b_id):
        low, high = canonical_pair(user_a_id, user_b_id)
        for row in self.matches.values():
            if row["is_active"] and row["user_low_id"] == low and row["user_high_id"] == high:
                return dict(row)
        return None

    def _any_match(self, user_a_id, user_b_id):
        low, high = canonical_pair(user_a_id, user_b_id)
        return any(r["user_low_id"] == low and r["user_high_id"] == high for r in self.matches.values())

    def get_mutual_match(self, match_id):
        row = self.matches.get(match_id)
        return dict(row) if row else None

    def _active_for(self, user_id):
        for row in self.matches.values():
            if not row["is_active"] or user_id not in (row["user_low_id"], row["user_high_id"]):
                continue
            other = row["user_high_id"] if row["user_low_id"] == user_id else row["user_low_id"]
            if self.users[other]["disabled_at"]:
                continue
            yield row, other

    def list_active_mutual_matches(self, user_id):
        rows = [{**row, **self._other_columns(other)} for row, other in self._active_for(user_id)]
        return sorted(rows, key=lambda r: r["matched_at"], reverse=True)

    def set_match_seen(self, match_id, user_id):
        row = self.matches.get(match_id)
        if not row or not row["is_active"]:
            return None
        if row["user_low_id"] == user_id:
            row["user_low_seen"] = True
        if row["user_high_id"] == user_id:
            row["user_high_seen"] = True
        return dict(row)

    def deactivate_mutual_match(self, match_id, user_id):
        row = self.matches.get(match_id)
        if not row or not row["is_active"]:
            return None
        row["is_active"] = False
        self.events.append(("mutual_match_ended", user_id))
        return dict(row)

    # messages

    def create_message(self, match_id, sender_id, receiver_id, content, message_type):
        match = self.matches.get(match_id)
        if not match or not match["is_active"]:
            return None
        if canonical_pair(sender_id, receiver_id) != (match["user_low_id"], match["user_high_id"]):
            return None
        row = {
            "id": str(uuid.uuid4()),
            "match_id": match_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "message_type": message_type,
            "is_read": False,
            "read_at": None,
            "created_at": self.clock.now(),
        }
        self.messages.append(row)
        match["last_message_at"] = row["created_at"]
        self.events.append(("message_sent", sender_id))
        return dict(row)

    def list_messages(self, match_id, limit, offset):
        rows = [m for m in self.messages if m["match_id"] == match_id]
        rows.sort(key=lambda m: m["created_at"], reverse=True)
        out = []
        for m in rows[offset : offset + limit]:
            sender = self.users[m["sender_id"]]
            out.append({**m, "sender_display_name": sender["display_name"], "sender_image_url": sender["image_url"]})
        return out

    def count_messages(self, match_id):
        return sum(1 for m in self.messages if m["match_id"] == match_id)

    def mark_messages_read(self, match_id, receiver_id):
        now = self.clock.now()
        updated = []
        for m in self.messages:
            if m["match_id"] == match_id and m["receiver_id"] == receiver_id and not m["is_read"]:
                m["is_read"] = True
                m["read_at"] = now
                updated.append({"id": m["id"], "read_at": now})
        return updated

    def count_unread_total(self, user_id):
        return sum(
            1
            for m in self.messages
            if m["receiver_id"] == user_id and not m["is_read"] and self.matches[m["match_id"]]["is_active"]
        )

    # conversations

    def list_conversation_rows(self, user_id):
        rows = []
        for row, other in self._active_for(user_id):
            thread = [m for m in self.messages if m["match_id"] == row["id"]]
            latest = max(thread, key=lambda m: m["created_at"]) if thread else None
            rows.append(
                {
                    **row,
                    **self._other_columns(other),
                    "latest_message_id": latest["id"] if latest else None,
                    "latest_message_content": latest["content"] if latest else None,
                    "latest_message_sender_id": latest["sender_id"] if latest else None,
                    "latest_message_type": latest["message_type"] if latest else None,
                    "latest_message_created_at": latest["created_at"] if latest else None,
                    "unread_count": sum(1 for m in thread if m["receiver_id"] == user_id and not m["is_read"]),
                }
            )
        return rows

    def list_pending_likes(self, user_id):
        rows = []
        for (actor, target), action in self.actions.items():
            if actor != user_id or action["action"] != "like" or self.users[target]["disabled_at"]:
                continue
            if self._any_match(actor, target):
                continue
            other = self._other_columns(target)
            other.pop("other_user_id")
            rows.append({"id": action["id"], "target_id": target, "liked_at": action["updated_at"], **other})
        return rows


class RecordingRedis:
    """Captures ``publish`` calls; set ``fail`` to simulate a broken connection."""

    def __init__(self):
        self.published = []
        self.fail = False

    def publish(self, channel, message):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        self.published.append((channel, message))
        return 1

    def close(self):
        return None

    def events_for(self, channel):
        return [decode_event(raw) for ch, raw in self.published if ch == channel]


@pytest.fixture
def store(monkeypatch):
    return FakeStore().install(monkeypatch)


@pytest.fixture
def redis_client():
    return RecordingRedis()


@pytest.fixture
def fanout(redis_client):
    return FanoutPublisher(redis_client)
