from app.client.conversation_state import ConversationState

ME = "11111111-1111-4111-8111-111111111111"
THEM = "22222222-2222-4222-8222-222222222222"
MATCH = "33333333-3333-4333-8333-333333333333"


def _message(msg_id, sender, created_at, content="hi", is_read=False):
    return {
        "id": msg_id,
        "matchId": MATCH,
        "senderId": sender,
        "receiverId": THEM if sender == ME else ME,
        "content": content,
        "messageType": "text",
        "isRead": is_read,
        "readAt": None,
        "createdAt": created_at,
    }


def _incoming(message):
    return {
        "matchId": message["matchId"],
        "senderId": message["senderId"],
        "content": message["content"],
        "messageType": message["messageType"],
        "timestamp": message["createdAt"],
        "message": message,
    }


def _state_with_conversation():
    state = ConversationState(ME)
    state.load_conversations(
        [
            {
                "matchId": MATCH,
                "otherUser": {"id": THEM, "name": "Ben", "image": None},
                "matchedAt": "2026-03-01T10:00:00+00:00",
                "lastMessageAt": None,
                "latestMessage": None,
                "unreadCount": 0,
                "seenByMe": True,
                "status": "accepted",
                "canMessage": True,
            }
        ]
    )
    return state


def test_duplicate_push_is_applied_once():
    state = _state_with_conversation()
    msg = _message("m1", THEM, "2026-03-01T10:01:00+00:00")

    assert state.apply_incoming_message(_incoming(msg)) is True
    assert state.apply_incoming_message(_incoming(msg)) is False

    assert len(state.messages_for(MATCH)) == 1
    assert state.conversation(MATCH)["unreadCount"] == 1
    assert state.conversation(MATCH)["latestMessage"]["id"] == "m1"


def test_own_message_is_not_counted_unread_and_echo_is_ignored():
    state = _state_with_conversation()
    mine = _message("m1", ME, "2026-03-01T10:01:00+00:00")
    assert state.append_own(mine) is True
    assert state.apply_incoming_message(_incoming(mine)) is False
    assert state.conversation(MATCH)["unreadCount"] == 0


def test_history_fetch_merges_by_id_without_dropping_local_messages():
    state = _state_with_conversation()
    optimistic = _message("m3", ME, "2026-03-01T10:03:00+00:00")
    state.append_own(optimistic)

    fetched = [
        _message("m1", THEM, "2026-03-01T10:01:00+00:00"),
        _message("m2", ME, "2026-03-01T10:02:00+00:00"),
    ]
    merged = state.merge_history(MATCH, fetched)
    assert [m["id"] for m in merged] == ["m1", "m2", "m3"]

    # Re-fetching the same page is harmless.
    again = state.merge_history(MATCH, fetched + [_message("m3", ME, "2026-03-01T10:03:00+00:00")])
    assert [m["id"] for m in again] == ["m1", "m2", "m3"]


def test_stale_fetch_does_not_unread_a_message():
    state = _state_with_conversation()
    state.append_own(_message("m1", ME, "2026-03-01T10:01:00+00:00"))
    state.apply_read_receipt({"matchId": MATCH, "readByUserId": THEM, "timestamp": "2026-03-01T10:05:00+00:00"})

    merged = state.merge_history(MATCH, [_message("m1", ME, "2026-03-01T10:01:00+00:00", is_read=False)])
    assert merged[0]["isRead"] is True


def test_read_receipt_marks_only_my_sent_messages():
    state = _state_with_conversation()
    state.append_own(_message("m1", ME, "2026-03-01T10:01:00+00:00"))
    state.apply_incoming_message(_incoming(_message("m2", THEM, "2026-03-01T10:02:00+00:00")))

    updated = state.apply_read_receipt(
        {"matchId": MATCH, "readByUserId": THEM, "timestamp": "2026-03-01T10:05:00+00:00"}
    )

    assert updated == 1
    by_id = {m["id"]: m for m in state.messages_for(MATCH)}
    assert by_id["m1"]["isRead"] is True
    assert by_id["m2"]["isRead"] is False


def test_read_receipt_before_message_arrives_is_remembered():
    state = _state_with_conversation()
    state.apply_read_receipt({"matchId": MATCH, "readByUserId": THEM, "timestamp": "2026-03-01T10:05:00+00:00"})

    state.merge_history(MATCH, [_message("m1", ME, "2026-03-01T10:01:00+00:00")])
    state.append_own(_message("m2", ME, "2026-03-01T10:06:00+00:00"))

    by_id = {m["id"]: m for m in state.messages_for(MATCH)}
    assert by_id["m1"]["isRead"] is True
    assert by_id["m2"]["isRead"] is False


def test_own_read_receipt_from_another_tab_is_ignored():
    state = _state_with_conversation()
    state.append_own(_message("m1", ME, "2026-03-01T10:01:00+00:00"))
    assert state.apply_read_receipt({"matchId": MATCH, "readByUserId": ME, "timestamp": "2026-03-01T10:05:00+00:00"}) == 0


def test_typing_is_tracked_per_match_and_cleared_by_message():
    state = _state_with_conversation()
    state.apply_typing({"matchId": MATCH, "userId": THEM, "isTyping": True})
    state.apply_typing({"matchId": MATCH, "userId": ME, "isTyping": True})
    assert state.typing_users(MATCH) == {THEM}

    state.apply_incoming_message(_incoming(_message("m1", THEM, "2026-03-01T10:01:00+00:00")))
    assert state.typing_users(MATCH) == set()

    state.apply_typing({"matchId": MATCH, "userId": THEM, "isTyping": True})
    state.apply_typing({"matchId": MATCH, "userId": THEM, "isTyping": False})
    assert state.typing_users(MATCH) == set()


def test_match_event_replaces_pending_row_and_is_idempotent():
    state = ConversationState(ME)
    state.add_pending({"id": THEM, "name": "Ben", "image": None}, "2026-03-01T09:00:00+00:00")
    assert [c["status"] for c in state.conversations] == ["pending"]
    assert state.can_message(None) is False

    event = {"match": {"id": MATCH, "user": {"id": THEM, "name": "Ben", "image": None}}, "timestamp": "2026-03-01T10:00:00+00:00"}
    assert state.apply_match(event) is True
    assert state.apply_match(event) is False

    assert [c["matchId"] for c in state.conversations] == [MATCH]
    assert state.can_message(MATCH) is True

    state.add_pending({"id": THEM, "name": "Ben", "image": None}, "2026-03-01T11:00:00+00:00")
    assert len(state.conversations) == 1


def test_conversations_reorder_when_a_message_arrives():
    state = _state_with_conversation()
    other_match = "44444444-4444-4444-8444-444444444444"
    state.apply_match(
        {"match": {"id": other_match, "user": {"id": "55555555-5555-4555-8555-555555555555", "name": "Cleo"}}, "timestamp": "2026-03-02T10:00:00+00:00"}
    )
    assert [c["matchId"] for c in state.conversations] == [other_match, MATCH]

    state.apply_incoming_message(_incoming(_message("m1", THEM, "2026-03-01T12:00:00+00:00")))
    assert [c["matchId"] for c in state.conversations] == [MATCH, other_match]

    state.mark_conversation_read(MATCH)
    assert state.conversation(MATCH)["unreadCount"] == 0
    assert state.messages_for(MATCH)[0]["isRead"] is True


def test_likes_are_collected_once_per_liker():
    state = ConversationState(ME)
    like = {"liker": {"id": THEM, "name": "Ben"}, "timestamp": "2026-03-01T09:00:00+00:00"}
    state.apply_like(like)
    state.apply_like(like)
    assert len(state.likes_received) == 1
