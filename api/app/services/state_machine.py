from ..config import MATCH_ACTIONS
from ..errors import AlreadyActedError, ValidationFailed


TERMINAL_ACTIONS = frozenset({"like", "reject"})


def canonical_pair(user_a_id: str, user_b_id: str) -> tuple[str, str]:
    a = str(user_a_id).lower()
    b = str(user_b_id).lower()
    return (a, b) if a < b else (b, a)


def transition_action(current: str | None, action: str) -> str:
    if action not in MATCH_ACTIONS:
        raise ValidationFailed("action must be one of: like, reject, skip")

    if current is None:
        return action

    if current == "skip" and action in TERMINAL_ACTIONS:
        return action

    raise AlreadyActedError()


def conversation_status(match_id: str | None) -> str:
    return "accepted" if match_id else "pending"
