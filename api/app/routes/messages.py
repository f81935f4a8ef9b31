from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import MESSAGE_PAGE_SIZE, RL_MESSAGE_SEND_LIMIT, RL_WINDOW_SECONDS
from ..schemas import SendMessageRequest
from ..services import messaging
from ..services.fanout import FanoutPublisher, get_fanout
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_MESSAGE_SEND = rate_limit_dependency("message_send", RL_MESSAGE_SEND_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def messages_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "messages"}


@router.post("/messages/send", dependencies=[RL_MESSAGE_SEND])
def send_message(
    payload: SendMessageRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    fanout: FanoutPublisher = Depends(get_fanout),
) -> dict[str, Any]:
    return messaging.send_message(
        str(current_user["id"]),
        payload.receiver_id,
        payload.content,
        payload.message_type,
        fanout=fanout,
        match_id=payload.match_id,
    )


# Registered before /messages/{match_id} so "unread" is not taken for a match id.
@router.get("/messages/unread")
def unread_messages(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return messaging.unread_total(str(current_user["id"]))


@router.get("/messages/{match_id}")
def get_messages(
    match_id: str,
    page: int = 1,
    limit: int = MESSAGE_PAGE_SIZE,
    current_user: dict[str, Any] = Depends(get_current_user),
    fanout: FanoutPublisher = Depends(get_fanout),
) -> dict[str, Any]:
    return messaging.list_messages(match_id, str(current_user["id"]), page=page, limit=limit, fanout=fanout)
