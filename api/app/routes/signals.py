from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_SIGNAL_LIMIT, RL_WINDOW_SECONDS
from ..schemas import ReadReceiptRequest, TypingRequest
from ..services import messaging
from ..services.fanout import FanoutPublisher, get_fanout
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_SIGNAL = rate_limit_dependency("signal", RL_SIGNAL_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def signals_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "signals"}


@router.post("/typing", dependencies=[RL_SIGNAL])
def typing_indicator(
    payload: TypingRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    fanout: FanoutPublisher = Depends(get_fanout),
) -> dict[str, Any]:
    return messaging.set_typing(
        payload.match_id,
        str(current_user["id"]),
        payload.receiver_id,
        payload.is_typing,
        fanout=fanout,
    )


@router.post("/read-receipt", dependencies=[RL_SIGNAL])
def read_receipt(
    payload: ReadReceiptRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    fanout: FanoutPublisher = Depends(get_fanout),
) -> dict[str, Any]:
    return messaging.mark_as_read(payload.match_id, str(current_user["id"]), fanout=fanout)
