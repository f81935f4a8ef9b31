from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_MATCH_ACTION_LIMIT, RL_WINDOW_SECONDS
from ..schemas import MatchActionRequest
from ..services import match_actions
from ..services.fanout import FanoutPublisher, get_fanout
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_MATCH_ACTION = rate_limit_dependency("match_action", RL_MATCH_ACTION_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def matches_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "matches"}


@router.post("/matches", dependencies=[RL_MATCH_ACTION])
def record_match_action(
    payload: MatchActionRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    fanout: FanoutPublisher = Depends(get_fanout),
) -> dict[str, Any]:
    return match_actions.record_action(
        str(current_user["id"]),
        payload.target_user_id,
        payload.action,
        fanout=fanout,
    )


@router.get("/matches")
def list_matches(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return {"matches": match_actions.list_matches(str(current_user["id"]))}


@router.post("/matches/{match_id}/seen")
def mark_match_seen(match_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return {"success": True, "match": match_actions.mark_match_seen(match_id, str(current_user["id"]))}


@router.delete("/matches/{match_id}", dependencies=[RL_MATCH_ACTION])
def unmatch(match_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return {"success": True, "match": match_actions.unmatch(match_id, str(current_user["id"]))}
