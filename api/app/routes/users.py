from typing import Any

from fastapi import APIRouter, Depends

from .. import repo
from ..auth.deps import get_current_user
from ..services.payloads import iso

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def users_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "users"}


@router.post("/users/me/activity")
def update_activity(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    last_active = repo.touch_user_activity(str(current_user["id"]))
    return {"success": True, "lastActive": iso(last_active)}
