from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..services.conversations import list_conversations

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def conversations_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "conversations"}


@router.get("/conversations")
def get_conversations(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    conversations = list_conversations(str(current_user["id"]))
    return {
        "success": True,
        "conversations": conversations,
        "counts": {
            "accepted": sum(1 for c in conversations if c["status"] == "accepted"),
            "pending": sum(1 for c in conversations if c["status"] == "pending"),
        },
    }
