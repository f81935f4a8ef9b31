from fastapi import APIRouter, FastAPI

from .conversations import router as conversations_router, scaffold_router as conversations_scaffold_router
from .matches import router as matches_router, scaffold_router as matches_scaffold_router
from .messages import router as messages_router, scaffold_router as messages_scaffold_router
from .signals import router as signals_router, scaffold_router as signals_scaffold_router
from .users import router as users_router, scaffold_router as users_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(matches_router, tags=["matches"])
    app.include_router(conversations_router, tags=["conversations"])
    app.include_router(messages_router, tags=["messages"])
    app.include_router(signals_router, tags=["signals"])
    app.include_router(users_router, tags=["users"])

    app.include_router(matches_scaffold_router, prefix="/_scaffold/matches", tags=["scaffold-matches"])
    app.include_router(conversations_scaffold_router, prefix="/_scaffold/conversations", tags=["scaffold-conversations"])
    app.include_router(messages_scaffold_router, prefix="/_scaffold/messages", tags=["scaffold-messages"])
    app.include_router(signals_scaffold_router, prefix="/_scaffold/signals", tags=["scaffold-signals"])
    app.include_router(users_scaffold_router, prefix="/_scaffold/users", tags=["scaffold-users"])


__all__ = ["include_modular_routers", "APIRouter"]
