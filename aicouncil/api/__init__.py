from aicouncil.api.auth import router as auth_router
from aicouncil.api.agents import router as agents_router
from aicouncil.api.councils import router as councils_router
from aicouncil.api.memories import router as memories_router
from aicouncil.api.admin import router as admin_router
from aicouncil.api.ws_council import router as ws_council_router, RoomManager
from aicouncil.api.deps import get_current_user

__all__ = [
    "auth_router",
    "agents_router",
    "councils_router",
    "memories_router",
    "admin_router",
    "ws_council_router",
    "RoomManager",
    "get_current_user",
]
