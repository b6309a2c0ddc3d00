from aicouncil.db.models import (
    Base, User, UserRole, SubscriptionTier,
    Council, CouncilStatus, CouncilMessage, MessageRole,
    Memory,
)
from aicouncil.db.database import get_db, init_db, drop_db, async_session_maker, engine

__all__ = [
    "Base",
    "User",
    "UserRole",
    "SubscriptionTier",
    "Council",
    "CouncilStatus",
    "CouncilMessage",
    "MessageRole",
    "Memory",
    # Database
    "get_db",
    "init_db",
    "drop_db",
    "async_session_maker",
    "engine",
]
