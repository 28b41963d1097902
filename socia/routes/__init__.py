"""API routes."""

from .ai import router as ai_router
from .auth import router as auth_router
from .conversations import router as conversations_router
from .profile import router as profile_router
from .ws import router as ws_router

__all__ = [
    "ai_router",
    "auth_router",
    "conversations_router",
    "profile_router",
    "ws_router",
]
