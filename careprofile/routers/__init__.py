from .profile import router as profile_router
from .chat import router as chat_router
from .conversations import router as conversations_router

ROUTERS = (profile_router, chat_router, conversations_router)

__all__ = [
    "ROUTERS",
    "profile_router",
    "chat_router",
    "conversations_router",
]
