"""
API Routers for gatehouse.
"""

from .health import router as health_router
from .auth import router as auth_router
from .users import router as users_router
from .logs import router as logs_router

__all__ = [
    "health_router",
    "auth_router",
    "users_router",
    "logs_router",
]
