"""
API Routes Module
"""
from .auth import router as auth_router
from .commerce import router as commerce_router
from .health import router as health_router
from .historical import router as historical_router
from .realtime import router as realtime_router
from .status import router as status_router

__all__ = [
    "auth_router",
    "commerce_router",
    "health_router",
    "historical_router",
    "realtime_router",
    "status_router",
]
