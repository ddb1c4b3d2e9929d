# backend/noticeboard/api/__init__.py
from .documents import router as documents_router
from .notices import router as notices_router
from .users import router as users_router

__all__ = ["documents_router", "notices_router", "users_router"]
