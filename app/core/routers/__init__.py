"""
Routers for the application.

``auth_router`` and ``sessions_router`` are mounted under /auth,
``user_router`` under /user and ``admin_router`` under /admin.
"""

from app.core.routers.admin import router as admin_router
from app.core.routers.auth import router as auth_router
from app.core.routers.sessions import router as sessions_router
from app.core.routers.user import router as user_router

__all__ = ["admin_router", "auth_router", "sessions_router", "user_router"]
