"""
Shared dependencies for FastAPI endpoints.
"""

from app.core.dependencies.auth import (
    AdminUser,
    CurrentPrincipal,
    CurrentUser,
    bearer_scheme,
    get_admin_user,
    get_current_principal,
    get_current_user,
)
from app.core.dependencies.db import get_async_session

__all__ = [
    "AdminUser",
    "CurrentPrincipal",
    "CurrentUser",
    "bearer_scheme",
    "get_admin_user",
    "get_async_session",
    "get_current_principal",
    "get_current_user",
]
