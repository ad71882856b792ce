"""
Authentication dependencies for FastAPI endpoints.

- Resolving the session-bound bearer token into a ``Principal``
- Getting the current user
- Restricting endpoints to admins

Example usage:
    from app.core.dependencies.auth import CurrentPrincipal, CurrentUser

    @router.get("/me")
    async def get_profile(user: CurrentUser):
        return user

    @router.post("/logout")
    async def logout(principal: CurrentPrincipal):
        ...
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import auth_logger
from app.core.db.models import User
from app.core.dependencies.db import get_async_session
from app.core.enums import UserRole
from app.core.exceptions.types import ForbiddenException
from app.core.services.session import Principal, session_service

# auto_error=True answers 401/403 when the header is missing
bearer_scheme = HTTPBearer(auto_error=True)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Principal:
    """
    Validate the bearer token and the session it references.

    Every call refreshes the session's activity timestamp.

    Raises:
        AuthenticationException: Token, session or account no longer valid.
    """
    return await session_service.authenticate_request(session, credentials.credentials)


async def get_current_user(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> User:
    return principal.user


async def get_admin_user(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> User:
    """
    Raises:
        ForbiddenException: The caller is not an admin.
    """
    if principal.role != UserRole.ADMIN.value:
        auth_logger.warning(f"Access denied: admin required, caller {principal.email}")
        raise ForbiddenException("Admin access required.")
    return principal.user


# Type aliases for cleaner dependency injection
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]


__all__ = [
    "AdminUser",
    "CurrentPrincipal",
    "CurrentUser",
    "bearer_scheme",
    "get_admin_user",
    "get_current_principal",
    "get_current_user",
]
