"""
Session management for the current user.

Mounted under /auth: list live sessions, end one, or end all but the
current one.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import CurrentPrincipal, get_async_session
from app.core.schemas.auth import MessageResponse
from app.core.schemas.session import (
    SessionListResponse,
    SessionResponse,
    TerminatedSessionsResponse,
)
from app.core.services.session import session_service


router = APIRouter()


@router.get(
    "/sessions",
    response_model=SessionListResponse,
    summary="List active sessions",
)
async def list_sessions(
    principal: CurrentPrincipal,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> SessionListResponse:
    """Live sessions, most recently active first; the caller's is ``is_current``."""
    sessions = await session_service.list_sessions(
        session, principal.user_id, current_session_id=principal.session_id
    )
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=len(sessions),
    )


# Declared before /sessions/{session_id} so "others" is not read as an id
@router.delete(
    "/sessions/others",
    response_model=TerminatedSessionsResponse,
    summary="Log out all other devices",
)
async def terminate_other_sessions(
    principal: CurrentPrincipal,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TerminatedSessionsResponse:
    count = await session_service.terminate_all_other_sessions(
        session, principal.user_id, except_session_id=principal.session_id
    )
    return TerminatedSessionsResponse(
        message=f"Logged out from {count} other device(s)", terminated=count
    )


@router.delete(
    "/sessions/{session_id}",
    response_model=MessageResponse,
    summary="Log out one device",
    responses={404: {"description": "No such session for this user"}},
)
async def terminate_session(
    session_id: str,
    principal: CurrentPrincipal,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await session_service.terminate_session(session, session_id, principal.user_id)
    return MessageResponse(message="Session terminated successfully")
