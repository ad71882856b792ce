from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.core.enums import DeviceType


class SessionResponse(BaseModel):
    """One live login session, as shown to its owner."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    user_agent: str | None = None
    ip_address: str | None = None
    platform: str | None = None
    browser: str | None = None
    device_type: DeviceType | None = None
    is_online: bool = False
    login_time: datetime
    last_activity: datetime
    expires_at: datetime
    is_current: bool = False


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int


class SessionLimitResponse(BaseModel):
    """Body of the 409 returned when the session cap blocks a login."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "detail": "Maximum 2 active sessions allowed. Log out from another device or force login.",
                "code": "SESSION_LIMIT_EXCEEDED",
                "max_sessions": 2,
                "active_sessions": [],
            }
        }
    )

    detail: str
    code: str = "SESSION_LIMIT_EXCEEDED"
    max_sessions: int
    active_sessions: list[SessionResponse]


class TerminatedSessionsResponse(BaseModel):
    message: str
    terminated: int


__all__ = [
    "SessionLimitResponse",
    "SessionListResponse",
    "SessionResponse",
    "TerminatedSessionsResponse",
]
