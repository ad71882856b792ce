from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints

from app.core.schemas.auth import UserResponse


class ChartHistoryRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "symbol": "BTCUSDT",
                "title": "Bitcoin / TetherUS",
                "path": "/chart/BTCUSDT",
            }
        }
    )

    symbol: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    path: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class ChartHistoryEntry(BaseModel):
    symbol: str
    title: str
    path: str
    opened_at: datetime


class ChartHistoryResponse(BaseModel):
    """Recently opened charts, newest first."""

    history: list[ChartHistoryEntry]


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(current_page=page, total_pages=-(-total // limit), total=total)


class UserListResponse(BaseModel):
    users: list[UserResponse]
    pagination: Pagination


__all__ = [
    "ChartHistoryEntry",
    "ChartHistoryRequest",
    "ChartHistoryResponse",
    "Pagination",
    "UserListResponse",
]
