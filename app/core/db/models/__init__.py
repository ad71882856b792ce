from app.core.db.models.user import User
from app.core.db.models.session import UserSession

__all__ = [
    "User",
    "UserSession",
]
