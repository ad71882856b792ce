from app.core.db.crud.base import BaseDB
from app.core.db.crud.session import UserSessionDB
from app.core.db.crud.user import UserDB

# Global CRUD instances - use these instead of creating new instances
user_db = UserDB()
user_session_db = UserSessionDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "BaseDB",
    "UserDB",
    "UserSessionDB",
    # Global instances (for actual usage)
    "user_db",
    "user_session_db",
]
