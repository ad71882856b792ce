from typing import (
    Any,
    TypeVar,
    Generic,
    Type,
    Sequence,
)
from uuid import UUID

from sqlalchemy import (
    SQLColumnExpression,
    and_,
    func,
    update as sa_update,
    delete as sa_delete,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Select, Delete, Update

from app.core.exceptions.types import DatabaseException

T = TypeVar("T")


class BaseDB(Generic[T]):
    """
    Generic async CRUD operations for a mapped model.

    Every method takes the caller's ``AsyncSession`` and wraps driver errors
    in ``DatabaseException``. Mutating methods accept ``commit_self``: when
    True they commit, otherwise they only flush so the caller can group
    several writes in its own transaction.
    """

    def __init__(self, model: Type[T]):
        self.model = model

    async def _finish(self, session: AsyncSession, commit_self: bool) -> None:
        if commit_self:
            await session.commit()
        else:
            await session.flush()

    async def get_by_id(
        self,
        session: AsyncSession,
        id: UUID,
        options: list[Any] = [],
        for_update: bool = False,
    ) -> T | None:
        """
        Retrieve an instance by primary key.

        Args:
            session (AsyncSession): The database session.
            id (UUID): Primary key value.
            options (list[Any], optional): Loader options (e.g. selectinload).
            for_update (bool, optional): Take a row lock (``SELECT ... FOR UPDATE``)
                held until the surrounding transaction ends. Ignored by
                backends without row locks.

        Returns:
            T | None: The instance, or None if not found.

        Raises:
            DatabaseException: If the query fails.
        """
        try:
            stmt: Select = (
                select(self.model)
                .options(*options)
                .where(getattr(self.model, "id") == id)
            )
            if for_update:
                stmt = stmt.with_for_update()
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def get_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        order_by: Sequence[Any] | None = None,
        options: list[Any] = [],
    ) -> Sequence[T]:
        """
        Retrieve every record matching all of the given conditions.

        Raises:
            DatabaseException: If the query fails.
        """
        try:
            stmt = select(self.model).options(*options).where(and_(*conditions))
            if order_by:
                stmt = stmt.order_by(*order_by)
            result = await session.execute(stmt)
            return result.scalars().all()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def get_one_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        options: list[Any] = [],
    ) -> T | None:
        """
        Retrieve the first record matching all of the given conditions.

        Raises:
            DatabaseException: If the query fails.
        """
        try:
            stmt = select(self.model).options(*options).where(and_(*conditions))
            result = await session.execute(stmt)
            return result.scalars().first()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def get_page(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        order_by: Sequence[Any],
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[Sequence[T], int]:
        """
        Retrieve one offset page of the matching records plus the total
        number of matches.

        Returns:
            tuple[Sequence[T], int]: The page and the total count.

        Raises:
            DatabaseException: If either query fails.
        """
        try:
            stmt = (
                select(self.model)
                .where(*conditions)
                .order_by(*order_by)
                .offset(offset)
                .limit(limit)
            )
            result = await session.execute(stmt)
            items = result.scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error paging {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e
        return items, await self.count_by_conditions(session, conditions)

    async def count_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
    ) -> int:
        try:
            stmt = select(func.count()).select_from(self.model).where(*conditions)
            result = await session.execute(stmt)
            return result.scalar() or 0
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error counting {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        commit_self: bool = True,
    ) -> T:
        """
        Create and persist a new instance from ``data``.

        Args:
            session (AsyncSession): The database session.
            data (dict): Column values for the new instance.
            commit_self (bool, optional): Commit instead of flush. Defaults to True.

        Returns:
            T: The persisted instance, refreshed from the database.

        Raises:
            DatabaseException: If the insert fails.
        """
        try:
            obj = self.model(**data)
            session.add(obj)
            await self._finish(session, commit_self)
            await session.refresh(obj)
            return obj
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def update(
        self, session: AsyncSession, id: UUID, updates: dict, commit_self: bool = True
    ) -> T | None:
        """
        Apply ``updates`` to the record with the given primary key.

        The update is a single ``UPDATE ... RETURNING`` statement, so column
        expressions (e.g. ``User.login_attempts + 1``) are evaluated
        atomically by the database.

        Returns:
            T | None: The updated instance, or None if no record matched.

        Raises:
            DatabaseException: If the update fails.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(self.model.id == id)  # type: ignore[attr-defined]
                .values(**updates)
                .returning(self.model)
            )
            result = await session.execute(stmt)
            obj = result.scalar_one_or_none()
            await self._finish(session, commit_self)
            return obj
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def update_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        updates: dict,
        commit_self: bool = True,
    ) -> int:
        """
        Apply ``updates`` to every record matching the conditions.

        Matched primary keys come back through RETURNING and are counted,
        since some drivers report no rowcount once RETURNING is involved.

        Returns:
            int: The number of records updated.

        Raises:
            DatabaseException: If the update fails.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(and_(*conditions))
                .values(**updates)
                .returning(getattr(self.model, "id"))
                .execution_options(synchronize_session="fetch")
            )
            result = await session.execute(stmt)
            count = len(result.all())
            await self._finish(session, commit_self)
            return count
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def delete_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        commit_self: bool = True,
    ) -> int:
        """
        Permanently delete every record matching the conditions.

        Returns:
            int: The number of records deleted.

        Raises:
            DatabaseException: If the delete fails.
        """
        try:
            stmt: Delete = (
                sa_delete(self.model)
                .where(and_(*conditions))
                .returning(getattr(self.model, "id"))
                .execution_options(synchronize_session="fetch")
            )
            result = await session.execute(stmt)
            count = len(result.all())
            await self._finish(session, commit_self)
            return count
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error deleting {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e
