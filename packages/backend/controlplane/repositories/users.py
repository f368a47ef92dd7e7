from __future__ import annotations

import datetime
import uuid
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from controlplane.models.user import User


class DuplicateEmailError(Exception):
    pass


class UserRepository(Protocol):
    async def get_by_id(self, user_id: uuid.UUID) -> User | None: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def add(self, user: User) -> User: ...

    async def update_secret(self, user_id: uuid.UUID, secret: str) -> None: ...

    async def enable_two_factor(self, user_id: uuid.UUID) -> None: ...

    async def disable_two_factor(self, user_id: uuid.UUID) -> None: ...

    async def record_login(self, user_id: uuid.UUID, at: datetime.datetime) -> None: ...


def _is_duplicate_email_error(exc: IntegrityError) -> bool:
    if exc.orig is None:
        return False
    message = str(exc.orig).lower()
    return (
        "uq_users_email" in message
        or "duplicate entry" in message
        or "unique constraint failed: users.email" in message
    )


class SqlAlchemyUserRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        return await self._db.get(User, user_id)

    async def find_by_email(self, email: str) -> User | None:
        query = select(User).where(User.email == email)
        return (await self._db.execute(query)).scalar_one_or_none()

    async def add(self, user: User) -> User:
        self._db.add(user)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            if _is_duplicate_email_error(exc):
                raise DuplicateEmailError("email already exists") from exc
            raise
        await self._db.refresh(user)
        return user

    async def update_secret(self, user_id: uuid.UUID, secret: str) -> None:
        await self._update(user_id, two_factor_secret=secret)

    async def enable_two_factor(self, user_id: uuid.UUID) -> None:
        await self._update(user_id, two_factor_enabled=True)

    async def disable_two_factor(self, user_id: uuid.UUID) -> None:
        await self._update(user_id, two_factor_enabled=False, two_factor_secret=None)

    async def record_login(self, user_id: uuid.UUID, at: datetime.datetime) -> None:
        await self._update(user_id, last_login=at)

    async def _update(self, user_id: uuid.UUID, **values: object) -> None:
        await self._db.execute(
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        await self._db.commit()
