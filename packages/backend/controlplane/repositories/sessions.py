from __future__ import annotations

import datetime
import uuid
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from controlplane.models.auth_session import Session


class SessionRepository(Protocol):
    async def create(self, *, user_id: uuid.UUID, token_hash: str, expires_at: datetime.datetime) -> Session: ...

    async def find_active(self, token_hash: str) -> Session | None: ...

    async def replace_token(self, session_id: uuid.UUID, token_hash: str) -> None: ...

    async def deactivate(self, token_hash: str) -> int: ...


class SqlAlchemySessionRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def create(self, *, user_id: uuid.UUID, token_hash: str, expires_at: datetime.datetime) -> Session:
        session = Session(
            id=uuid.uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            is_active=True,
        )
        self._db.add(session)
        await self._db.commit()
        return session

    async def find_active(self, token_hash: str) -> Session | None:
        query = select(Session).where(
            Session.token_hash == token_hash,
            Session.is_active.is_(True),
        )
        return (await self._db.execute(query)).scalars().first()

    async def replace_token(self, session_id: uuid.UUID, token_hash: str) -> None:
        await self._db.execute(
            update(Session)
            .where(Session.id == session_id)
            .values(token_hash=token_hash)
            .execution_options(synchronize_session="fetch")
        )
        await self._db.commit()

    async def deactivate(self, token_hash: str) -> int:
        result = await self._db.execute(
            update(Session)
            .where(Session.token_hash == token_hash, Session.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        await self._db.commit()
        return result.rowcount or 0
