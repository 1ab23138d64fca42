"""Repositories for artifact registration and call status updates."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callreview.models.artifact import Artifact, ArtifactKind
from callreview.models.call import Call, CallStatus
from callreview.queue.types import utcnow

logger = logging.getLogger(__name__)

_artifacts = Artifact.__table__
_calls = Call.__table__


def _insert_ignoring_duplicates(session: AsyncSession, table: Table, values: dict[str, Any]):
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert(table).values(**values).on_conflict_do_nothing()
    return pg_insert(table).values(**values).on_conflict_do_nothing()


class ArtifactRepository:
    """Idempotent registration of stage outputs."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def register(
        self,
        *,
        org_id: UUID,
        call_id: UUID,
        kind: ArtifactKind,
        storage_path: str,
        content_type: str,
        size_bytes: int | None = None,
    ) -> None:
        values = {
            "id": uuid4(),
            "org_id": org_id,
            "call_id": call_id,
            "kind": ArtifactKind(kind).value,
            "storage_path": storage_path,
            "content_type": content_type,
            "size_bytes": size_bytes,
            "created_at": utcnow(),
        }
        async with self._session_factory() as session, session.begin():
            await session.execute(_insert_ignoring_duplicates(session, _artifacts, values))
        logger.info(
            "Registered %s artifact call_id=%s path=%s size=%s",
            values["kind"],
            call_id,
            storage_path,
            size_bytes,
        )

    async def exists(self, call_id: UUID, kind: ArtifactKind) -> bool:
        stmt = (
            select(_artifacts.c.id)
            .where(
                _artifacts.c.call_id == call_id,
                _artifacts.c.kind == ArtifactKind(kind).value,
            )
            .limit(1)
        )
        async with self._session_factory() as session:
            return (await session.execute(stmt)).first() is not None


async def set_call_status(session: AsyncSession, call_id: UUID, status: CallStatus) -> None:
    """Update the call status inside the caller's transaction."""

    await session.execute(
        update(_calls)
        .where(_calls.c.id == call_id)
        .values(status=CallStatus(status).value, updated_at=utcnow())
    )


class CallRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def ensure(
        self, *, org_id: UUID, call_id: UUID, source_filename: str | None = None
    ) -> None:
        """Create the call row in ``queued`` state unless it already exists."""

        now = utcnow()
        values = {
            "id": call_id,
            "org_id": org_id,
            "source_filename": source_filename,
            "status": CallStatus.QUEUED.value,
            "created_at": now,
            "updated_at": now,
        }
        async with self._session_factory() as session, session.begin():
            await session.execute(_insert_ignoring_duplicates(session, _calls, values))

    async def update_status(self, call_id: UUID, status: CallStatus) -> None:
        async with self._session_factory() as session, session.begin():
            await set_call_status(session, call_id, status)
        logger.info("Call %s marked %s", call_id, CallStatus(status).value)


__all__ = ["ArtifactRepository", "CallRepository", "set_call_status"]
