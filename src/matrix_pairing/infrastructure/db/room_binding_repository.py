"""SQLAlchemy adapter for room binding persistence."""

from __future__ import annotations

from typing import Any, cast

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matrix_pairing.application.ports.room_binding_repository_port import (
    RoomBindingRepositoryPort,
)
from matrix_pairing.domain.room_binding import RoomBinding
from matrix_pairing.infrastructure.db.metadata import room_bindings


class SqlAlchemyRoomBindingRepository(RoomBindingRepositoryPort):
    """Room binding repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load_bindings(self) -> list[RoomBinding]:
        """Return all bindings ordered by creation time."""

        statement = sa.select(
            room_bindings.c.room_id,
            room_bindings.c.user_id,
            room_bindings.c.language,
            room_bindings.c.encrypted,
        ).order_by(room_bindings.c.created_at, room_bindings.c.room_id)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_to_room_binding(row) for row in result.mappings().all()]

    async def save_binding(self, binding: RoomBinding) -> None:
        """Update the row for the binding's room, inserting it when absent."""

        update_statement = (
            sa.update(room_bindings)
            .where(room_bindings.c.room_id == binding.room_id)
            .values(
                user_id=binding.user_id,
                language=binding.language,
                encrypted=binding.encrypted,
                updated_at=sa.func.current_timestamp(),
            )
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(update_statement))
            if not result.rowcount:
                await session.execute(
                    sa.insert(room_bindings).values(
                        room_id=binding.room_id,
                        user_id=binding.user_id,
                        language=binding.language,
                        encrypted=binding.encrypted,
                    )
                )
            await session.commit()


def _to_room_binding(row: sa.RowMapping) -> RoomBinding:
    return RoomBinding(
        room_id=cast(str, row["room_id"]),
        user_id=cast(str, row["user_id"]),
        language=cast(str, row["language"]),
        encrypted=bool(row["encrypted"]),
    )
