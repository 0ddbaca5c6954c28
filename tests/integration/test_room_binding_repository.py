from __future__ import annotations

from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command
from matrix_pairing.domain.room_binding import RoomBinding
from matrix_pairing.infrastructure.db.room_binding_repository import (
    SqlAlchemyRoomBindingRepository,
)
from matrix_pairing.infrastructure.db.session import create_session_factory


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def test_migration_creates_room_bindings_table_and_index(tmp_path: Path) -> None:
    sync_url, _ = _upgrade_head(tmp_path, "room_bindings_schema.db")
    inspector = sa.inspect(sa.create_engine(sync_url))

    assert "room_bindings" in set(inspector.get_table_names())
    columns = {column["name"] for column in inspector.get_columns("room_bindings")}
    assert {"room_id", "user_id", "language", "encrypted", "created_at", "updated_at"} <= columns
    assert inspector.get_pk_constraint("room_bindings")["constrained_columns"] == ["room_id"]
    index_names = {index["name"] for index in inspector.get_indexes("room_bindings")}
    assert "ix_room_bindings_user_id" in index_names


def test_migration_downgrade_drops_room_bindings(tmp_path: Path) -> None:
    sync_url, _ = _upgrade_head(tmp_path, "room_bindings_downgrade.db")
    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)

    command.downgrade(alembic_config, "base")

    inspector = sa.inspect(sa.create_engine(sync_url))
    assert "room_bindings" not in set(inspector.get_table_names())


@pytest.mark.asyncio
async def test_load_bindings_on_empty_store_returns_empty_list(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "room_bindings_empty.db")
    repo = SqlAlchemyRoomBindingRepository(create_session_factory(async_url))

    assert await repo.load_bindings() == []


@pytest.mark.asyncio
async def test_save_binding_inserts_then_updates_existing_room(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "room_bindings_upsert.db")
    repo = SqlAlchemyRoomBindingRepository(create_session_factory(async_url))
    binding = RoomBinding(room_id="!a:example.org", user_id="@alice:example.org")

    await repo.save_binding(binding)
    await repo.save_binding(binding.with_language("fr"))

    assert await repo.load_bindings() == [
        RoomBinding(room_id="!a:example.org", user_id="@alice:example.org", language="fr")
    ]
    engine = sa.create_engine(sync_url)
    with engine.connect() as connection:
        count = connection.execute(sa.text("SELECT COUNT(*) FROM room_bindings")).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_load_bindings_preserves_encrypted_flag_for_every_room(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "room_bindings_many.db")
    repo = SqlAlchemyRoomBindingRepository(create_session_factory(async_url))
    plain = RoomBinding(room_id="!plain:example.org", user_id="@a:example.org")
    secret = RoomBinding(
        room_id="!secret:example.org",
        user_id="@b:example.org",
        language="de",
        encrypted=True,
    )

    await repo.save_binding(plain)
    await repo.save_binding(secret)

    loaded = {binding.room_id: binding for binding in await repo.load_bindings()}
    assert loaded == {plain.room_id: plain, secret.room_id: secret}
