"""SQLAlchemy metadata definitions for pairing daemon tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()

room_bindings = sa.Table(
    "room_bindings",
    metadata,
    sa.Column("room_id", sa.Text(), primary_key=True, nullable=False),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("language", sa.Text(), nullable=False, server_default=sa.text("'en-us'")),
    sa.Column("encrypted", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)

sa.Index("ix_room_bindings_user_id", room_bindings.c.user_id)
