"""Create the listening table.

Revision ID: 0001_create_listening
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from spinstats.adapters.sqlalchemy.mappings import UtcTimestamp

revision = "0001_create_listening"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "listening",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("track", sa.String(), nullable=False),
        sa.Column("artist", sa.String(), nullable=False),
        sa.Column("album", sa.String(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("played_at", UtcTimestamp(), nullable=False),
        sa.Column("track_key", sa.String(), nullable=False),
        sa.Column("artist_key", sa.String(), nullable=False),
        sa.Column("album_key", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_listening"),
        sa.UniqueConstraint(
            "track_key",
            "artist_key",
            "album",
            "played_at",
            name="uq_listening_identity",
        ),
    )
    op.create_index("ix_listening_played_at", "listening", ["played_at"])
    op.create_index("ix_listening_artist_key", "listening", ["artist_key"])
    op.create_index("ix_listening_album_key", "listening", ["album_key"])


def downgrade() -> None:
    op.drop_index("ix_listening_album_key", table_name="listening")
    op.drop_index("ix_listening_artist_key", table_name="listening")
    op.drop_index("ix_listening_played_at", table_name="listening")
    op.drop_table("listening")
