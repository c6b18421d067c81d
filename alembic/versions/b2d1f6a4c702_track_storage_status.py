"""track storage status

Revision ID: b2d1f6a4c702
Revises: a1c0e5f2d301
Create Date: 2026-10-17 14:00:00.000000

Hey future me - a track's audio_url alone can't tell a provider CDN link from our own copy,
so a failed download looked exactly like a finished one. This adds the storage state:

1. storage_status (VARCHAR 20):
   - pending: audio (if any) still lives at the provider (DEFAULT)
   - downloading: a download is in flight
   - completed: audio is in our storage, storage_path is set
   - failed: last download failed, storage_metadata has failed_at + error

2. storage_path (VARCHAR 1024): relative path under the audio root
3. storage_metadata (JSON): outcome of the last download

DATA MIGRATION:
- Tracks that already carry local_storage_path in their metadata, or whose generation
  does, were downloaded before this column existed -> completed
- Everything else stays pending and is picked up by the storage repair pass
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "b2d1f6a4c702"
down_revision = "a1c0e5f2d301"
branch_labels = None
depends_on = None


tracks = sa.table(
    "tracks",
    sa.column("id", sa.String),
    sa.column("audio_url", sa.String),
    sa.column("generation_id", sa.String),
    sa.column("metadata", sa.JSON),
    sa.column("storage_status", sa.String),
    sa.column("storage_path", sa.String),
)
generations = sa.table(
    "ai_generations",
    sa.column("id", sa.String),
    sa.column("result_url", sa.String),
    sa.column("metadata", sa.JSON),
)


def upgrade() -> None:
    """Add storage_status, storage_path and storage_metadata to tracks."""
    from sqlalchemy import inspect

    conn = op.get_bind()
    inspector = inspect(conn)

    # Idempotency for retry after partial failure
    track_columns = [col["name"] for col in inspector.get_columns("tracks")]
    if "storage_status" not in track_columns:
        with op.batch_alter_table("tracks", schema=None) as batch_op:
            batch_op.add_column(
                sa.Column(
                    "storage_status",
                    sa.String(20),
                    nullable=False,
                    server_default="pending",
                )
            )
            batch_op.add_column(sa.Column("storage_path", sa.String(1024), nullable=True))
            batch_op.add_column(
                sa.Column(
                    "storage_metadata",
                    sa.JSON,
                    nullable=False,
                    server_default=sa.text("'{}'"),
                )
            )
            batch_op.create_index("ix_tracks_storage_status", ["storage_status"])

    # JSON operators differ between SQLite and PostgreSQL, so the backfill reads rows
    # and decides in Python. Runs once per install.
    job_paths = {
        row.id: (row.result_url, (row.metadata or {}).get("local_storage_path"))
        for row in conn.execute(
            sa.select(generations.c.id, generations.c.result_url, generations.c.metadata)
        )
    }
    rows = conn.execute(
        sa.select(
            tracks.c.id, tracks.c.audio_url, tracks.c.generation_id, tracks.c.metadata
        ).where(tracks.c.storage_status == "pending", tracks.c.audio_url.is_not(None))
    ).all()
    for row in rows:
        path = (row.metadata or {}).get("local_storage_path")
        if not path and row.generation_id in job_paths:
            result_url, job_path = job_paths[row.generation_id]
            if job_path and result_url == row.audio_url:
                path = job_path
        if path:
            conn.execute(
                tracks.update()
                .where(tracks.c.id == row.id)
                .values(storage_status="completed", storage_path=path)
            )


def downgrade() -> None:
    """Drop the storage columns again."""
    with op.batch_alter_table("tracks", schema=None) as batch_op:
        batch_op.drop_index("ix_tracks_storage_status")
        batch_op.drop_column("storage_metadata")
        batch_op.drop_column("storage_path")
        batch_op.drop_column("storage_status")
