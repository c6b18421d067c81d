"""initial catalog and generation tables

Revision ID: a1c0e5f2d301
Revises:
Create Date: 2026-10-17 09:00:00.000000

Hey future me - the starting schema: artists -> projects -> tracks, plus ai_generations.

KEY DESIGN DECISIONS:
1. tracks.generation_id is UNIQUE - the database itself refuses a second track for one
   generation when two sync runs race
2. ai_generations.track_id has NO foreign key - a hard-deleted track leaves a dangling id
   that the next sync unlinks instead of failing the delete
3. ai_generations.sync_state replaces the skip_sync / deleted metadata flags for
   filtering; the flags stay in metadata for older readers
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "a1c0e5f2d301"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "artists",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_artists_user_id", "artists", ["user_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "artist_id",
            sa.String(36),
            sa.ForeignKey("artists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="mixtape"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("is_inbox", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_projects_artist_inbox", "projects", ["artist_id", "is_inbox"])

    op.create_table(
        "tracks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "project_id",
            sa.String(36),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("track_number", sa.Integer, nullable=True),
        sa.Column("audio_url", sa.String(1024), nullable=True),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("lyrics", sa.Text, nullable=True),
        sa.Column("generation_id", sa.String(36), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_tracks_generation_id", "tracks", ["generation_id"], unique=True
    )
    op.create_index("ix_tracks_project_title", "tracks", ["project_id", "title"])

    op.create_table(
        "ai_generations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("service", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("prompt", sa.Text, nullable=False, server_default=""),
        sa.Column("result_url", sa.String(1024), nullable=True),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("track_id", sa.String(36), nullable=True),
        sa.Column(
            "sync_state", sa.String(20), nullable=False, server_default="active"
        ),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_ai_generations_sync", "ai_generations", ["user_id", "status", "sync_state"]
    )
    op.create_index("ix_ai_generations_track_id", "ai_generations", ["track_id"])


def downgrade() -> None:
    op.drop_index("ix_ai_generations_track_id", table_name="ai_generations")
    op.drop_index("ix_ai_generations_sync", table_name="ai_generations")
    op.drop_table("ai_generations")
    op.drop_index("ix_tracks_project_title", table_name="tracks")
    op.drop_index("ix_tracks_generation_id", table_name="tracks")
    op.drop_table("tracks")
    op.drop_index("ix_projects_artist_inbox", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_artists_user_id", table_name="artists")
    op.drop_table("artists")
