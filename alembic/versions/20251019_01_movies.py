"""
Movies catalog table.

- One row per uploaded movie (metadata + media host references).
- Asset ids are paired; size/duration non-negative.
- Listing index on created_at (newest first).
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision = "20251019_01_movies"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "movies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("language", sa.String(length=64), nullable=True),
        sa.Column("quality", sa.String(length=32), nullable=True),
        sa.Column("thumbnail_url", sa.String(length=2048), nullable=True),
        sa.Column("thumbnail_asset_id", sa.String(length=1024), nullable=True),
        sa.Column("video_url", sa.String(length=2048), nullable=True),
        sa.Column("video_asset_id", sa.String(length=1024), nullable=True),
        sa.Column("format", sa.String(length=32), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("byte_size", sa.BigInteger(), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_movies")),
        sa.CheckConstraint(
            "(thumbnail_asset_id IS NULL) = (video_asset_id IS NULL)",
            name=op.f("ck_movies_asset_ids_paired"),
        ),
        sa.CheckConstraint("(byte_size IS NULL) OR (byte_size >= 0)", name=op.f("ck_movies_byte_size_nonneg")),
        sa.CheckConstraint("(duration IS NULL) OR (duration >= 0)", name=op.f("ck_movies_duration_nonneg")),
    )
    op.create_index(op.f("ix_movies_category"), "movies", ["category"], unique=False)
    op.create_index(op.f("ix_movies_created_at"), "movies", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_movies_created_at"), table_name="movies")
    op.drop_index(op.f("ix_movies_category"), table_name="movies")
    op.drop_table("movies")
