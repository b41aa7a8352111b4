"""content remixer schema

Revision ID: 4c2e9a1f7b30
Revises:
Create Date: 2025-10-19 09:12:44.512093
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4c2e9a1f7b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "original_content",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("content_hash", name="uq_original_content_hash"),
    )
    op.create_index("ix_original_content_id", "original_content", ["id"])

    op.create_table(
        "remix_outputs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "original_content_id",
            sa.Integer(),
            sa.ForeignKey("original_content.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("remix_type", sa.String(length=64), nullable=False),
        sa.Column("remixed_content", sa.Text(), nullable=False),
        sa.Column("metadata", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_remix_outputs_id", "remix_outputs", ["id"])
    op.create_index("ix_remix_outputs_original_content_id", "remix_outputs", ["original_content_id"])
    op.create_index("ix_remix_outputs_created_at", "remix_outputs", ["created_at"])

    op.create_table(
        "user_preferences",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("favorite_remix_types", JSONType, nullable=False),
        sa.Column("default_settings", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_user_preferences_id", "user_preferences", ["id"])
    op.create_index("ix_user_preferences_user_id", "user_preferences", ["user_id"], unique=True)
    op.create_index(
        "uq_user_preferences_anonymous",
        "user_preferences",
        [sa.text("(user_id IS NULL)")],
        unique=True,
        sqlite_where=sa.text("user_id IS NULL"),
        postgresql_where=sa.text("user_id IS NULL"),
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("name", name="uq_tags_name"),
    )
    op.create_index("ix_tags_id", "tags", ["id"])


def downgrade() -> None:
    op.drop_index("ix_tags_id", table_name="tags")
    op.drop_table("tags")
    op.drop_index("uq_user_preferences_anonymous", table_name="user_preferences")
    op.drop_index("ix_user_preferences_user_id", table_name="user_preferences")
    op.drop_index("ix_user_preferences_id", table_name="user_preferences")
    op.drop_table("user_preferences")
    op.drop_index("ix_remix_outputs_created_at", table_name="remix_outputs")
    op.drop_index("ix_remix_outputs_original_content_id", table_name="remix_outputs")
    op.drop_index("ix_remix_outputs_id", table_name="remix_outputs")
    op.drop_table("remix_outputs")
    op.drop_index("ix_original_content_id", table_name="original_content")
    op.drop_table("original_content")
