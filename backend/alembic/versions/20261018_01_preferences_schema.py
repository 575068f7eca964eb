"""Profile, preference, stylesheet and layout tables.

Revision ID: 20261018_01_preferences_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261018_01_preferences_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "structure_stylesheets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("uri", sa.String(length=255), nullable=False),
        sa.Column("parameters", sa.JSON(), nullable=False),
        sa.Column("folder_attributes", sa.JSON(), nullable=False),
        sa.Column("channel_attributes", sa.JSON(), nullable=False),
    )

    op.create_table(
        "theme_stylesheets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column(
            "structure_stylesheet_id",
            sa.Integer(),
            sa.ForeignKey("structure_stylesheets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("uri", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=64), nullable=False, server_default="text/html"),
        sa.Column("serializer_name", sa.String(length=64), nullable=False, server_default="html"),
        sa.Column("parameters", sa.JSON(), nullable=False),
        sa.Column("channel_attributes", sa.JSON(), nullable=False),
    )

    op.create_table(
        "portal_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("owner_id", sa.String(length=128), nullable=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("layout_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("structure_stylesheet_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("theme_stylesheet_id", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("owner_id", "name", name="uq_portal_profiles_owner_name"),
    )
    op.create_index("ix_portal_profiles_name", "portal_profiles", ["name"])

    op.create_table(
        "profile_agent_mappings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=False),
        sa.Column(
            "profile_id",
            sa.Integer(),
            sa.ForeignKey("portal_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("owner_id", "user_agent", name="uq_profile_agent_owner_agent"),
    )
    op.create_index("ix_profile_agent_mappings_agent", "profile_agent_mappings", ["user_agent"])

    op.create_table(
        "user_preferences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column(
            "profile_id",
            sa.Integer(),
            sa.ForeignKey("portal_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("structure_preferences", sa.JSON(), nullable=False),
        sa.Column("theme_preferences", sa.JSON(), nullable=False),
        sa.UniqueConstraint("user_id", "profile_id", name="uq_user_preferences_user_profile"),
    )
    op.create_index("ix_user_preferences_user_id", "user_preferences", ["user_id"])

    op.create_table(
        "user_layouts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("layout_id", sa.Integer(), nullable=False),
        sa.Column("nodes", sa.JSON(), nullable=False),
        sa.UniqueConstraint("user_id", "layout_id", name="uq_user_layouts_user_layout"),
    )
    op.create_index("ix_user_layouts_user_id", "user_layouts", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_user_layouts_user_id", table_name="user_layouts")
    op.drop_table("user_layouts")
    op.drop_index("ix_user_preferences_user_id", table_name="user_preferences")
    op.drop_table("user_preferences")
    op.drop_index("ix_profile_agent_mappings_agent", table_name="profile_agent_mappings")
    op.drop_table("profile_agent_mappings")
    op.drop_index("ix_portal_profiles_name", table_name="portal_profiles")
    op.drop_table("portal_profiles")
    op.drop_table("theme_stylesheets")
    op.drop_table("structure_stylesheets")
