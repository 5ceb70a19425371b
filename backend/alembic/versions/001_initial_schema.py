"""Create profiles, categories, notes, note_categories, projects and link tables.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-16 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Apply schema migrations."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("approved", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("idx_categories_user_order", "categories", ["user_id", "sort_order"])

    op.create_table(
        "projects",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        _created_at(),
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])

    op.create_table(
        "project_files",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "project_id",
            sa.String(36),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(512), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False),
        _created_at(),
    )
    op.create_index("ix_project_files_project_id", "project_files", ["project_id"])

    op.create_table(
        "notes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column(
            "category_id",
            sa.String(36),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_favorite", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("file_path", sa.String(1024), nullable=True),
        sa.Column(
            "project_id",
            sa.String(36),
            sa.ForeignKey("projects.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="todo"),
        _created_at(),
    )
    op.create_index("idx_notes_user_created", "notes", ["user_id", "created_at"])
    op.create_index("idx_notes_category", "notes", ["category_id"])

    # No unique (note_id, category_id): rows are always replaced wholesale
    op.create_table(
        "note_categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "note_id",
            sa.String(36),
            sa.ForeignKey("notes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(36),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_index("idx_note_categories_note", "note_categories", ["note_id"])
    op.create_index("idx_note_categories_category", "note_categories", ["category_id"])

    op.create_table(
        "link_groups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("idx_link_groups_user_order", "link_groups", ["user_id", "sort_order"])

    op.create_table(
        "link_subgroups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("link_groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("idx_link_subgroups_group_order", "link_subgroups", ["group_id", "sort_order"])

    op.create_table(
        "study_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("link_groups.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "subgroup_id",
            sa.String(36),
            sa.ForeignKey("link_subgroups.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "note_id",
            sa.String(36),
            sa.ForeignKey("notes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _created_at(),
    )
    op.create_index("idx_study_links_user_created", "study_links", ["user_id", "created_at"])


def downgrade() -> None:
    """Revert schema migrations."""
    op.drop_table("study_links")
    op.drop_table("link_subgroups")
    op.drop_table("link_groups")
    op.drop_table("note_categories")
    op.drop_table("notes")
    op.drop_table("project_files")
    op.drop_table("projects")
    op.drop_table("categories")
    op.drop_table("profiles")
