"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates all tables for the membership backend:
- churches
- users
- sessions
- locations
- fellowships
- members
- member_tags
- member_fellowships
- saved_searches
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Churches table (tenants)
    op.create_table(
        "churches",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "created_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
    )

    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("church_id", sa.BigInteger, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column(
            "created_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
        sa.Column("last_login_at", sa.DateTime, nullable=True),
        sa.ForeignKeyConstraint(["church_id"], ["churches.id"], name="fk_users_church"),
    )
    op.create_index("idx_users_church", "users", ["church_id"])

    # Sessions table
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column(
            "created_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_sessions_user"),
    )

    # Locations table
    op.create_table(
        "locations",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("suburb", sa.String(255), nullable=True),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("district", sa.String(255), nullable=True),
        sa.Column("region", sa.String(255), nullable=True),
        sa.Column("country", sa.String(255), nullable=True),
        sa.Column("full_address", sa.String(512), nullable=True),
    )

    # Fellowships table
    op.create_table(
        "fellowships",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("church_id", sa.BigInteger, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(
            ["church_id"], ["churches.id"], name="fk_fellowships_church"
        ),
    )
    op.create_index("idx_fellowships_church", "fellowships", ["church_id"])

    # Members table
    op.create_table(
        "members",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("church_id", sa.BigInteger, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("sex", sa.String(16), nullable=True),
        sa.Column("marital_status", sa.String(16), nullable=True),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("member_since", sa.Date, nullable=True),
        sa.Column("is_verified", sa.Boolean, nullable=True),
        sa.Column("profile_completeness", sa.Float, nullable=True),
        sa.Column("location_id", sa.BigInteger, nullable=True),
        sa.Column(
            "created_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["church_id"], ["churches.id"], name="fk_members_church"),
        sa.ForeignKeyConstraint(
            ["location_id"], ["locations.id"], name="fk_members_location"
        ),
    )
    op.create_index("idx_members_church", "members", ["church_id"])
    op.create_index(
        "idx_members_church_name", "members", ["church_id", "last_name", "first_name"]
    )
    op.create_index("idx_members_church_status", "members", ["church_id", "status"])

    # Member tags table
    op.create_table(
        "member_tags",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("member_id", sa.BigInteger, nullable=False),
        sa.Column("tag", sa.String(64), nullable=False),
        sa.ForeignKeyConstraint(
            ["member_id"], ["members.id"], name="fk_member_tags_member", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("member_id", "tag", name="uq_member_tag"),
    )
    op.create_index("idx_member_tags_tag", "member_tags", ["tag"])

    # Member <-> fellowship association
    op.create_table(
        "member_fellowships",
        sa.Column("member_id", sa.BigInteger, primary_key=True),
        sa.Column("fellowship_id", sa.BigInteger, primary_key=True),
        sa.ForeignKeyConstraint(
            ["member_id"], ["members.id"], name="fk_mf_member", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["fellowship_id"], ["fellowships.id"], name="fk_mf_fellowship", ondelete="CASCADE"
        ),
    )

    # Saved searches table
    op.create_table(
        "saved_searches",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("church_id", sa.BigInteger, nullable=False),
        sa.Column("created_by_user_id", sa.BigInteger, nullable=False),
        sa.Column("search_name", sa.String(255), nullable=False),
        sa.Column("search_criteria", sa.Text, nullable=False),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_dynamic", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("last_executed", sa.DateTime, nullable=True),
        sa.Column("last_result_count", sa.BigInteger, nullable=True),
        sa.Column(
            "created_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(
            ["church_id"], ["churches.id"], name="fk_saved_searches_church"
        ),
        sa.ForeignKeyConstraint(
            ["created_by_user_id"], ["users.id"], name="fk_saved_searches_creator"
        ),
    )
    op.create_index("idx_saved_searches_church", "saved_searches", ["church_id"])
    op.create_index("idx_saved_searches_creator", "saved_searches", ["created_by_user_id"])
    op.create_index(
        "idx_saved_searches_public", "saved_searches", ["church_id", "is_public"]
    )


def downgrade() -> None:
    op.drop_table("saved_searches")
    op.drop_table("member_fellowships")
    op.drop_table("member_tags")
    op.drop_table("members")
    op.drop_table("fellowships")
    op.drop_table("locations")
    op.drop_table("sessions")
    op.drop_table("users")
    op.drop_table("churches")
