"""catalog tables

Revision ID: 7c41d0e9b5a2
Revises: 3b9e1c7d2a40
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c41d0e9b5a2"
down_revision: str | Sequence[str] | None = "3b9e1c7d2a40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "communities",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("creator_id", sa.String(length=64), nullable=False),
        sa.Column("fees_of_join", sa.Float(), nullable=False, server_default="0"),
    )

    op.create_table(
        "community_members",
        sa.Column(
            "community_id",
            sa.String(length=64),
            sa.ForeignKey("communities.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(length=64), primary_key=True),
    )

    op.create_table(
        "catalog_items",
        sa.Column("content_type", sa.String(length=32), primary_key=True),
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("community_id", sa.String(length=64), nullable=False),
        sa.Column("document", postgresql.JSONB(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_catalog_items_community", "catalog_items", ["content_type", "community_id"]
    )

    op.create_table(
        "course_enrollments",
        sa.Column("course_id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), primary_key=True),
    )

    op.create_table(
        "challenge_participants",
        sa.Column("challenge_id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "completed_tasks",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
    )

    plans = op.create_table(
        "plans",
        sa.Column("tier", sa.String(length=16), primary_key=True),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("price_dt", sa.Float(), nullable=False),
        sa.Column("transaction_fee_percent", sa.Float(), nullable=False),
        sa.Column("transaction_fixed_fee_dt", sa.Float(), nullable=False),
        sa.Column("trial_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.bulk_insert(
        plans,
        [
            {
                "tier": "starter",
                "name": "Starter",
                "price_dt": 29.0,
                "transaction_fee_percent": 9.0,
                "transaction_fixed_fee_dt": 0.5,
            },
            {
                "tier": "growth",
                "name": "Growth",
                "price_dt": 69.0,
                "transaction_fee_percent": 3.9,
                "transaction_fixed_fee_dt": 0.5,
            },
            {
                "tier": "pro",
                "name": "Pro",
                "price_dt": 99.0,
                "transaction_fee_percent": 2.8,
                "transaction_fixed_fee_dt": 0.5,
            },
        ],
    )

    op.create_table(
        "subscriptions",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("plan_tier", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("subscriptions")
    op.drop_table("plans")
    op.drop_table("challenge_participants")
    op.drop_table("course_enrollments")
    op.drop_index("ix_catalog_items_community", table_name="catalog_items")
    op.drop_table("catalog_items")
    op.drop_table("community_members")
    op.drop_table("communities")
