"""initial schema

Revision ID: 3b9e1c7d2a40
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9e1c7d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "roles", postgresql.ARRAY(sa.String()), nullable=False, server_default="{}"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "verification_codes",
        sa.Column("user_id", sa.String(length=32), primary_key=True),
        sa.Column("purpose", sa.String(length=32), primary_key=True),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("remember_me", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("buyer_id", sa.String(length=64), nullable=False),
        sa.Column("creator_id", sa.String(length=64), nullable=False),
        sa.Column("content_type", sa.String(length=32), nullable=False),
        sa.Column("content_id", sa.String(length=64), nullable=False),
        sa.Column("amount_dt", sa.Float(), nullable=False),
        sa.Column("platform_percent", sa.Float(), nullable=False),
        sa.Column("platform_fixed_dt", sa.Float(), nullable=False),
        sa.Column("platform_fee_dt", sa.Float(), nullable=False),
        sa.Column("creator_net_dt", sa.Float(), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("promo_code", sa.String(length=64), nullable=True),
        sa.Column("discount_dt", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payment_id", sa.String(length=255), nullable=True),
        sa.Column("payment_method", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_creator_created", "orders", ["creator_id", "created_at"])
    op.create_index("ix_orders_buyer_created", "orders", ["buyer_id", "created_at"])
    op.create_index("ix_orders_content", "orders", ["content_type", "content_id"])
    op.create_index("ix_orders_payment_id", "orders", ["payment_id"])

    op.create_table(
        "promo_codes",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("percent_off", sa.Float(), nullable=False, server_default="0"),
        sa.Column("amount_off_dt", sa.Float(), nullable=False, server_default="0"),
        sa.Column("applies_to_type", sa.String(length=32), nullable=True),
        sa.Column("applies_to_id", sa.String(length=64), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("redemptions_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "allowed_emails",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("created_by", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "content_progress",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("content_type", sa.String(length=32), primary_key=True),
        sa.Column("content_id", sa.String(length=64), primary_key=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("watch_time", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("review", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "bookmarks", postgresql.ARRAY(sa.String()), nullable=False, server_default="{}"
        ),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("share_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("meta", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_content_progress_user_updated", "content_progress", ["user_id", "updated_at"]
    )
    op.create_index(
        "ix_content_progress_content", "content_progress", ["content_type", "content_id"]
    )

    op.create_table(
        "tracking_actions",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("content_type", sa.String(length=32), nullable=False),
        sa.Column("content_id", sa.String(length=64), nullable=False),
        sa.Column("action_type", sa.String(length=32), nullable=False),
        sa.Column("meta", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tracking_actions_user_ts", "tracking_actions", ["user_id", "timestamp"])


def downgrade() -> None:
    op.drop_index("ix_tracking_actions_user_ts", table_name="tracking_actions")
    op.drop_table("tracking_actions")
    op.drop_index("ix_content_progress_content", table_name="content_progress")
    op.drop_index("ix_content_progress_user_updated", table_name="content_progress")
    op.drop_table("content_progress")
    op.drop_table("promo_codes")
    op.drop_index("ix_orders_payment_id", table_name="orders")
    op.drop_index("ix_orders_content", table_name="orders")
    op.drop_index("ix_orders_buyer_created", table_name="orders")
    op.drop_index("ix_orders_creator_created", table_name="orders")
    op.drop_table("orders")
    op.drop_table("verification_codes")
    op.drop_table("users")
