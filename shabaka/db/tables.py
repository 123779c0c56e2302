"""SQLAlchemy table definitions.

Rows mirror the frozen dataclasses in shabaka/models/.  Repositories
convert between the two; nothing outside shabaka/repos/pg_* touches a
row class.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from shabaka.db.engine import Base

# --- Identity ---


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    roles: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class VerificationCodeRow(Base):
    __tablename__ = "verification_codes"

    user_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    purpose: Mapped[str] = mapped_column(String(32), primary_key=True)  # two_factor|password_reset
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    remember_me: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# --- Payments ---


class OrderRow(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    buyer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    content_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount_dt: Mapped[float] = mapped_column(Float, nullable=False)
    platform_percent: Mapped[float] = mapped_column(Float, nullable=False)
    platform_fixed_dt: Mapped[float] = mapped_column(Float, nullable=False)
    platform_fee_dt: Mapped[float] = mapped_column(Float, nullable=False)
    creator_net_dt: Mapped[float] = mapped_column(Float, nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    promo_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    discount_dt: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )  # pending|paid|refunded
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_orders_creator_created", "creator_id", "created_at"),
        Index("ix_orders_buyer_created", "buyer_id", "created_at"),
        Index("ix_orders_content", "content_type", "content_id"),
        Index("ix_orders_payment_id", "payment_id"),
    )


class PromoCodeRow(Base):
    __tablename__ = "promo_codes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    percent_off: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    amount_off_dt: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    applies_to_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    applies_to_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_redemptions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    redemptions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allowed_emails: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list
    )
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


# --- Content tracking ---


class ContentProgressRow(Base):
    __tablename__ = "content_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    content_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    watch_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    review: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    bookmarks: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    share_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    meta: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_content_progress_user_updated", "user_id", "updated_at"),
        Index("ix_content_progress_content", "content_type", "content_id"),
    )


class TrackingActionRow(Base):
    __tablename__ = "tracking_actions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    content_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(32), nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_tracking_actions_user_ts", "user_id", "timestamp"),)


# --- Catalog ---


class CommunityRow(Base):
    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fees_of_join: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class CommunityMemberRow(Base):
    __tablename__ = "community_members"

    community_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)


class CatalogItemRow(Base):
    __tablename__ = "catalog_items"

    content_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    community_id: Mapped[str] = mapped_column(String(64), nullable=False)
    document: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_catalog_items_community", "content_type", "community_id"),
    )


class CourseEnrollmentRow(Base):
    __tablename__ = "course_enrollments"

    course_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)


class ChallengeParticipantRow(Base):
    __tablename__ = "challenge_participants"

    challenge_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(32), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_tasks: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list
    )
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class PlanRow(Base):
    __tablename__ = "plans"

    tier: Mapped[str] = mapped_column(String(16), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    price_dt: Mapped[float] = mapped_column(Float, nullable=False)
    transaction_fee_percent: Mapped[float] = mapped_column(Float, nullable=False)
    transaction_fixed_fee_dt: Mapped[float] = mapped_column(Float, nullable=False)
    trial_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SubscriptionRow(Base):
    __tablename__ = "subscriptions"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    plan_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    current_period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    current_period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
