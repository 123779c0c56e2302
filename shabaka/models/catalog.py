"""Catalog documents the payment, grant and progression flows read.

These are the denormalized content records owned by the community,
course, event, product and session modules.  This package only reads
them and, through the grant-access side effects, adds members and
enrollments.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

SUBSCRIPTION_PERIOD = timedelta(days=30)


@dataclass(frozen=True, slots=True)
class Community:
    id: str
    name: str
    slug: str
    creator_id: str
    fees_of_join: float = 0.0
    members: frozenset[str] = frozenset()

    def with_member(self, user_id: str) -> Community:
        if user_id in self.members or user_id == self.creator_id:
            return self
        return replace(self, members=self.members | {user_id})

    @property
    def members_count(self) -> int:
        return len(self.members)


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    community_id: str
    creator_id: str
    title: str
    price: float = 0.0
    description: str | None = None
    thumbnail: str | None = None
    is_published: bool = True
    enrollments: frozenset[str] = frozenset()
    meta: dict[str, Any] = field(default_factory=dict)

    def with_enrollment(self, user_id: str) -> Course:
        if user_id in self.enrollments:
            return self
        return replace(self, enrollments=self.enrollments | {user_id})


@dataclass(frozen=True, slots=True)
class EventTicket:
    type: str
    price: float
    quantity: int | None = None


@dataclass(frozen=True, slots=True)
class Event:
    id: str
    community_id: str
    creator_id: str
    title: str
    tickets: tuple[EventTicket, ...] = ()
    description: str | None = None
    thumbnail: str | None = None
    starts_at: datetime | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def ticket(self, ticket_type: str | None) -> EventTicket | None:
        for ticket in self.tickets:
            if ticket.type == ticket_type:
                return ticket
        return None


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    community_id: str
    creator_id: str
    title: str
    price: float = 0.0
    description: str | None = None
    thumbnail: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Session:
    """A bookable one-to-one or group session."""

    id: str
    community_id: str
    creator_id: str
    title: str
    price: float = 0.0
    description: str | None = None
    thumbnail: str | None = None
    duration_minutes: int | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Post:
    id: str
    community_id: str
    author_id: str
    title: str
    description: str | None = None
    thumbnail: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


class PlanTier(StrEnum):
    STARTER = "starter"
    GROWTH = "growth"
    PRO = "pro"
    ENTERPRISE = "enterprise"


@dataclass(frozen=True, slots=True)
class Plan:
    tier: PlanTier
    name: str
    price_dt: float
    transaction_fee_percent: float
    transaction_fixed_fee_dt: float
    trial_days: int = 7
    is_active: bool = True


DEFAULT_PLANS: tuple[Plan, ...] = (
    Plan(PlanTier.STARTER, "Starter", 29.0, 9.0, 0.5),
    Plan(PlanTier.GROWTH, "Growth", 69.0, 3.9, 0.5),
    Plan(PlanTier.PRO, "Pro", 99.0, 2.8, 0.5),
)


class SubscriptionStatus(StrEnum):
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class Subscription:
    user_id: str
    plan_tier: PlanTier
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime

    @staticmethod
    def activate(*, user_id: str, tier: PlanTier, now: datetime | None = None) -> Subscription:
        start = now or datetime.now(UTC)
        return Subscription(
            user_id=user_id,
            plan_tier=tier,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=start,
            current_period_end=start + SUBSCRIPTION_PERIOD,
        )

    @property
    def is_active(self) -> bool:
        return self.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)
