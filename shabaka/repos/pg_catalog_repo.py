"""PostgreSQL implementation of CatalogRepo.

Items are stored as JSONB documents keyed by (content_type, id).
Community members, course enrollments and challenge participants live
in side tables keyed by (parent, user); grants insert with ON CONFLICT
DO NOTHING, so concurrent grants only ever add rows.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import replace
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shabaka.db.tables import (
    CatalogItemRow,
    ChallengeParticipantRow,
    CommunityMemberRow,
    CommunityRow,
    CourseEnrollmentRow,
    PlanRow,
    SubscriptionRow,
)
from shabaka.models.catalog import (
    Community,
    Course,
    Plan,
    PlanTier,
    Subscription,
    SubscriptionStatus,
)
from shabaka.models.challenge import Challenge, Participant
from shabaka.models.content import ContentType
from shabaka.repos.catalog_documents import item_from_document, item_to_document
from shabaka.repos.catalog_repo import ContentItem, content_type_of, parse_plan_tier


class PgCatalogRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    # --- Communities ---

    async def get_community(self, community_id: str) -> Community | None:
        found = await self.get_communities([community_id])
        return found.get(community_id)

    async def get_community_by_slug(self, slug: str) -> Community | None:
        stmt = select(CommunityRow.id).where(CommunityRow.slug == slug).limit(1)
        async with self._sessions() as session:
            community_id = (await session.execute(stmt)).scalar_one_or_none()
        if community_id is None:
            return None
        return await self.get_community(community_id)

    async def get_communities(self, ids: Collection[str]) -> dict[str, Community]:
        if not ids:
            return {}
        async with self._sessions() as session:
            rows = (
                await session.execute(select(CommunityRow).where(CommunityRow.id.in_(list(ids))))
            ).scalars().all()
            member_rows = (
                await session.execute(
                    select(CommunityMemberRow).where(
                        CommunityMemberRow.community_id.in_(list(ids))
                    )
                )
            ).scalars().all()
        members: dict[str, set[str]] = {}
        for m in member_rows:
            members.setdefault(m.community_id, set()).add(m.user_id)
        return {r.id: _row_to_community(r, members.get(r.id, ())) for r in rows}

    async def save_community(self, community: Community) -> None:
        """Upsert the community; members are only ever added."""
        values = {
            "id": community.id,
            "name": community.name,
            "slug": community.slug,
            "creator_id": community.creator_id,
            "fees_of_join": community.fees_of_join,
        }
        stmt = insert(CommunityRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"], set_={k: v for k, v in values.items() if k != "id"}
        )
        async with self._sessions.begin() as session:
            await session.execute(stmt)
            if community.members:
                await session.execute(
                    insert(CommunityMemberRow)
                    .values(
                        [{"community_id": community.id, "user_id": u} for u in community.members]
                    )
                    .on_conflict_do_nothing()
                )

    async def add_member(self, community_id: str, user_id: str) -> None:
        async with self._sessions.begin() as session:
            row = await session.get(CommunityRow, community_id)
            if row is None or row.creator_id == user_id:
                return
            await session.execute(
                insert(CommunityMemberRow)
                .values(community_id=community_id, user_id=user_id)
                .on_conflict_do_nothing()
            )

    # --- Content items ---

    async def get_item(self, content_type: ContentType, item_id: str) -> ContentItem | None:
        found = await self.get_items(content_type, [item_id])
        return found.get(item_id)

    async def get_items(
        self, content_type: ContentType, ids: Collection[str]
    ) -> dict[str, ContentItem]:
        if not ids:
            return {}
        stmt = select(CatalogItemRow).where(
            CatalogItemRow.content_type == content_type.value,
            CatalogItemRow.id.in_(list(ids)),
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            items = {r.id: item_from_document(content_type, r.document) for r in rows}
            if not items:
                return {}
            match content_type:
                case ContentType.COURSE:
                    return await _with_enrollments(session, items)
                case ContentType.CHALLENGE:
                    return await _with_participants(session, items)
        return items

    async def ids_in_community(
        self, content_type: ContentType, community_id: str
    ) -> list[str]:
        stmt = select(CatalogItemRow.id).where(
            CatalogItemRow.content_type == content_type.value,
            CatalogItemRow.community_id == community_id,
        )
        async with self._sessions() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def save_item(self, item: ContentItem) -> None:
        """Upsert the document; enrollments and participants are only ever added."""
        values = {
            "content_type": content_type_of(item).value,
            "id": item.id,
            "community_id": item.community_id,
            "document": item_to_document(item),
            "updated_at": datetime.now(UTC),
        }
        stmt = insert(CatalogItemRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["content_type", "id"],
            set_={k: v for k, v in values.items() if k not in ("content_type", "id")},
        )
        async with self._sessions.begin() as session:
            await session.execute(stmt)
            if isinstance(item, Course) and item.enrollments:
                await session.execute(
                    insert(CourseEnrollmentRow)
                    .values([{"course_id": item.id, "user_id": u} for u in item.enrollments])
                    .on_conflict_do_nothing()
                )
            if isinstance(item, Challenge) and item.participants:
                await session.execute(
                    insert(ChallengeParticipantRow)
                    .values([_participant_values(item.id, p) for p in item.participants])
                    .on_conflict_do_nothing()
                )

    async def add_enrollment(self, course_id: str, user_id: str) -> None:
        async with self._sessions.begin() as session:
            if await session.get(CatalogItemRow, (ContentType.COURSE.value, course_id)) is None:
                return
            await session.execute(
                insert(CourseEnrollmentRow)
                .values(course_id=course_id, user_id=user_id)
                .on_conflict_do_nothing()
            )

    async def save_participant(self, challenge_id: str, participant: Participant) -> None:
        values = _participant_values(challenge_id, participant)
        stmt = insert(ChallengeParticipantRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["challenge_id", "user_id"],
            set_={
                k: v
                for k, v in values.items()
                if k not in ("challenge_id", "user_id", "id", "joined_at")
            },
        )
        async with self._sessions.begin() as session:
            key = (ContentType.CHALLENGE.value, challenge_id)
            if await session.get(CatalogItemRow, key) is None:
                return
            await session.execute(stmt)

    # --- Plans and subscriptions ---

    async def get_plan(self, tier: str) -> Plan | None:
        parsed = parse_plan_tier(tier)
        if parsed is None:
            return None
        async with self._sessions() as session:
            row = await session.get(PlanRow, parsed.value)
            return _row_to_plan(row) if row is not None else None

    async def get_subscription(self, user_id: str) -> Subscription | None:
        async with self._sessions() as session:
            row = await session.get(SubscriptionRow, user_id)
            return _row_to_subscription(row) if row is not None else None

    async def save_subscription(self, subscription: Subscription) -> None:
        values = {
            "user_id": subscription.user_id,
            "plan_tier": subscription.plan_tier.value,
            "status": subscription.status.value,
            "current_period_start": subscription.current_period_start,
            "current_period_end": subscription.current_period_end,
        }
        stmt = insert(SubscriptionRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={k: v for k, v in values.items() if k != "user_id"},
        )
        async with self._sessions.begin() as session:
            await session.execute(stmt)


async def _with_enrollments(
    session: AsyncSession, items: dict[str, ContentItem]
) -> dict[str, ContentItem]:
    stmt = select(CourseEnrollmentRow).where(CourseEnrollmentRow.course_id.in_(list(items)))
    enrolled: dict[str, set[str]] = {}
    for row in (await session.execute(stmt)).scalars().all():
        enrolled.setdefault(row.course_id, set()).add(row.user_id)
    return {
        i: replace(item, enrollments=frozenset(enrolled.get(i, ())))  # type: ignore[type-var]
        for i, item in items.items()
    }


async def _with_participants(
    session: AsyncSession, items: dict[str, ContentItem]
) -> dict[str, ContentItem]:
    stmt = (
        select(ChallengeParticipantRow)
        .where(ChallengeParticipantRow.challenge_id.in_(list(items)))
        .order_by(ChallengeParticipantRow.joined_at)
    )
    joined: dict[str, list[Participant]] = {}
    for row in (await session.execute(stmt)).scalars().all():
        joined.setdefault(row.challenge_id, []).append(_row_to_participant(row))
    return {
        i: replace(item, participants=tuple(joined.get(i, ())))  # type: ignore[type-var]
        for i, item in items.items()
    }


def _participant_values(challenge_id: str, participant: Participant) -> dict:
    return {
        "challenge_id": challenge_id,
        "user_id": participant.user_id,
        "id": participant.id,
        "joined_at": participant.joined_at,
        "is_active": participant.is_active,
        "progress": participant.progress,
        "total_points": participant.total_points,
        "completed_tasks": list(participant.completed_tasks),
        "last_activity_at": participant.last_activity_at,
    }


def _row_to_participant(row: ChallengeParticipantRow) -> Participant:
    return Participant(
        id=row.id,
        user_id=row.user_id,
        joined_at=row.joined_at,
        is_active=row.is_active,
        progress=row.progress,
        total_points=row.total_points,
        completed_tasks=tuple(row.completed_tasks or ()),
        last_activity_at=row.last_activity_at,
    )


def _row_to_community(row: CommunityRow, members: Collection[str]) -> Community:
    return Community(
        id=row.id,
        name=row.name,
        slug=row.slug,
        creator_id=row.creator_id,
        fees_of_join=row.fees_of_join,
        members=frozenset(members),
    )


def _row_to_plan(row: PlanRow) -> Plan:
    return Plan(
        tier=PlanTier(row.tier),
        name=row.name,
        price_dt=row.price_dt,
        transaction_fee_percent=row.transaction_fee_percent,
        transaction_fixed_fee_dt=row.transaction_fixed_fee_dt,
        trial_days=row.trial_days,
        is_active=row.is_active,
    )


def _row_to_subscription(row: SubscriptionRow) -> Subscription:
    return Subscription(
        user_id=row.user_id,
        plan_tier=PlanTier(row.plan_tier),
        status=SubscriptionStatus(row.status),
        current_period_start=row.current_period_start,
        current_period_end=row.current_period_end,
    )
