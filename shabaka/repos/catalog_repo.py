"""Read access to communities, content items, plans and subscriptions.

The community/course/event/product/session CRUD modules own these
records.  Payments and progression read them.  Grant-access writes go
through the narrow ``add_member``, ``add_enrollment`` and
``save_participant`` calls, which touch one user's row and never
rewrite the parent record, so two concurrent grants cannot drop each
other's writes.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import replace
from typing import Protocol, TypeAlias

from shabaka.models.catalog import (
    DEFAULT_PLANS,
    Community,
    Course,
    Event,
    Plan,
    PlanTier,
    Post,
    Product,
    Session,
    Subscription,
)
from shabaka.models.challenge import Challenge, Participant
from shabaka.models.content import ContentType
from shabaka.models.resource import Resource

ContentItem: TypeAlias = Course | Challenge | Event | Product | Session | Post | Resource

_ITEM_TYPES: dict[type, ContentType] = {
    Course: ContentType.COURSE,
    Challenge: ContentType.CHALLENGE,
    Event: ContentType.EVENT,
    Product: ContentType.PRODUCT,
    Session: ContentType.SESSION,
    Post: ContentType.POST,
    Resource: ContentType.RESOURCE,
}


def content_type_of(item: ContentItem) -> ContentType:
    return _ITEM_TYPES[type(item)]


def parse_plan_tier(tier: str) -> PlanTier | None:
    try:
        return PlanTier(tier.lower())
    except ValueError:
        return None


class CatalogRepo(Protocol):
    async def get_community(self, community_id: str) -> Community | None: ...
    async def get_community_by_slug(self, slug: str) -> Community | None: ...
    async def get_communities(self, ids: Collection[str]) -> dict[str, Community]: ...
    async def save_community(self, community: Community) -> None: ...
    async def add_member(self, community_id: str, user_id: str) -> None: ...

    async def get_item(self, content_type: ContentType, item_id: str) -> ContentItem | None: ...
    async def get_items(
        self, content_type: ContentType, ids: Collection[str]
    ) -> dict[str, ContentItem]: ...
    async def ids_in_community(
        self, content_type: ContentType, community_id: str
    ) -> list[str]: ...
    async def save_item(self, item: ContentItem) -> None: ...
    async def add_enrollment(self, course_id: str, user_id: str) -> None: ...
    async def save_participant(self, challenge_id: str, participant: Participant) -> None: ...

    async def get_plan(self, tier: str) -> Plan | None: ...
    async def get_subscription(self, user_id: str) -> Subscription | None: ...
    async def save_subscription(self, subscription: Subscription) -> None: ...


class InMemoryCatalogRepo:
    def __init__(self, plans: Collection[Plan] = DEFAULT_PLANS) -> None:
        self._communities: dict[str, Community] = {}
        self._items: dict[ContentType, dict[str, ContentItem]] = {
            t: {} for t in _ITEM_TYPES.values()
        }
        self._plans: dict[PlanTier, Plan] = {p.tier: p for p in plans}
        self._subscriptions: dict[str, Subscription] = {}

    # --- Communities ---

    async def get_community(self, community_id: str) -> Community | None:
        return self._communities.get(community_id)

    async def get_community_by_slug(self, slug: str) -> Community | None:
        return next((c for c in self._communities.values() if c.slug == slug), None)

    async def get_communities(self, ids: Collection[str]) -> dict[str, Community]:
        return {i: self._communities[i] for i in ids if i in self._communities}

    async def save_community(self, community: Community) -> None:
        self._communities[community.id] = community

    async def add_member(self, community_id: str, user_id: str) -> None:
        community = self._communities.get(community_id)
        if community is not None:
            self._communities[community_id] = community.with_member(user_id)

    # --- Content items ---

    async def get_item(self, content_type: ContentType, item_id: str) -> ContentItem | None:
        return self._items.get(content_type, {}).get(item_id)

    async def get_items(
        self, content_type: ContentType, ids: Collection[str]
    ) -> dict[str, ContentItem]:
        bucket = self._items.get(content_type, {})
        return {i: bucket[i] for i in ids if i in bucket}

    async def ids_in_community(
        self, content_type: ContentType, community_id: str
    ) -> list[str]:
        bucket = self._items.get(content_type, {})
        return [i for i, item in bucket.items() if item.community_id == community_id]

    async def save_item(self, item: ContentItem) -> None:
        self._items[content_type_of(item)][item.id] = item

    async def add_enrollment(self, course_id: str, user_id: str) -> None:
        course = self._items[ContentType.COURSE].get(course_id)
        if isinstance(course, Course):
            self._items[ContentType.COURSE][course_id] = course.with_enrollment(user_id)

    async def save_participant(self, challenge_id: str, participant: Participant) -> None:
        challenge = self._items[ContentType.CHALLENGE].get(challenge_id)
        if not isinstance(challenge, Challenge):
            return
        if challenge.participant(participant.user_id) is None:
            participants = (*challenge.participants, participant)
        else:
            participants = tuple(
                participant if p.user_id == participant.user_id else p
                for p in challenge.participants
            )
        self._items[ContentType.CHALLENGE][challenge_id] = replace(
            challenge, participants=participants
        )

    # --- Plans and subscriptions ---

    async def get_plan(self, tier: str) -> Plan | None:
        parsed = parse_plan_tier(tier)
        return self._plans.get(parsed) if parsed is not None else None

    async def get_subscription(self, user_id: str) -> Subscription | None:
        return self._subscriptions.get(user_id)

    async def save_subscription(self, subscription: Subscription) -> None:
        self._subscriptions[subscription.user_id] = subscription
