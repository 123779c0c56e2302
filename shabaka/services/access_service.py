"""Grant-access side effects for paid orders.

Called once per order, by whichever verify path wins the pending->paid
swap.  Every grant is set-like, so a repeated call leaves the same
state behind.  Content removed between checkout and payment is skipped
with a warning: the money has moved, so the order stays paid.
"""

from __future__ import annotations

import logging

from shabaka.models.catalog import Course, Subscription
from shabaka.models.content import ContentType, PurchasableType
from shabaka.models.order import Order
from shabaka.repos.catalog_repo import CatalogRepo
from shabaka.services.challenge_service import ChallengeService

logger = logging.getLogger(__name__)


class AccessService:
    def __init__(self, catalog: CatalogRepo, challenges: ChallengeService) -> None:
        self._catalog = catalog
        self._challenges = challenges

    async def add_community_member(self, community_id: str, user_id: str) -> bool:
        if await self._catalog.get_community(community_id) is None:
            return False
        await self._catalog.add_member(community_id, user_id)
        return True

    async def enroll_in_course(self, course_id: str, user_id: str) -> bool:
        course = await self._catalog.get_item(ContentType.COURSE, course_id)
        if not isinstance(course, Course):
            return False
        await self._catalog.add_enrollment(course_id, user_id)
        return True

    async def upgrade_plan(self, user_id: str, tier: str) -> Subscription | None:
        plan = await self._catalog.get_plan(tier)
        if plan is None:
            return None
        subscription = Subscription.activate(user_id=user_id, tier=plan.tier)
        await self._catalog.save_subscription(subscription)
        return subscription

    async def grant(self, order: Order) -> bool:
        """Apply the order's access; False when there was nothing to grant."""
        extra = {"order_id": order.id, "user_id": order.buyer_id}
        match order.content_type:
            case PurchasableType.COMMUNITY:
                granted = await self.add_community_member(order.content_id, order.buyer_id)
            case PurchasableType.COURSE:
                granted = await self.enroll_in_course(order.content_id, order.buyer_id)
            case PurchasableType.CHALLENGE:
                granted = await self._challenges.grant_participation(
                    order.content_id, order.buyer_id
                )
            case PurchasableType.SUBSCRIPTION:
                granted = await self.upgrade_plan(order.buyer_id, order.content_id) is not None
            case PurchasableType.EVENT:
                # The ticket type is not stored on the Order, so the
                # registration cannot be created here.
                logger.warning(
                    "Event %s paid but registration is not automatic", order.content_id, extra=extra
                )
                return False
            case _:
                logger.info(
                    "No access grant for %s %s", order.content_type, order.content_id, extra=extra
                )
                return False

        if not granted:
            logger.warning(
                "Paid %s %s no longer exists, access not granted",
                order.content_type,
                order.content_id,
                extra=extra,
            )
            return False
        logger.info("Access granted for %s %s", order.content_type, order.content_id, extra=extra)
        return True
