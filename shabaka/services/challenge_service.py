from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime

from shabaka.core.errors import BadRequestError, ForbiddenError, NotFoundError
from shabaka.models.challenge import (
    Challenge,
    ChallengeTask,
    Participant,
    TaskAccess,
    check_task_access,
    next_task,
    set_task_completion,
)
from shabaka.models.content import ContentType
from shabaka.repos.catalog_repo import CatalogRepo

logger = logging.getLogger(__name__)


class ChallengeService:
    def __init__(self, catalog: CatalogRepo) -> None:
        self._catalog = catalog

    async def get(self, challenge_id: str) -> Challenge:
        challenge = await self._catalog.get_item(ContentType.CHALLENGE, challenge_id)
        if not isinstance(challenge, Challenge):
            raise NotFoundError("Challenge not found")
        return challenge

    async def _participant(self, challenge: Challenge, user_id: str) -> Participant:
        participant = challenge.participant(user_id)
        if participant is None:
            raise BadRequestError("You are not a participant of this challenge")
        return participant

    def _task(self, challenge: Challenge, task_id: str) -> ChallengeTask:
        task = challenge.task(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def join(
        self, challenge_id: str, user_id: str, *, now: datetime | None = None
    ) -> tuple[Challenge, Participant]:
        now = now or datetime.now(UTC)
        challenge = await self.get(challenge_id)
        if not challenge.is_active:
            raise BadRequestError("Challenge is not active")
        if challenge.has_ended(now):
            raise BadRequestError("Challenge has ended")
        if challenge.is_full:
            raise BadRequestError("Challenge is full")
        if challenge.is_participant(user_id):
            raise BadRequestError("Already participating in this challenge")

        participant = Participant.new(user_id=user_id, now=now)
        await self._catalog.save_participant(challenge_id, participant)
        logger.info("User %s joined challenge %s", user_id, challenge_id)
        return replace(challenge, participants=(*challenge.participants, participant)), participant

    async def grant_participation(self, challenge_id: str, user_id: str) -> bool:
        """Add a paying user; False when the challenge no longer exists.

        A second call for the same user changes nothing.
        """
        challenge = await self._catalog.get_item(ContentType.CHALLENGE, challenge_id)
        if not isinstance(challenge, Challenge):
            return False
        if not challenge.is_participant(user_id):
            await self._catalog.save_participant(
                challenge_id, Participant.new(user_id=user_id)
            )
        return True

    async def check_task_access(self, challenge_id: str, user_id: str, task_id: str) -> TaskAccess:
        challenge = await self.get(challenge_id)
        self._task(challenge, task_id)
        participant = await self._participant(challenge, user_id)
        return check_task_access(challenge, task_id, participant.completed_tasks)

    async def next_task(self, challenge_id: str, user_id: str) -> ChallengeTask | None:
        challenge = await self.get(challenge_id)
        participant = await self._participant(challenge, user_id)
        return next_task(challenge, participant.completed_tasks)

    async def update_task_progress(
        self, challenge_id: str, user_id: str, task_id: str, completed: bool
    ) -> Participant:
        challenge = await self.get(challenge_id)
        task = self._task(challenge, task_id)
        participant = await self._participant(challenge, user_id)

        if completed:
            access = check_task_access(challenge, task_id, participant.completed_tasks)
            if not access.allowed:
                raise ForbiddenError(
                    "Complete the previous task first",
                    details={"requiredTaskId": access.required_task_id},
                )

        updated = set_task_completion(challenge, participant, task, completed)
        await self._catalog.save_participant(challenge_id, updated)
        return updated

    async def unlock_task(self, challenge_id: str, task_id: str, actor_id: str) -> Challenge:
        challenge = await self.get(challenge_id)
        if challenge.creator_id != actor_id:
            raise ForbiddenError("Only the challenge creator can unlock tasks")
        self._task(challenge, task_id)
        updated = replace(challenge, unlocked_tasks=challenge.unlocked_tasks | {task_id})
        await self._catalog.save_item(updated)
        logger.info("Task %s unlocked on challenge %s", task_id, challenge_id)
        return updated
