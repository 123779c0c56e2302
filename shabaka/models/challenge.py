"""Challenge records and the sequential-progression rules.

Tasks are ordered by ``day``.  With ``sequential_progression`` on, a
participant may work on a task only once the task just before it is in
their ``completed_tasks``; the lowest-day task is always open.  A
creator can lift the gate for a single task via ``unlocked_tasks``.

Everything here is pure: functions take records and return new ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ChallengeTask:
    id: str
    day: int
    title: str
    points: int = 0
    description: str | None = None


@dataclass(frozen=True, slots=True)
class Participant:
    id: str
    user_id: str
    joined_at: datetime
    is_active: bool = True
    progress: int = 0
    total_points: int = 0
    completed_tasks: tuple[str, ...] = ()
    last_activity_at: datetime | None = None

    @staticmethod
    def new(*, user_id: str, now: datetime | None = None) -> Participant:
        joined = now or _now()
        return Participant(
            id=uuid4().hex, user_id=user_id, joined_at=joined, last_activity_at=joined
        )


@dataclass(frozen=True, slots=True)
class Challenge:
    id: str
    community_id: str
    creator_id: str
    title: str
    tasks: tuple[ChallengeTask, ...] = ()
    participants: tuple[Participant, ...] = ()
    participation_fee: float = 0.0
    is_active: bool = True
    ends_at: datetime | None = None
    max_participants: int | None = None
    sequential_progression: bool = False
    unlocked_tasks: frozenset[str] = frozenset()
    description: str | None = None
    thumbnail: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def ordered_tasks(self) -> tuple[ChallengeTask, ...]:
        return tuple(sorted(self.tasks, key=lambda t: t.day))

    def task(self, task_id: str) -> ChallengeTask | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def participant(self, user_id: str) -> Participant | None:
        return next((p for p in self.participants if p.user_id == user_id), None)

    def is_participant(self, user_id: str) -> bool:
        return self.participant(user_id) is not None

    def has_ended(self, now: datetime) -> bool:
        return self.ends_at is not None and now > self.ends_at

    @property
    def is_full(self) -> bool:
        return (
            self.max_participants is not None
            and len(self.participants) >= self.max_participants
        )


class AccessReason(StrEnum):
    SEQUENTIAL_DISABLED = "sequential_disabled"
    FIRST_TASK = "first_task"
    MANUALLY_UNLOCKED = "manually_unlocked"
    PREVIOUS_COMPLETED = "previous_completed"
    PREVIOUS_NOT_COMPLETED = "previous_not_completed"


@dataclass(frozen=True, slots=True)
class TaskAccess:
    allowed: bool
    reason: AccessReason
    required_task_id: str | None = None


def previous_task(challenge: Challenge, task_id: str) -> ChallengeTask | None:
    ordered = challenge.ordered_tasks
    for index, task in enumerate(ordered):
        if task.id == task_id:
            return ordered[index - 1] if index > 0 else None
    return None


def check_task_access(challenge: Challenge, task_id: str, completed: tuple[str, ...]) -> TaskAccess:
    if not challenge.sequential_progression:
        return TaskAccess(True, AccessReason.SEQUENTIAL_DISABLED)

    prev = previous_task(challenge, task_id)
    if prev is None:
        return TaskAccess(True, AccessReason.FIRST_TASK)

    if task_id in challenge.unlocked_tasks:
        return TaskAccess(True, AccessReason.MANUALLY_UNLOCKED)

    if prev.id in completed:
        return TaskAccess(True, AccessReason.PREVIOUS_COMPLETED)
    return TaskAccess(False, AccessReason.PREVIOUS_NOT_COMPLETED, required_task_id=prev.id)


def next_task(challenge: Challenge, completed: tuple[str, ...]) -> ChallengeTask | None:
    for task in challenge.ordered_tasks:
        if task.id not in completed:
            return task
    return None


def set_task_completion(
    challenge: Challenge,
    participant: Participant,
    task: ChallengeTask,
    completed: bool,
    now: datetime | None = None,
) -> Participant:
    """Record (un)completion of ``task`` and recompute progress and points."""
    done = participant.completed_tasks
    points = participant.total_points
    if completed and task.id not in done:
        done = (*done, task.id)
        points += task.points
    elif not completed and task.id in done:
        done = tuple(t for t in done if t != task.id)
        points = max(0, points - task.points)

    total = len(challenge.tasks)
    return replace(
        participant,
        completed_tasks=done,
        total_points=points,
        progress=round(len(done) / total * 100) if total else 0,
        last_activity_at=now or _now(),
    )
