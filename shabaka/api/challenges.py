from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from shabaka.api.dependencies import CurrentUser
from shabaka.container import get_challenge_service
from shabaka.models.challenge import ChallengeTask, Participant
from shabaka.services.challenge_service import ChallengeService

router = APIRouter(prefix="/challenges", tags=["challenges"])

Challenges = Annotated[ChallengeService, Depends(get_challenge_service)]


class TaskProgressIn(BaseModel):
    completed: bool = True


class TaskOut(BaseModel):
    id: str
    day: int
    title: str
    points: int
    description: str | None = None


class ParticipantOut(BaseModel):
    userId: str
    joinedAt: datetime
    progress: int
    totalPoints: int
    completedTasks: list[str]
    lastActivityAt: datetime | None = None


class AccessOut(BaseModel):
    allowed: bool
    reason: str
    requiredTaskId: str | None = None


class NextTaskOut(BaseModel):
    task: TaskOut | None


class JoinOut(BaseModel):
    challengeId: str
    participantsCount: int
    participant: ParticipantOut


def _task_out(task: ChallengeTask) -> TaskOut:
    return TaskOut(
        id=task.id, day=task.day, title=task.title, points=task.points, description=task.description
    )


def _participant_out(p: Participant) -> ParticipantOut:
    return ParticipantOut(
        userId=p.user_id,
        joinedAt=p.joined_at,
        progress=p.progress,
        totalPoints=p.total_points,
        completedTasks=list(p.completed_tasks),
        lastActivityAt=p.last_activity_at,
    )


@router.post("/{challenge_id}/join", response_model=JoinOut)
async def join(challenge_id: str, principal: CurrentUser, challenges: Challenges) -> JoinOut:
    challenge, participant = await challenges.join(challenge_id, principal.user_id)
    return JoinOut(
        challengeId=challenge.id,
        participantsCount=len(challenge.participants),
        participant=_participant_out(participant),
    )


@router.get("/{challenge_id}/tasks/{task_id}/access", response_model=AccessOut)
async def task_access(
    challenge_id: str, task_id: str, principal: CurrentUser, challenges: Challenges
) -> AccessOut:
    access = await challenges.check_task_access(challenge_id, principal.user_id, task_id)
    return AccessOut(
        allowed=access.allowed,
        reason=access.reason.value,
        requiredTaskId=access.required_task_id,
    )


@router.get("/{challenge_id}/next-task", response_model=NextTaskOut)
async def next_task(challenge_id: str, principal: CurrentUser, challenges: Challenges) -> NextTaskOut:
    task = await challenges.next_task(challenge_id, principal.user_id)
    return NextTaskOut(task=_task_out(task) if task is not None else None)


@router.patch("/{challenge_id}/tasks/{task_id}/progress", response_model=ParticipantOut)
async def task_progress(
    challenge_id: str,
    task_id: str,
    payload: TaskProgressIn,
    principal: CurrentUser,
    challenges: Challenges,
) -> ParticipantOut:
    participant = await challenges.update_task_progress(
        challenge_id, principal.user_id, task_id, payload.completed
    )
    return _participant_out(participant)


@router.post("/{challenge_id}/tasks/{task_id}/unlock", status_code=204)
async def unlock_task(
    challenge_id: str, task_id: str, principal: CurrentUser, challenges: Challenges
) -> None:
    await challenges.unlock_task(challenge_id, task_id, principal.user_id)
