from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from shabaka.api.dependencies import CurrentUser
from shabaka.container import get_tracking_service
from shabaka.core.errors import NotFoundError
from shabaka.models.content import ContentType
from shabaka.models.progress import ContentProgress, TrackingAction
from shabaka.services.content_tracking import ContentTrackingService

router = APIRouter(prefix="/tracking", tags=["tracking"])

Tracking = Annotated[ContentTrackingService, Depends(get_tracking_service)]

TrackedAction = Literal["view", "start", "complete", "like", "share", "download"]


class WatchTimeIn(BaseModel):
    additionalTime: int = Field(ge=0)


class BookmarkIn(BaseModel):
    bookmarkId: str = Field(min_length=1)


class RatingIn(BaseModel):
    rating: int
    review: str | None = None


class ProgressOut(BaseModel):
    contentId: str
    contentType: str
    isCompleted: bool
    watchTime: int
    rating: int | None
    review: str | None
    completedAt: datetime | None
    lastAccessedAt: datetime | None
    bookmarks: list[str]
    viewCount: int
    likeCount: int
    shareCount: int
    downloadCount: int
    metadata: dict[str, Any]
    updatedAt: datetime


class ProgressPageOut(BaseModel):
    items: list[ProgressOut]
    total: int
    page: int
    limit: int
    totalPages: int


class ActionOut(BaseModel):
    id: str
    contentId: str
    contentType: str
    actionType: str
    metadata: dict[str, Any]
    timestamp: datetime


class StatsOut(BaseModel):
    totalViews: int
    totalLikes: int
    totalShares: int
    totalDownloads: int
    totalCompleted: int
    averageRating: float
    totalWatchTime: int


def _progress_out(p: ContentProgress) -> ProgressOut:
    return ProgressOut(
        contentId=p.content_id,
        contentType=p.content_type.value,
        isCompleted=p.is_completed,
        watchTime=p.watch_time,
        rating=p.rating,
        review=p.review,
        completedAt=p.completed_at,
        lastAccessedAt=p.last_accessed_at,
        bookmarks=list(p.bookmarks),
        viewCount=p.view_count,
        likeCount=p.like_count,
        shareCount=p.share_count,
        downloadCount=p.download_count,
        metadata=p.metadata,
        updatedAt=p.updated_at,
    )


def _action_out(a: TrackingAction) -> ActionOut:
    return ActionOut(
        id=a.id,
        contentId=a.content_id,
        contentType=a.content_type.value,
        actionType=a.action_type.value,
        metadata=a.metadata,
        timestamp=a.timestamp,
    )


@router.get("/recent", response_model=list[ActionOut])
async def recent_actions(
    principal: CurrentUser,
    tracking: Tracking,
    content_type: Annotated[ContentType | None, Query(alias="contentType")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[ActionOut]:
    actions = await tracking.get_user_recent_actions(principal.user_id, content_type, limit)
    return [_action_out(a) for a in actions]


@router.get("/{content_type}", response_model=ProgressPageOut)
async def progress_by_type(
    content_type: ContentType,
    principal: CurrentUser,
    tracking: Tracking,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> ProgressPageOut:
    result = await tracking.get_user_progress_by_type(principal.user_id, content_type, page, limit)
    return ProgressPageOut(
        items=[_progress_out(p) for p in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        totalPages=result.total_pages,
    )


@router.get("/{content_type}/{content_id}", response_model=ProgressOut)
async def get_progress(
    content_type: ContentType, content_id: str, principal: CurrentUser, tracking: Tracking
) -> ProgressOut:
    progress = await tracking.get_progress(principal.user_id, content_type, content_id)
    if progress is None:
        raise NotFoundError("No progress recorded for this content")
    return _progress_out(progress)


@router.get("/{content_type}/{content_id}/stats", response_model=StatsOut)
async def content_stats(
    content_type: ContentType, content_id: str, principal: CurrentUser, tracking: Tracking
) -> StatsOut:
    stats = await tracking.get_content_stats(content_type, content_id)
    return StatsOut(
        totalViews=stats.total_views,
        totalLikes=stats.total_likes,
        totalShares=stats.total_shares,
        totalDownloads=stats.total_downloads,
        totalCompleted=stats.total_completed,
        averageRating=stats.average_rating,
        totalWatchTime=stats.total_watch_time,
    )


@router.put("/{content_type}/{content_id}/watch-time", response_model=ProgressOut)
async def watch_time(
    content_type: ContentType,
    content_id: str,
    payload: WatchTimeIn,
    principal: CurrentUser,
    tracking: Tracking,
) -> ProgressOut:
    progress = await tracking.update_watch_time(
        principal.user_id, content_type, content_id, payload.additionalTime
    )
    return _progress_out(progress)


@router.post("/{content_type}/{content_id}/bookmarks", response_model=ProgressOut)
async def add_bookmark(
    content_type: ContentType,
    content_id: str,
    payload: BookmarkIn,
    principal: CurrentUser,
    tracking: Tracking,
) -> ProgressOut:
    progress = await tracking.add_bookmark(
        principal.user_id, content_type, content_id, payload.bookmarkId
    )
    return _progress_out(progress)


@router.delete("/{content_type}/{content_id}/bookmarks/{bookmark_id}", response_model=ProgressOut)
async def remove_bookmark(
    content_type: ContentType,
    content_id: str,
    bookmark_id: str,
    principal: CurrentUser,
    tracking: Tracking,
) -> ProgressOut:
    progress = await tracking.remove_bookmark(
        principal.user_id, content_type, content_id, bookmark_id
    )
    return _progress_out(progress)


@router.post("/{content_type}/{content_id}/rating", response_model=ProgressOut)
async def rate(
    content_type: ContentType,
    content_id: str,
    payload: RatingIn,
    principal: CurrentUser,
    tracking: Tracking,
) -> ProgressOut:
    progress = await tracking.add_rating(
        principal.user_id, content_type, content_id, payload.rating, payload.review
    )
    return _progress_out(progress)


# Registered last so the literal sub-paths above win the match
@router.post("/{content_type}/{content_id}/{action}", response_model=ProgressOut)
async def track(
    content_type: ContentType,
    content_id: str,
    action: TrackedAction,
    principal: CurrentUser,
    tracking: Tracking,
) -> ProgressOut:
    handler = getattr(tracking, f"track_{action}")
    return _progress_out(await handler(principal.user_id, content_type, content_id))
