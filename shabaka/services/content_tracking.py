"""Generic per-user, per-content progress and interaction log.

Shared by every content type.  A progress row is created lazily by the
first tracked action; most actions also append a TrackingAction.  Each
write drops the user's cached progression overviews.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from shabaka.core.errors import BadRequestError
from shabaka.models.content import ActionType, ContentType
from shabaka.models.progress import ContentProgress, TrackingAction
from shabaka.repos.progress_repo import ContentProgressRepo, TrackingActionRepo
from shabaka.services.cache import CacheService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True, slots=True)
class ProgressPage:
    items: list[ContentProgress]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@dataclass(frozen=True, slots=True)
class ContentStats:
    total_views: int = 0
    total_likes: int = 0
    total_shares: int = 0
    total_downloads: int = 0
    total_completed: int = 0
    average_rating: float = 0.0
    total_watch_time: int = 0


def progression_cache_pattern(user_id: str) -> str:
    return f"progression:{user_id}:*"


class ContentTrackingService:
    def __init__(
        self,
        progress: ContentProgressRepo,
        actions: TrackingActionRepo,
        cache: CacheService,
    ) -> None:
        self._progress = progress
        self._actions = actions
        self._cache = cache

    async def get_or_create(
        self, user_id: str, content_type: ContentType, content_id: str
    ) -> ContentProgress:
        progress = await self._progress.get(user_id, content_type, content_id)
        if progress is None:
            progress = ContentProgress.new(
                user_id=user_id, content_id=content_id, content_type=content_type
            )
            await self._progress.save(progress)
        return progress

    async def _apply(
        self,
        user_id: str,
        content_type: ContentType,
        content_id: str,
        mutate: Callable[[ContentProgress, datetime], ContentProgress],
        action: ActionType | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ContentProgress:
        now = datetime.now(UTC)
        progress = mutate(await self.get_or_create(user_id, content_type, content_id), now)
        await self._progress.save(progress)
        if action is not None:
            await self._actions.append(
                TrackingAction.new(
                    user_id=user_id,
                    content_id=content_id,
                    content_type=content_type,
                    action_type=action,
                    metadata=metadata,
                    timestamp=now,
                )
            )
        await self._cache.delete_pattern(progression_cache_pattern(user_id))
        return progress

    async def track_view(self, user_id: str, content_type: ContentType, content_id: str) -> ContentProgress:
        return await self._apply(
            user_id, content_type, content_id, ContentProgress.record_view, ActionType.VIEW
        )

    async def track_start(self, user_id: str, content_type: ContentType, content_id: str) -> ContentProgress:
        return await self._apply(
            user_id, content_type, content_id, ContentProgress.record_start, ActionType.START
        )

    async def track_complete(
        self, user_id: str, content_type: ContentType, content_id: str
    ) -> ContentProgress:
        progress = await self._apply(
            user_id, content_type, content_id, ContentProgress.record_complete, ActionType.COMPLETE
        )
        logger.info("User %s completed %s %s", user_id, content_type, content_id)
        return progress

    async def track_like(self, user_id: str, content_type: ContentType, content_id: str) -> ContentProgress:
        return await self._apply(
            user_id, content_type, content_id, ContentProgress.record_like, ActionType.LIKE
        )

    async def track_share(self, user_id: str, content_type: ContentType, content_id: str) -> ContentProgress:
        return await self._apply(
            user_id, content_type, content_id, ContentProgress.record_share, ActionType.SHARE
        )

    async def track_download(
        self, user_id: str, content_type: ContentType, content_id: str
    ) -> ContentProgress:
        return await self._apply(
            user_id, content_type, content_id, ContentProgress.record_download, ActionType.DOWNLOAD
        )

    async def update_watch_time(
        self, user_id: str, content_type: ContentType, content_id: str, additional_seconds: int
    ) -> ContentProgress:
        # Watch time is a heartbeat, not an interaction: no log entry.
        return await self._apply(
            user_id,
            content_type,
            content_id,
            lambda p, now: p.add_watch_time(additional_seconds, now),
        )

    async def add_bookmark(
        self, user_id: str, content_type: ContentType, content_id: str, bookmark_id: str
    ) -> ContentProgress:
        return await self._apply(
            user_id,
            content_type,
            content_id,
            lambda p, now: p.add_bookmark(bookmark_id, now),
            ActionType.BOOKMARK,
            {"bookmarkId": bookmark_id},
        )

    async def remove_bookmark(
        self, user_id: str, content_type: ContentType, content_id: str, bookmark_id: str
    ) -> ContentProgress:
        return await self._apply(
            user_id,
            content_type,
            content_id,
            lambda p, now: p.remove_bookmark(bookmark_id, now),
        )

    async def add_rating(
        self,
        user_id: str,
        content_type: ContentType,
        content_id: str,
        rating: int,
        review: str | None = None,
    ) -> ContentProgress:
        if not 1 <= rating <= 5:
            raise BadRequestError("Rating must be between 1 and 5")
        return await self._apply(
            user_id,
            content_type,
            content_id,
            lambda p, now: p.rate(rating, review or None, now),
            ActionType.RATE,
            {"rating": rating, "review": review},
        )

    # --- Reads ---

    async def get_progress(
        self, user_id: str, content_type: ContentType, content_id: str
    ) -> ContentProgress | None:
        return await self._progress.get(user_id, content_type, content_id)

    async def get_user_progress_by_type(
        self,
        user_id: str,
        content_type: ContentType,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ProgressPage:
        page = max(1, page)
        limit = max(1, limit)
        items, total = await self._progress.list_by_type(
            user_id, content_type, skip=(page - 1) * limit, limit=limit
        )
        return ProgressPage(items, total, page, limit)

    async def get_content_stats(self, content_type: ContentType, content_id: str) -> ContentStats:
        rows = await self._progress.list_for_content(content_type, content_id)
        if not rows:
            return ContentStats()
        ratings = [r.rating for r in rows if r.rating is not None]
        return ContentStats(
            total_views=sum(r.view_count for r in rows),
            total_likes=sum(r.like_count for r in rows),
            total_shares=sum(r.share_count for r in rows),
            total_downloads=sum(r.download_count for r in rows),
            total_completed=sum(1 for r in rows if r.is_completed),
            average_rating=round(sum(ratings) / len(ratings), 2) if ratings else 0.0,
            total_watch_time=sum(r.watch_time for r in rows),
        )

    async def get_user_recent_actions(
        self, user_id: str, content_type: ContentType | None = None, limit: int = 20
    ) -> list[TrackingAction]:
        return await self._actions.recent(user_id, content_type, max(1, min(limit, 100)))
