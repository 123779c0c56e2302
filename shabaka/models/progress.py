from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from shabaka.models.content import ActionType, ContentType


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class TrackingAction:
    """Append-only log entry for one user interaction."""

    id: str
    user_id: str
    content_id: str
    content_type: ContentType
    action_type: ActionType
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)

    @staticmethod
    def new(
        *,
        user_id: str,
        content_id: str,
        content_type: ContentType,
        action_type: ActionType,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> TrackingAction:
        return TrackingAction(
            id=uuid4().hex,
            user_id=user_id,
            content_id=content_id,
            content_type=content_type,
            action_type=action_type,
            metadata=dict(metadata or {}),
            timestamp=timestamp or _now(),
        )


@dataclass(frozen=True, slots=True)
class ContentProgress:
    """Per-user, per-item engagement record.

    Mutators return a new record; counters only grow and completion
    never reverts.
    """

    user_id: str
    content_id: str
    content_type: ContentType
    is_completed: bool = False
    watch_time: int = 0
    rating: int | None = None
    review: str | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    bookmarks: tuple[str, ...] = ()
    view_count: int = 0
    like_count: int = 0
    share_count: int = 0
    download_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @staticmethod
    def new(*, user_id: str, content_id: str, content_type: ContentType) -> ContentProgress:
        return ContentProgress(
            user_id=user_id, content_id=content_id, content_type=content_type
        )

    @property
    def key(self) -> tuple[str, str, ContentType]:
        return (self.user_id, self.content_id, self.content_type)

    def _touch(self, now: datetime, **changes: Any) -> ContentProgress:
        return replace(self, last_accessed_at=now, updated_at=now, **changes)

    def record_view(self, now: datetime) -> ContentProgress:
        return self._touch(now, view_count=self.view_count + 1)

    def record_start(self, now: datetime) -> ContentProgress:
        return self._touch(now)

    def record_complete(self, now: datetime) -> ContentProgress:
        if self.is_completed:
            return self._touch(now)
        return self._touch(now, is_completed=True, completed_at=now)

    def record_like(self, now: datetime) -> ContentProgress:
        return self._touch(now, like_count=self.like_count + 1)

    def record_share(self, now: datetime) -> ContentProgress:
        return self._touch(now, share_count=self.share_count + 1)

    def record_download(self, now: datetime) -> ContentProgress:
        return self._touch(now, download_count=self.download_count + 1)

    def add_watch_time(self, seconds: int, now: datetime) -> ContentProgress:
        return self._touch(now, watch_time=self.watch_time + max(0, seconds))

    def add_bookmark(self, bookmark_id: str, now: datetime) -> ContentProgress:
        if bookmark_id in self.bookmarks:
            return self._touch(now)
        return self._touch(now, bookmarks=(*self.bookmarks, bookmark_id))

    def remove_bookmark(self, bookmark_id: str, now: datetime) -> ContentProgress:
        return self._touch(
            now, bookmarks=tuple(b for b in self.bookmarks if b != bookmark_id)
        )

    def rate(self, rating: int, review: str | None, now: datetime) -> ContentProgress:
        return self._touch(
            now, rating=rating, review=review if review is not None else self.review
        )

    def with_metadata(self, now: datetime, **values: Any) -> ContentProgress:
        return replace(self, metadata={**self.metadata, **values}, updated_at=now)
