from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import Protocol

from shabaka.models.content import ContentType
from shabaka.models.progress import ContentProgress, TrackingAction

# content type -> the ids to include; None means every id of that type
ContentFilters = Mapping[ContentType, Collection[str] | None]


class ContentProgressRepo(Protocol):
    async def get(
        self, user_id: str, content_type: ContentType, content_id: str
    ) -> ContentProgress | None: ...
    async def save(self, progress: ContentProgress) -> None: ...
    async def list_by_type(
        self, user_id: str, content_type: ContentType, *, skip: int, limit: int
    ) -> tuple[list[ContentProgress], int]: ...
    async def list_filtered(
        self, user_id: str, filters: ContentFilters, *, skip: int, limit: int
    ) -> tuple[list[ContentProgress], int]: ...
    async def list_for_content(
        self, content_type: ContentType, content_id: str
    ) -> list[ContentProgress]: ...


class TrackingActionRepo(Protocol):
    async def append(self, action: TrackingAction) -> None: ...
    async def recent(
        self, user_id: str, content_type: ContentType | None = None, limit: int = 20
    ) -> list[TrackingAction]: ...


def _matches(progress: ContentProgress, filters: ContentFilters) -> bool:
    if progress.content_type not in filters:
        return False
    ids = filters[progress.content_type]
    return ids is None or progress.content_id in ids


class InMemoryContentProgressRepo:
    def __init__(self) -> None:
        self._rows: dict[tuple[str, str, ContentType], ContentProgress] = {}

    async def get(
        self, user_id: str, content_type: ContentType, content_id: str
    ) -> ContentProgress | None:
        return self._rows.get((user_id, content_id, content_type))

    async def save(self, progress: ContentProgress) -> None:
        self._rows[progress.key] = progress

    async def list_by_type(
        self, user_id: str, content_type: ContentType, *, skip: int, limit: int
    ) -> tuple[list[ContentProgress], int]:
        rows = [
            p
            for p in self._rows.values()
            if p.user_id == user_id and p.content_type == content_type
        ]
        rows.sort(key=lambda p: p.last_accessed_at or p.created_at, reverse=True)
        return rows[skip : skip + limit], len(rows)

    async def list_filtered(
        self, user_id: str, filters: ContentFilters, *, skip: int, limit: int
    ) -> tuple[list[ContentProgress], int]:
        if not filters:
            return [], 0
        rows = [
            p for p in self._rows.values() if p.user_id == user_id and _matches(p, filters)
        ]
        rows.sort(key=lambda p: p.updated_at, reverse=True)
        return rows[skip : skip + limit], len(rows)

    async def list_for_content(
        self, content_type: ContentType, content_id: str
    ) -> list[ContentProgress]:
        return [
            p
            for p in self._rows.values()
            if p.content_type == content_type and p.content_id == content_id
        ]


class InMemoryTrackingActionRepo:
    def __init__(self) -> None:
        self._actions: list[TrackingAction] = []

    async def append(self, action: TrackingAction) -> None:
        self._actions.append(action)

    async def recent(
        self, user_id: str, content_type: ContentType | None = None, limit: int = 20
    ) -> list[TrackingAction]:
        rows = [
            a
            for a in self._actions
            if a.user_id == user_id
            and (content_type is None or a.content_type == content_type)
        ]
        rows.sort(key=lambda a: a.timestamp, reverse=True)
        return rows[:limit]
