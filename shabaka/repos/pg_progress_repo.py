"""PostgreSQL implementations of ContentProgressRepo and TrackingActionRepo."""

from __future__ import annotations

from sqlalchemy import and_, false, func, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shabaka.db.tables import ContentProgressRow, TrackingActionRow
from shabaka.models.content import ActionType, ContentType
from shabaka.models.progress import ContentProgress, TrackingAction
from shabaka.repos.progress_repo import ContentFilters

_IMMUTABLE_COLUMNS = frozenset({"user_id", "content_type", "content_id", "created_at"})


class PgContentProgressRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get(
        self, user_id: str, content_type: ContentType, content_id: str
    ) -> ContentProgress | None:
        async with self._sessions() as session:
            row = await session.get(
                ContentProgressRow, (user_id, content_type.value, content_id)
            )
            return _row_to_progress(row) if row is not None else None

    async def save(self, progress: ContentProgress) -> None:
        values = _progress_values(progress)
        stmt = insert(ContentProgressRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "content_type", "content_id"],
            set_={k: v for k, v in values.items() if k not in _IMMUTABLE_COLUMNS},
        )
        async with self._sessions.begin() as session:
            await session.execute(stmt)

    async def list_by_type(
        self, user_id: str, content_type: ContentType, *, skip: int, limit: int
    ) -> tuple[list[ContentProgress], int]:
        where = and_(
            ContentProgressRow.user_id == user_id,
            ContentProgressRow.content_type == content_type.value,
        )
        order = ContentProgressRow.last_accessed_at.desc().nulls_last()
        return await self._page(where, order, skip, limit)

    async def list_filtered(
        self, user_id: str, filters: ContentFilters, *, skip: int, limit: int
    ) -> tuple[list[ContentProgress], int]:
        if not filters:
            return [], 0
        clauses = []
        for content_type, ids in filters.items():
            clause = ContentProgressRow.content_type == content_type.value
            if ids is not None:
                clause = and_(clause, ContentProgressRow.content_id.in_(list(ids)))
            clauses.append(clause)
        where = and_(ContentProgressRow.user_id == user_id, or_(false(), *clauses))
        return await self._page(where, ContentProgressRow.updated_at.desc(), skip, limit)

    async def list_for_content(
        self, content_type: ContentType, content_id: str
    ) -> list[ContentProgress]:
        stmt = select(ContentProgressRow).where(
            ContentProgressRow.content_type == content_type.value,
            ContentProgressRow.content_id == content_id,
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_progress(r) for r in rows]

    async def _page(self, where, order, skip: int, limit: int):  # type: ignore[no-untyped-def]
        stmt = select(ContentProgressRow).where(where).order_by(order).offset(skip).limit(limit)
        count_stmt = select(func.count()).select_from(ContentProgressRow).where(where)
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            total = (await session.execute(count_stmt)).scalar_one()
            return [_row_to_progress(r) for r in rows], int(total)


class PgTrackingActionRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def append(self, action: TrackingAction) -> None:
        row = TrackingActionRow(
            id=action.id,
            user_id=action.user_id,
            content_type=action.content_type.value,
            content_id=action.content_id,
            action_type=action.action_type.value,
            meta=action.metadata,
            timestamp=action.timestamp,
        )
        async with self._sessions.begin() as session:
            session.add(row)

    async def recent(
        self, user_id: str, content_type: ContentType | None = None, limit: int = 20
    ) -> list[TrackingAction]:
        stmt = select(TrackingActionRow).where(TrackingActionRow.user_id == user_id)
        if content_type is not None:
            stmt = stmt.where(TrackingActionRow.content_type == content_type.value)
        stmt = stmt.order_by(TrackingActionRow.timestamp.desc()).limit(limit)
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [
                TrackingAction(
                    id=r.id,
                    user_id=r.user_id,
                    content_id=r.content_id,
                    content_type=ContentType(r.content_type),
                    action_type=ActionType(r.action_type),
                    metadata=dict(r.meta or {}),
                    timestamp=r.timestamp,
                )
                for r in rows
            ]


def _progress_values(p: ContentProgress) -> dict[str, object]:
    return {
        "user_id": p.user_id,
        "content_type": p.content_type.value,
        "content_id": p.content_id,
        "is_completed": p.is_completed,
        "watch_time": p.watch_time,
        "rating": p.rating,
        "review": p.review,
        "completed_at": p.completed_at,
        "last_accessed_at": p.last_accessed_at,
        "bookmarks": list(p.bookmarks),
        "view_count": p.view_count,
        "like_count": p.like_count,
        "share_count": p.share_count,
        "download_count": p.download_count,
        "meta": p.metadata,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


def _row_to_progress(row: ContentProgressRow) -> ContentProgress:
    return ContentProgress(
        user_id=row.user_id,
        content_id=row.content_id,
        content_type=ContentType(row.content_type),
        is_completed=row.is_completed,
        watch_time=row.watch_time,
        rating=row.rating,
        review=row.review,
        completed_at=row.completed_at,
        last_accessed_at=row.last_accessed_at,
        bookmarks=tuple(row.bookmarks or ()),
        view_count=row.view_count,
        like_count=row.like_count,
        share_count=row.share_count,
        download_count=row.download_count,
        metadata=dict(row.meta or {}),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
