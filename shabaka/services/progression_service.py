"""Cross-content "what have I done" overview.

Joins the user's progress rows with the catalog documents they point
at.  The query runs in three steps:

  1. narrow the tracked types, and, with a community filter, the ids
     per type that belong to that community (a type with no ids in the
     community is dropped)
  2. page through the matching progress rows, newest update first
  3. batch-hydrate titles and communities, one catalog read per type

The summary block counts the current page only, not every row the
query matched.  Clients rely on that, so it is not a global aggregate.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from shabaka.core.errors import NotFoundError
from shabaka.models.catalog import Community, Event, Product, Session
from shabaka.models.challenge import Challenge
from shabaka.models.content import ContentType
from shabaka.models.progress import ContentProgress
from shabaka.repos.catalog_repo import CatalogRepo, ContentItem
from shabaka.repos.progress_repo import ContentFilters, ContentProgressRepo
from shabaka.services.cache import CacheService

logger = logging.getLogger(__name__)

SUPPORTED_TYPES: tuple[ContentType, ...] = (
    ContentType.COURSE,
    ContentType.CHALLENGE,
    ContentType.SESSION,
    ContentType.EVENT,
    ContentType.PRODUCT,
    ContentType.POST,
)

_ROUTE_SEGMENTS: dict[ContentType, str] = {
    ContentType.COURSE: "courses",
    ContentType.CHALLENGE: "challenges",
    ContentType.SESSION: "sessions",
    ContentType.EVENT: "events",
    ContentType.PRODUCT: "products",
    ContentType.POST: "feed",
}

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
CACHE_TTL_SECONDS = 300


def parse_content_types(raw: str | None) -> list[ContentType]:
    """Comma-separated, case-insensitive; unknown names are dropped."""
    if not raw:
        return []
    wanted: list[ContentType] = []
    for part in raw.split(","):
        name = part.strip().lower()
        if name in SUPPORTED_TYPES and ContentType(name) not in wanted:
            wanted.append(ContentType(name))
    return wanted


def resolve_status(progress: ContentProgress) -> str:
    if progress.is_completed:
        return "completed"
    active = (
        progress.watch_time > 0
        or progress.view_count > 0
        or progress.like_count > 0
        or bool(progress.metadata.get("progressPercent"))
    )
    return "in_progress" if active else "not_started"


def resolve_progress_percent(progress: ContentProgress) -> float | None:
    value = progress.metadata.get("progressPercent")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    if progress.is_completed:
        return 100
    return None


def build_summary(items: Sequence[dict[str, Any]]) -> dict[str, Any]:
    by_type: dict[str, dict[str, int]] = {}
    counts = {"completed": 0, "in_progress": 0, "not_started": 0}
    for item in items:
        bucket = by_type.setdefault(item["contentType"], {"total": 0, "completed": 0})
        bucket["total"] += 1
        counts[item["status"]] += 1
        if item["status"] == "completed":
            bucket["completed"] += 1
    return {
        "totalItems": len(items),
        "completed": counts["completed"],
        "inProgress": counts["in_progress"],
        "notStarted": counts["not_started"],
        "byType": by_type,
    }


def empty_overview(page: int, limit: int) -> dict[str, Any]:
    return {
        "summary": build_summary([]),
        "pagination": {"page": page, "limit": limit, "total": 0, "totalPages": 0},
        "items": [],
    }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _thumbnail_of(item: ContentItem) -> str | None:
    return getattr(item, "thumbnail", None)


def _content_meta(content_type: ContentType, item: ContentItem) -> dict[str, Any]:
    meta: dict[str, Any] = dict(getattr(item, "meta", {}) or {})
    match item:
        case Challenge():
            meta["participants"] = len(item.participants)
            meta["endDate"] = _iso(item.ends_at)
        case Event():
            meta["startDate"] = _iso(item.starts_at)
        case Session():
            meta["duration"] = item.duration_minutes
            meta["price"] = item.price
        case Product():
            meta["price"] = item.price
    meta["type"] = content_type.value
    return meta


class ProgressionService:
    def __init__(
        self, progress: ContentProgressRepo, catalog: CatalogRepo, cache: CacheService
    ) -> None:
        self._progress = progress
        self._catalog = catalog
        self._cache = cache

    async def _resolve_community(
        self, community_id: str | None, community_slug: str | None
    ) -> Community:
        community = None
        if community_id:
            community = await self._catalog.get_community(community_id)
        elif community_slug:
            community = await self._catalog.get_community_by_slug(community_slug)
        if community is None:
            raise NotFoundError("Community not found")
        return community

    async def _community_filters(
        self, community_id: str, types: Sequence[ContentType]
    ) -> dict[ContentType, list[str]]:
        filters: dict[ContentType, list[str]] = {}
        for content_type in types:
            ids = await self._catalog.ids_in_community(content_type, community_id)
            if ids:
                filters[content_type] = ids
        return filters

    async def get_user_progress_overview(
        self,
        user_id: str,
        *,
        content_types: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
        community_id: str | None = None,
        community_slug: str | None = None,
    ) -> dict[str, Any]:
        page = max(1, page)
        limit = max(1, min(limit, MAX_LIMIT))

        cache_key = self._cache_key(
            user_id, content_types, page, limit, community_id, community_slug
        )
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return json.loads(cached)

        overview = await self._build_overview(
            user_id, content_types, page, limit, community_id, community_slug
        )
        await self._cache.set(cache_key, json.dumps(overview), CACHE_TTL_SECONDS)
        return overview

    @staticmethod
    def _cache_key(user_id: str, *query: object) -> str:
        digest = hashlib.sha256(repr(query).encode()).hexdigest()[:16]
        return f"progression:{user_id}:{digest}"

    async def _build_overview(
        self,
        user_id: str,
        content_types: str | None,
        page: int,
        limit: int,
        community_id: str | None,
        community_slug: str | None,
    ) -> dict[str, Any]:
        requested = parse_content_types(content_types)
        if content_types and not requested:
            return empty_overview(page, limit)
        types = requested or list(SUPPORTED_TYPES)

        filters: ContentFilters
        if community_id or community_slug:
            community = await self._resolve_community(community_id, community_slug)
            filters = await self._community_filters(community.id, types)
            if not filters:
                return empty_overview(page, limit)
        else:
            filters = {t: None for t in types}

        rows, total = await self._progress.list_filtered(
            user_id, filters, skip=(page - 1) * limit, limit=limit
        )
        if not rows:
            return empty_overview(page, limit)

        details = await self._hydrate_details(rows)
        communities = await self._catalog.get_communities(
            {item.community_id for item in details.values()}
        )

        items = []
        for row in rows:
            item = details.get((row.content_type, row.content_id))
            community = communities.get(item.community_id) if item is not None else None
            items.append(self._build_item(row, item, community))

        return {
            "summary": build_summary(items),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": -(-total // limit),
            },
            "items": items,
        }

    async def _hydrate_details(
        self, rows: Sequence[ContentProgress]
    ) -> dict[tuple[ContentType, str], ContentItem]:
        grouped: dict[ContentType, list[str]] = defaultdict(list)
        for row in rows:
            if row.content_type in _ROUTE_SEGMENTS:
                grouped[row.content_type].append(row.content_id)

        details: dict[tuple[ContentType, str], ContentItem] = {}
        for content_type, ids in grouped.items():
            found = await self._catalog.get_items(content_type, ids)
            for item_id, item in found.items():
                details[(content_type, item_id)] = item
        return details

    def _build_item(
        self,
        progress: ContentProgress,
        item: ContentItem | None,
        community: Community | None,
    ) -> dict[str, Any]:
        meta = _content_meta(progress.content_type, item) if item is not None else {}
        meta.update(
            watchTime=progress.watch_time,
            viewCount=progress.view_count,
            likeCount=progress.like_count,
            shareCount=progress.share_count,
            downloadCount=progress.download_count,
            updatedAt=_iso(progress.updated_at),
        )
        path = self._content_path(progress, item, community)
        return {
            "contentId": progress.content_id,
            "contentType": progress.content_type.value,
            "title": item.title if item is not None else f"Content {progress.content_id}",
            "description": getattr(item, "description", None),
            "thumbnail": _thumbnail_of(item) if item is not None else None,
            "status": resolve_status(progress),
            "progressPercent": resolve_progress_percent(progress),
            "lastAccessedAt": _iso(progress.last_accessed_at),
            "completedAt": _iso(progress.completed_at),
            "community": (
                {"id": community.id, "name": community.name, "slug": community.slug}
                if community is not None
                else None
            ),
            "meta": meta,
            "actions": {"view": path, "continue": path},
        }

    @staticmethod
    def _content_path(
        progress: ContentProgress, item: ContentItem | None, community: Community | None
    ) -> str:
        slug = community.slug if community is not None else None
        if slug is None and item is not None:
            slug = item.community_id
        base = f"/community/{slug}" if slug else ""
        segment = _ROUTE_SEGMENTS.get(progress.content_type)
        if segment is None:
            return f"/content/{progress.content_type.value}/{progress.content_id}"
        return f"{base}/{segment}/{progress.content_id}"
