from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from shabaka.api.dependencies import CurrentUser
from shabaka.container import get_progression_service
from shabaka.services.progression_service import DEFAULT_LIMIT, ProgressionService

router = APIRouter(prefix="/progression", tags=["progression"])


class SummaryByType(BaseModel):
    total: int
    completed: int


class Summary(BaseModel):
    totalItems: int
    completed: int
    inProgress: int
    notStarted: int
    byType: dict[str, SummaryByType]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class CommunityRef(BaseModel):
    id: str
    name: str
    slug: str


class ProgressionItem(BaseModel):
    contentId: str
    contentType: str
    title: str
    description: str | None = None
    thumbnail: str | None = None
    status: str
    progressPercent: float | None = None
    lastAccessedAt: str | None = None
    completedAt: str | None = None
    community: CommunityRef | None = None
    meta: dict[str, Any]
    actions: dict[str, str]


class ProgressionOverview(BaseModel):
    summary: Summary
    pagination: Pagination
    items: list[ProgressionItem]


@router.get("/overview", response_model=ProgressionOverview)
async def overview(
    principal: CurrentUser,
    service: Annotated[ProgressionService, Depends(get_progression_service)],
    content_types: Annotated[str | None, Query(alias="contentTypes")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1)] = DEFAULT_LIMIT,
    community_id: Annotated[str | None, Query(alias="communityId")] = None,
    community_slug: Annotated[str | None, Query(alias="communitySlug")] = None,
) -> dict[str, Any]:
    return await service.get_user_progress_overview(
        principal.user_id,
        content_types=content_types,
        page=page,
        limit=limit,
        community_id=community_id,
        community_slug=community_slug,
    )
