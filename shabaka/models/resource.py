"""Community resources: one record shape per resource kind.

Articles, videos and guides share a collection and are told apart by
their ``type`` tag.  ``Resource.content`` is one of the three payload
classes; ``resource_from_document`` rebuilds the right one from a
stored document and rejects unknown tags.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from shabaka.core.errors import BadRequestError


@dataclass(frozen=True, slots=True)
class ArticleContent:
    body: str
    reading_time_minutes: int | None = None
    type: Literal["article"] = "article"


@dataclass(frozen=True, slots=True)
class VideoContent:
    url: str
    duration_seconds: int | None = None
    provider: str | None = None
    type: Literal["video"] = "video"


@dataclass(frozen=True, slots=True)
class GuideStep:
    title: str
    body: str


@dataclass(frozen=True, slots=True)
class GuideContent:
    steps: tuple[GuideStep, ...] = ()
    type: Literal["guide"] = "guide"


ResourceContent = ArticleContent | VideoContent | GuideContent


@dataclass(frozen=True, slots=True)
class Resource:
    id: str
    community_id: str
    creator_id: str
    title: str
    content: ResourceContent
    description: str | None = None
    thumbnail: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.content.type


def _content_from_document(doc: dict[str, Any]) -> ResourceContent:
    kind = doc.get("type")
    payload = doc.get("content") or {}
    match kind:
        case "article":
            return ArticleContent(
                body=payload.get("body", ""),
                reading_time_minutes=payload.get("readingTimeMinutes"),
            )
        case "video":
            if not payload.get("url"):
                raise BadRequestError("Video resources need a url")
            return VideoContent(
                url=payload["url"],
                duration_seconds=payload.get("durationSeconds"),
                provider=payload.get("provider"),
            )
        case "guide":
            steps = tuple(
                GuideStep(title=s.get("title", ""), body=s.get("body", ""))
                for s in payload.get("steps", ())
            )
            return GuideContent(steps=steps)
        case _:
            raise BadRequestError(f"Unknown resource type {kind!r}")


def resource_from_document(doc: dict[str, Any]) -> Resource:
    return Resource(
        id=str(doc["id"]),
        community_id=str(doc["communityId"]),
        creator_id=str(doc["creatorId"]),
        title=doc.get("title", ""),
        content=_content_from_document(doc),
        description=doc.get("description"),
        thumbnail=doc.get("thumbnail"),
        meta=dict(doc.get("meta") or {}),
    )
