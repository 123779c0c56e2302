"""JSON documents for catalog items stored in ``catalog_items.document``.

One shape per content type, camelCase keys like the resource documents.
Course enrollments and challenge participants are not part of the
document; they live in their own tables so grants can add rows without
rewriting the item.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from shabaka.models.catalog import Course, Event, EventTicket, Post, Product, Session
from shabaka.models.challenge import Challenge, ChallengeTask
from shabaka.models.content import ContentType
from shabaka.models.resource import (
    ArticleContent,
    GuideContent,
    Resource,
    VideoContent,
    resource_from_document,
)
from shabaka.repos.catalog_repo import ContentItem


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _resource_content(content: ArticleContent | VideoContent | GuideContent) -> dict[str, Any]:
    match content:
        case ArticleContent():
            return {"body": content.body, "readingTimeMinutes": content.reading_time_minutes}
        case VideoContent():
            return {
                "url": content.url,
                "durationSeconds": content.duration_seconds,
                "provider": content.provider,
            }
        case GuideContent():
            return {"steps": [{"title": s.title, "body": s.body} for s in content.steps]}


def item_to_document(item: ContentItem) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "id": item.id,
        "communityId": item.community_id,
        "title": item.title,
        "description": item.description,
        "thumbnail": item.thumbnail,
        "meta": dict(item.meta),
    }
    match item:
        case Post():
            doc["authorId"] = item.author_id
            return doc
        case _:
            doc["creatorId"] = item.creator_id

    match item:
        case Course():
            doc.update(price=item.price, isPublished=item.is_published)
        case Product():
            doc["price"] = item.price
        case Session():
            doc.update(price=item.price, durationMinutes=item.duration_minutes)
        case Event():
            doc["startsAt"] = _iso(item.starts_at)
            doc["tickets"] = [
                {"type": t.type, "price": t.price, "quantity": t.quantity} for t in item.tickets
            ]
        case Challenge():
            doc.update(
                participationFee=item.participation_fee,
                isActive=item.is_active,
                endsAt=_iso(item.ends_at),
                maxParticipants=item.max_participants,
                sequentialProgression=item.sequential_progression,
                unlockedTasks=sorted(item.unlocked_tasks),
                tasks=[
                    {
                        "id": t.id,
                        "day": t.day,
                        "title": t.title,
                        "points": t.points,
                        "description": t.description,
                    }
                    for t in item.tasks
                ],
            )
        case Resource():
            doc["type"] = item.type
            doc["content"] = _resource_content(item.content)
    return doc


def item_from_document(content_type: ContentType, doc: dict[str, Any]) -> ContentItem:
    """Rebuild an item; enrollments and participants start empty."""
    common = {
        "id": doc["id"],
        "community_id": doc["communityId"],
        "title": doc.get("title", ""),
        "description": doc.get("description"),
        "thumbnail": doc.get("thumbnail"),
        "meta": dict(doc.get("meta") or {}),
    }
    match content_type:
        case ContentType.POST:
            return Post(author_id=doc["authorId"], **common)
        case ContentType.RESOURCE:
            return resource_from_document(doc)

    common["creator_id"] = doc["creatorId"]
    match content_type:
        case ContentType.COURSE:
            return Course(
                price=doc.get("price", 0.0), is_published=doc.get("isPublished", True), **common
            )
        case ContentType.PRODUCT:
            return Product(price=doc.get("price", 0.0), **common)
        case ContentType.SESSION:
            return Session(
                price=doc.get("price", 0.0),
                duration_minutes=doc.get("durationMinutes"),
                **common,
            )
        case ContentType.EVENT:
            return Event(
                starts_at=_from_iso(doc.get("startsAt")),
                tickets=tuple(
                    EventTicket(type=t["type"], price=t["price"], quantity=t.get("quantity"))
                    for t in doc.get("tickets", ())
                ),
                **common,
            )
        case ContentType.CHALLENGE:
            return Challenge(
                participation_fee=doc.get("participationFee", 0.0),
                is_active=doc.get("isActive", True),
                ends_at=_from_iso(doc.get("endsAt")),
                max_participants=doc.get("maxParticipants"),
                sequential_progression=doc.get("sequentialProgression", False),
                unlocked_tasks=frozenset(doc.get("unlockedTasks", ())),
                tasks=tuple(
                    ChallengeTask(
                        id=t["id"],
                        day=t["day"],
                        title=t.get("title", ""),
                        points=t.get("points", 0),
                        description=t.get("description"),
                    )
                    for t in doc.get("tasks", ())
                ),
                **common,
            )
    raise ValueError(f"No catalog document shape for {content_type}")
