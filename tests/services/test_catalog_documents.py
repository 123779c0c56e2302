"""Catalog item documents and the storage backend the container picks."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from shabaka import container as container_module
from shabaka.container import build_container
from shabaka.models.catalog import Course, Event, EventTicket, Post
from shabaka.models.challenge import Challenge, ChallengeTask, Participant
from shabaka.models.content import ContentType
from shabaka.models.resource import GuideContent, GuideStep, Resource
from shabaka.repos.catalog_documents import item_from_document, item_to_document
from shabaka.repos.catalog_repo import InMemoryCatalogRepo
from shabaka.repos.pg_catalog_repo import PgCatalogRepo
from tests.conftest import FakeFlouci, FakeStripeLink

ENDS_AT = datetime(2026, 11, 1, 12, 0, tzinfo=UTC)


def test_course_document_leaves_enrollments_out() -> None:
    course = Course(
        id="k1",
        community_id="c1",
        creator_id="o",
        title="Python",
        price=30.0,
        is_published=False,
        enrollments=frozenset({"u1"}),
        meta={"level": "beginner"},
    )
    doc = item_to_document(course)

    assert "enrollments" not in doc
    assert doc["isPublished"] is False
    assert item_from_document(ContentType.COURSE, doc) == Course(
        id="k1",
        community_id="c1",
        creator_id="o",
        title="Python",
        price=30.0,
        is_published=False,
        meta={"level": "beginner"},
    )


def test_challenge_document_keeps_tasks_and_unlocks() -> None:
    challenge = Challenge(
        id="ch",
        community_id="c1",
        creator_id="o",
        title="30 days",
        tasks=(ChallengeTask(id="t1", day=1, title="One", points=10),),
        participants=(Participant.new(user_id="u1"),),
        participation_fee=15.0,
        ends_at=ENDS_AT,
        max_participants=50,
        sequential_progression=True,
        unlocked_tasks=frozenset({"t1"}),
    )
    doc = item_to_document(challenge)

    assert doc["endsAt"] == ENDS_AT.isoformat()
    assert doc["unlockedTasks"] == ["t1"]
    rebuilt = item_from_document(ContentType.CHALLENGE, doc)
    assert isinstance(rebuilt, Challenge)
    assert rebuilt.participants == ()
    assert rebuilt.tasks == challenge.tasks
    assert rebuilt.ends_at == ENDS_AT
    assert rebuilt.unlocked_tasks == frozenset({"t1"})
    assert rebuilt.sequential_progression


def test_event_and_post_documents() -> None:
    event = Event(
        id="e",
        community_id="c1",
        creator_id="o",
        title="Meetup",
        tickets=(EventTicket(type="vip", price=60.0, quantity=10),),
    )
    post = Post(id="p", community_id="c1", author_id="o", title="Hi")

    assert item_from_document(ContentType.EVENT, item_to_document(event)) == event
    post_doc = item_to_document(post)
    assert "creatorId" not in post_doc
    assert item_from_document(ContentType.POST, post_doc) == post


def test_resource_document_uses_resource_shape() -> None:
    resource = Resource(
        id="r",
        community_id="c1",
        creator_id="o",
        title="Setup",
        content=GuideContent(steps=(GuideStep(title="Install", body="pip"),)),
    )
    doc = item_to_document(resource)

    assert doc["type"] == "guide"
    assert item_from_document(ContentType.RESOURCE, doc) == resource


def test_unsupported_type_has_no_document_shape() -> None:
    with pytest.raises(ValueError):
        item_from_document(ContentType.COMMUNITY, {"id": "x", "communityId": "c1"})


def test_container_stores_catalog_in_postgres_when_configured(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(container_module, "async_session_factory", async_sessionmaker())
    fakes = {"flouci": FakeFlouci(), "stripe_link": FakeStripeLink()}

    assert isinstance(build_container(use_external=True, **fakes).catalog, PgCatalogRepo)
    assert isinstance(build_container(use_external=False, **fakes).catalog, InMemoryCatalogRepo)
