from __future__ import annotations

import asyncio

import pytest

from shabaka.container import Container
from shabaka.core.errors import BadRequestError
from shabaka.models.content import ActionType, ContentType

COURSE = ContentType.COURSE


def test_first_action_creates_progress_row(container: Container) -> None:
    tracking = container.tracking
    assert asyncio.run(tracking.get_progress("u1", COURSE, "course-1")) is None

    progress = asyncio.run(tracking.track_view("u1", COURSE, "course-1"))

    assert progress.view_count == 1
    assert progress.last_accessed_at is not None
    assert asyncio.run(tracking.get_progress("u1", COURSE, "course-1")) == progress


def test_counters_accumulate(container: Container) -> None:
    tracking = container.tracking
    for _ in range(3):
        asyncio.run(tracking.track_view("u1", COURSE, "course-1"))
    asyncio.run(tracking.track_like("u1", COURSE, "course-1"))
    asyncio.run(tracking.track_share("u1", COURSE, "course-1"))
    progress = asyncio.run(tracking.track_download("u1", COURSE, "course-1"))

    assert progress.view_count == 3
    assert progress.like_count == 1
    assert progress.share_count == 1
    assert progress.download_count == 1


def test_completion_is_sticky(container: Container) -> None:
    tracking = container.tracking
    first = asyncio.run(tracking.track_complete("u1", COURSE, "course-1"))
    second = asyncio.run(tracking.track_complete("u1", COURSE, "course-1"))

    assert first.is_completed
    assert second.completed_at == first.completed_at


def test_watch_time_adds_without_logging(container: Container) -> None:
    tracking = container.tracking
    asyncio.run(tracking.update_watch_time("u1", COURSE, "course-1", 90))
    progress = asyncio.run(tracking.update_watch_time("u1", COURSE, "course-1", 30))

    assert progress.watch_time == 120
    assert asyncio.run(tracking.get_user_recent_actions("u1")) == []


def test_bookmarks_are_a_set(container: Container) -> None:
    tracking = container.tracking
    asyncio.run(tracking.add_bookmark("u1", COURSE, "course-1", "b1"))
    asyncio.run(tracking.add_bookmark("u1", COURSE, "course-1", "b1"))
    progress = asyncio.run(tracking.add_bookmark("u1", COURSE, "course-1", "b2"))
    assert progress.bookmarks == ("b1", "b2")

    progress = asyncio.run(tracking.remove_bookmark("u1", COURSE, "course-1", "b1"))
    assert progress.bookmarks == ("b2",)


@pytest.mark.parametrize("rating", [0, 6])
def test_rating_out_of_range_rejected(container: Container, rating: int) -> None:
    with pytest.raises(BadRequestError, match="between 1 and 5"):
        asyncio.run(container.tracking.add_rating("u1", COURSE, "course-1", rating))


def test_rating_keeps_previous_review(container: Container) -> None:
    tracking = container.tracking
    asyncio.run(tracking.add_rating("u1", COURSE, "course-1", 4, "Solid"))
    progress = asyncio.run(tracking.add_rating("u1", COURSE, "course-1", 5))

    assert progress.rating == 5
    assert progress.review == "Solid"


def test_actions_are_logged(container: Container) -> None:
    tracking = container.tracking
    asyncio.run(tracking.track_view("u1", COURSE, "course-1"))
    asyncio.run(tracking.add_bookmark("u1", COURSE, "course-1", "b1"))
    asyncio.run(tracking.track_view("u1", ContentType.POST, "post-1"))

    actions = asyncio.run(tracking.get_user_recent_actions("u1"))
    assert sorted(a.action_type for a in actions) == [
        ActionType.BOOKMARK,
        ActionType.VIEW,
        ActionType.VIEW,
    ]
    bookmark = next(a for a in actions if a.action_type == ActionType.BOOKMARK)
    assert bookmark.metadata == {"bookmarkId": "b1"}

    posts = asyncio.run(tracking.get_user_recent_actions("u1", ContentType.POST))
    assert [a.content_id for a in posts] == ["post-1"]


def test_progress_by_type_is_paginated(container: Container) -> None:
    tracking = container.tracking
    for i in range(5):
        asyncio.run(tracking.track_view("u1", COURSE, f"course-{i}"))
    asyncio.run(tracking.track_view("u1", ContentType.POST, "post-1"))

    page = asyncio.run(tracking.get_user_progress_by_type("u1", COURSE, page=2, limit=2))

    assert page.total == 5
    assert page.total_pages == 3
    assert len(page.items) == 2
    assert all(p.content_type == COURSE for p in page.items)


def test_content_stats_aggregate_users(container: Container) -> None:
    tracking = container.tracking
    asyncio.run(tracking.track_view("u1", COURSE, "course-1"))
    asyncio.run(tracking.track_view("u2", COURSE, "course-1"))
    asyncio.run(tracking.track_complete("u2", COURSE, "course-1"))
    asyncio.run(tracking.add_rating("u1", COURSE, "course-1", 4))
    asyncio.run(tracking.add_rating("u2", COURSE, "course-1", 5))
    asyncio.run(tracking.update_watch_time("u1", COURSE, "course-1", 60))

    stats = asyncio.run(tracking.get_content_stats(COURSE, "course-1"))

    assert stats.total_views == 2
    assert stats.total_completed == 1
    assert stats.average_rating == 4.5
    assert stats.total_watch_time == 60


def test_stats_for_untracked_content_are_zero(container: Container) -> None:
    stats = asyncio.run(container.tracking.get_content_stats(COURSE, "nothing"))
    assert stats.total_views == 0
    assert stats.average_rating == 0.0


def test_tracking_write_drops_cached_overview(container: Container) -> None:
    asyncio.run(container.cache.set("progression:u1:abc", "{}", 60))
    asyncio.run(container.cache.set("progression:u2:abc", "{}", 60))

    asyncio.run(container.tracking.track_view("u1", COURSE, "course-1"))

    assert asyncio.run(container.cache.get("progression:u1:abc")) is None
    assert asyncio.run(container.cache.get("progression:u2:abc")) == "{}"
