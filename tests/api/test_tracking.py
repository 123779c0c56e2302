from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import auth_header, mint_token


def test_track_view_creates_progress(client: TestClient, token: str) -> None:
    resp = client.post("/tracking/course/course-1/view", headers=auth_header(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["contentId"] == "course-1"
    assert body["viewCount"] == 1
    assert body["isCompleted"] is False

    resp = client.get("/tracking/course/course-1", headers=auth_header(token))
    assert resp.status_code == 200
    assert resp.json()["viewCount"] == 1


def test_every_simple_action(client: TestClient, token: str) -> None:
    for action in ("view", "start", "like", "share", "download", "complete"):
        resp = client.post(f"/tracking/post/post-1/{action}", headers=auth_header(token))
        assert resp.status_code == 200, action

    body = client.get("/tracking/post/post-1", headers=auth_header(token)).json()
    assert body["isCompleted"] is True
    assert body["completedAt"] is not None
    assert body["likeCount"] == body["shareCount"] == body["downloadCount"] == 1


def test_unknown_action_or_type_is_validation_error(client: TestClient, token: str) -> None:
    assert client.post("/tracking/course/course-1/dance", headers=auth_header(token)).status_code == 400
    assert client.post("/tracking/podcast/p-1/view", headers=auth_header(token)).status_code == 400


def test_no_progress_is_404(client: TestClient, token: str) -> None:
    resp = client.get("/tracking/course/never-seen", headers=auth_header(token))
    assert resp.status_code == 404


def test_watch_time(client: TestClient, token: str) -> None:
    client.put(
        "/tracking/course/course-1/watch-time", json={"additionalTime": 45}, headers=auth_header(token)
    )
    resp = client.put(
        "/tracking/course/course-1/watch-time", json={"additionalTime": 15}, headers=auth_header(token)
    )
    assert resp.json()["watchTime"] == 60

    resp = client.put(
        "/tracking/course/course-1/watch-time", json={"additionalTime": -5}, headers=auth_header(token)
    )
    assert resp.status_code == 400


def test_bookmarks(client: TestClient, token: str) -> None:
    url = "/tracking/course/course-1/bookmarks"
    client.post(url, json={"bookmarkId": "lesson-3"}, headers=auth_header(token))
    resp = client.post(url, json={"bookmarkId": "lesson-7"}, headers=auth_header(token))
    assert resp.json()["bookmarks"] == ["lesson-3", "lesson-7"]

    resp = client.delete(f"{url}/lesson-3", headers=auth_header(token))
    assert resp.json()["bookmarks"] == ["lesson-7"]


def test_rating_bounds(client: TestClient, token: str) -> None:
    url = "/tracking/course/course-1/rating"
    resp = client.post(url, json={"rating": 5, "review": "Great"}, headers=auth_header(token))
    assert resp.status_code == 200
    assert resp.json()["rating"] == 5

    resp = client.post(url, json={"rating": 9}, headers=auth_header(token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Rating must be between 1 and 5"


def test_progress_by_type_pagination(client: TestClient, token: str) -> None:
    for i in range(3):
        client.post(f"/tracking/course/c-{i}/view", headers=auth_header(token))

    resp = client.get("/tracking/course?page=1&limit=2", headers=auth_header(token))
    body = resp.json()
    assert body["total"] == 3
    assert body["totalPages"] == 2
    assert len(body["items"]) == 2


def test_recent_actions(client: TestClient, token: str) -> None:
    client.post("/tracking/course/course-1/view", headers=auth_header(token))
    client.post("/tracking/post/post-1/like", headers=auth_header(token))

    resp = client.get("/tracking/recent", headers=auth_header(token))
    assert {a["actionType"] for a in resp.json()} == {"view", "like"}

    resp = client.get("/tracking/recent?contentType=post", headers=auth_header(token))
    assert [a["contentId"] for a in resp.json()] == ["post-1"]


def test_stats_aggregate_across_users(client: TestClient, token: str) -> None:
    other = mint_token(username="other-user")
    client.post("/tracking/course/course-1/view", headers=auth_header(token))
    client.post("/tracking/course/course-1/view", headers=auth_header(other))
    client.post("/tracking/course/course-1/complete", headers=auth_header(other))

    resp = client.get("/tracking/course/course-1/stats", headers=auth_header(token))
    assert resp.json()["totalViews"] == 2
    assert resp.json()["totalCompleted"] == 1


def test_tracking_requires_auth(client: TestClient) -> None:
    assert client.post("/tracking/course/course-1/view").status_code == 401
