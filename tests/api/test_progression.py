from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import COMMUNITY_ID, COMMUNITY_SLUG, auth_header


def test_overview_shape(client: TestClient, token: str) -> None:
    client.post("/tracking/course/course-1/view", headers=auth_header(token))
    client.post("/tracking/post/post-1/complete", headers=auth_header(token))

    resp = client.get("/progression/overview", headers=auth_header(token))

    assert resp.status_code == 200
    body = resp.json()
    assert body["summary"]["totalItems"] == 2
    assert body["summary"]["completed"] == 1
    assert body["summary"]["inProgress"] == 1
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 2, "totalPages": 1}
    course = next(i for i in body["items"] if i["contentType"] == "course")
    assert course["title"] == "Python from zero"
    assert course["community"]["slug"] == COMMUNITY_SLUG
    assert course["actions"]["continue"] == f"/community/{COMMUNITY_SLUG}/courses/course-1"


def test_overview_filters(client: TestClient, token: str) -> None:
    client.post("/tracking/course/course-1/view", headers=auth_header(token))
    client.post("/tracking/product/product-1/view", headers=auth_header(token))

    resp = client.get("/progression/overview?contentTypes=product", headers=auth_header(token))
    assert [i["contentId"] for i in resp.json()["items"]] == ["product-1"]

    resp = client.get(
        f"/progression/overview?communityId={COMMUNITY_ID}", headers=auth_header(token)
    )
    assert [i["contentId"] for i in resp.json()["items"]] == ["course-1"]


def test_overview_reflects_new_tracking(client: TestClient, token: str) -> None:
    client.post("/tracking/course/course-1/view", headers=auth_header(token))
    first = client.get("/progression/overview", headers=auth_header(token)).json()
    assert first["items"][0]["status"] == "in_progress"

    client.post("/tracking/course/course-1/complete", headers=auth_header(token))
    second = client.get("/progression/overview", headers=auth_header(token)).json()
    assert second["items"][0]["status"] == "completed"


def test_unknown_community_is_404(client: TestClient, token: str) -> None:
    resp = client.get("/progression/overview?communitySlug=nowhere", headers=auth_header(token))
    assert resp.status_code == 404


def test_overview_requires_auth(client: TestClient) -> None:
    assert client.get("/progression/overview").status_code == 401
