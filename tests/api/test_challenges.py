from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import CHALLENGE_ID, CREATOR_ID, auth_header, mint_token

BASE = f"/challenges/{CHALLENGE_ID}"


def _join(client: TestClient, token: str) -> dict:
    resp = client.post(f"{BASE}/join", headers=auth_header(token))
    assert resp.status_code == 200
    return resp.json()


def test_join(client: TestClient, token: str) -> None:
    body = _join(client, token)
    assert body["challengeId"] == CHALLENGE_ID
    assert body["participantsCount"] == 1
    assert body["participant"]["progress"] == 0

    resp = client.post(f"{BASE}/join", headers=auth_header(token))
    assert resp.status_code == 400


def test_access_gate(client: TestClient, token: str) -> None:
    _join(client, token)

    resp = client.get(f"{BASE}/tasks/task-1/access", headers=auth_header(token))
    assert resp.json() == {"allowed": True, "reason": "first_task", "requiredTaskId": None}

    resp = client.get(f"{BASE}/tasks/task-3/access", headers=auth_header(token))
    assert resp.json() == {
        "allowed": False,
        "reason": "previous_not_completed",
        "requiredTaskId": "task-2",
    }


def test_out_of_order_progress_is_403_with_required_task(client: TestClient, token: str) -> None:
    _join(client, token)

    resp = client.patch(f"{BASE}/tasks/task-2/progress", json={}, headers=auth_header(token))

    assert resp.status_code == 403
    body = resp.json()
    assert body["success"] is False
    assert body["details"] == {"requiredTaskId": "task-1"}


def test_progress_in_order_and_next_task(client: TestClient, token: str) -> None:
    _join(client, token)

    resp = client.get(f"{BASE}/next-task", headers=auth_header(token))
    assert resp.json()["task"]["id"] == "task-1"

    resp = client.patch(
        f"{BASE}/tasks/task-1/progress", json={"completed": True}, headers=auth_header(token)
    )
    assert resp.status_code == 200
    assert resp.json()["completedTasks"] == ["task-1"]
    assert resp.json()["totalPoints"] == 10

    resp = client.get(f"{BASE}/next-task", headers=auth_header(token))
    assert resp.json()["task"]["id"] == "task-2"


def test_creator_unlock(client: TestClient, token: str) -> None:
    _join(client, token)
    creator = mint_token(username=CREATOR_ID)

    resp = client.post(f"{BASE}/tasks/task-3/unlock", headers=auth_header(token))
    assert resp.status_code == 403

    resp = client.post(f"{BASE}/tasks/task-3/unlock", headers=auth_header(creator))
    assert resp.status_code == 204

    resp = client.patch(f"{BASE}/tasks/task-3/progress", json={}, headers=auth_header(token))
    assert resp.status_code == 200
    assert resp.json()["totalPoints"] == 30


def test_non_participant_gets_400(client: TestClient, token: str) -> None:
    resp = client.get(f"{BASE}/next-task", headers=auth_header(token))
    assert resp.status_code == 400


def test_unknown_challenge_is_404(client: TestClient, token: str) -> None:
    assert client.post("/challenges/nope/join", headers=auth_header(token)).status_code == 404
