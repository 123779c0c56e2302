from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from shabaka.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    error_body,
    register_exception_handlers,
)


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/bad")
    async def bad() -> None:
        raise BadRequestError("Ticket type is required", details={"field": "ticketType"})

    @app.get("/unauthorized")
    async def unauthorized() -> None:
        raise UnauthorizedError("Invalid token")

    @app.get("/forbidden")
    async def forbidden() -> None:
        raise ForbiddenError("Insufficient permissions")

    @app.get("/conflict")
    async def conflict() -> None:
        raise ConflictError("Email already registered")

    @app.get("/missing")
    async def missing() -> None:
        raise NotFoundError("Course not found")

    @app.get("/http")
    async def http() -> None:
        raise HTTPException(status_code=418, detail="Short and stout")

    @app.get("/items/{item_id}")
    async def item(item_id: int) -> dict:
        return {"id": item_id}

    return app


client = TestClient(_app())


def test_error_body_omits_empty_details() -> None:
    assert error_body(404, "Course not found") == {
        "success": False,
        "message": "Course not found",
        "error": "Not Found",
    }
    assert error_body(400, "x", details=[1])["details"] == [1]


def test_domain_errors_map_to_status_codes() -> None:
    assert client.get("/forbidden").status_code == 403
    assert client.get("/conflict").status_code == 409
    assert client.get("/missing").json() == error_body(404, "Course not found")


def test_bad_request_carries_details() -> None:
    resp = client.get("/bad")
    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "message": "Ticket type is required",
        "error": "Bad Request",
        "details": {"field": "ticketType"},
    }


def test_unauthorized_sets_bearer_challenge() -> None:
    resp = client.get("/unauthorized")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_http_exception_is_enveloped() -> None:
    resp = client.get("/http")
    assert resp.status_code == 418
    assert resp.json()["message"] == "Short and stout"
    assert resp.json()["success"] is False


def test_unknown_route_is_enveloped() -> None:
    resp = client.get("/nowhere")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_validation_error_is_400_with_details() -> None:
    resp = client.get("/items/not-a-number")
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Validation failed"
    assert body["details"][0]["loc"] == ["path", "item_id"]
