from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Iterator
from typing import Any

# Tests always run against in-memory storage.
for _name in ("DATABASE_URL", "REDIS_URL", "FLOUCI_WEBHOOK_SECRET", "STRIPE_WEBHOOK_SECRET"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from shabaka.container import Container, build_container, set_container  # noqa: E402
from shabaka.main import app  # noqa: E402
from shabaka.models.catalog import (  # noqa: E402
    Community,
    Course,
    Event,
    EventTicket,
    Post,
    Product,
    Session,
)
from shabaka.models.challenge import Challenge, ChallengeTask  # noqa: E402
from shabaka.repos.catalog_repo import InMemoryCatalogRepo  # noqa: E402
from shabaka.services import token_service  # noqa: E402
from shabaka.services.gateways.base import GatewayInit, GatewayVerification  # noqa: E402
from shabaka.services.gateways.stripe_link import StripeResult, WebhookEvent  # noqa: E402

WEBHOOK_SECRET = "test-webhook-secret"
STRIPE_GOOD_SIGNATURE = "t=1,v1=good"

CREATOR_ID = "creator-1"
COMMUNITY_ID = "community-1"
COMMUNITY_SLUG = "dev-club"
COURSE_ID = "course-1"
CHALLENGE_ID = "challenge-1"


# ---------------------------------------------------------------------------
# Fake gateways
# ---------------------------------------------------------------------------


class FakeFlouci:
    """Records init calls; ``statuses`` decides what verify reports."""

    provider = "flouci"

    def __init__(self) -> None:
        self.inits: list[dict[str, Any]] = []
        self.statuses: dict[str, str] = {}
        self.verify_calls = 0
        self.fail_init = False

    async def init(
        self,
        amount_dt: float,
        success_url: str,
        fail_url: str,
        metadata: dict[str, Any] | None = None,
    ) -> GatewayInit:
        if self.fail_init:
            return GatewayInit.failed("Flouci is down")
        payment_id = f"flouci-{len(self.inits) + 1}"
        self.inits.append(
            {
                "amount_dt": amount_dt,
                "success_url": success_url,
                "fail_url": fail_url,
                "metadata": metadata or {},
            }
        )
        self.statuses.setdefault(payment_id, "PENDING")
        return GatewayInit(
            success=True,
            payment_id=payment_id,
            link=f"https://flouci.test/pay/{payment_id}",
            qr_code="qr-png",
        )

    async def verify(self, payment_id: str) -> GatewayVerification:
        self.verify_calls += 1
        status = self.statuses.get(payment_id)
        if status is None:
            return GatewayVerification.failed("Unknown payment")
        return GatewayVerification(success=True, status=status, payment_method="card")


class FakeStripeLink:
    """Stands in for StripeLinkGateway; signatures equal to
    STRIPE_GOOD_SIGNATURE are accepted and the payload is plain JSON."""

    provider = "stripe-link"
    configured = True

    def __init__(self) -> None:
        self.sessions: list[dict[str, Any]] = []
        self.statuses: dict[str, str] = {}
        self.refunds: list[str] = []
        self.verify_calls = 0

    async def create_checkout_session(self, **kwargs: Any) -> GatewayInit:
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append({"id": session_id, **kwargs})
        self.statuses.setdefault(session_id, "requires_payment_method")
        return GatewayInit(
            success=True, payment_id=session_id, link=f"https://checkout.test/{session_id}"
        )

    async def create_price(self, **kwargs: Any) -> StripeResult:
        return StripeResult(True, value="price_test_1")

    async def create_subscription_session(self, **kwargs: Any) -> GatewayInit:
        return await self.create_checkout_session(**kwargs)

    async def verify(self, session_id: str) -> GatewayVerification:
        self.verify_calls += 1
        status = self.statuses.get(session_id)
        if status is None:
            return GatewayVerification.failed("No such checkout session")
        return GatewayVerification(
            success=True, status=status, payment_method="link", customer_id="cus_test_1"
        )

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if signature != STRIPE_GOOD_SIGNATURE:
            return WebhookEvent(False, error="No signatures found matching the expected signature")
        event = json.loads(payload)
        return WebhookEvent(True, type=event["type"], data=event["data"]["object"])

    async def create_customer_portal_session(
        self, customer_id: str, return_url: str
    ) -> StripeResult:
        return StripeResult(True, value=f"https://billing.test/{customer_id}")

    async def refund(self, session_id: str) -> StripeResult:
        self.refunds.append(session_id)
        return StripeResult(True, value="re_test_1")


# ---------------------------------------------------------------------------
# Catalog seed
# ---------------------------------------------------------------------------


def seed_catalog() -> InMemoryCatalogRepo:
    catalog = InMemoryCatalogRepo()

    async def _seed() -> None:
        await catalog.save_community(
            Community(
                id=COMMUNITY_ID,
                name="Dev Club",
                slug=COMMUNITY_SLUG,
                creator_id=CREATOR_ID,
                fees_of_join=50.0,
            )
        )
        await catalog.save_community(
            Community(id="community-2", name="Art Room", slug="art-room", creator_id="creator-2")
        )
        await catalog.save_item(
            Course(
                id=COURSE_ID,
                community_id=COMMUNITY_ID,
                creator_id=CREATOR_ID,
                title="Python from zero",
                price=30.0,
                thumbnail="https://cdn.test/course-1.png",
            )
        )
        await catalog.save_item(
            Course(
                id="course-free",
                community_id=COMMUNITY_ID,
                creator_id=CREATOR_ID,
                title="Intro",
                price=0.0,
            )
        )
        await catalog.save_item(
            Challenge(
                id=CHALLENGE_ID,
                community_id=COMMUNITY_ID,
                creator_id=CREATOR_ID,
                title="30 days of code",
                participation_fee=15.0,
                sequential_progression=True,
                tasks=(
                    ChallengeTask(id="task-2", day=2, title="Loops", points=20),
                    ChallengeTask(id="task-1", day=1, title="Variables", points=10),
                    ChallengeTask(id="task-3", day=3, title="Functions", points=30),
                ),
            )
        )
        await catalog.save_item(
            Event(
                id="event-1",
                community_id=COMMUNITY_ID,
                creator_id=CREATOR_ID,
                title="Meetup",
                tickets=(EventTicket(type="standard", price=20.0), EventTicket(type="vip", price=60.0)),
            )
        )
        await catalog.save_item(
            Product(
                id="product-1",
                community_id="community-2",
                creator_id="creator-2",
                title="Brush pack",
                price=12.5,
            )
        )
        await catalog.save_item(
            Session(
                id="session-1",
                community_id=COMMUNITY_ID,
                creator_id=CREATOR_ID,
                title="Code review",
                price=40.0,
                duration_minutes=60,
            )
        )
        await catalog.save_item(
            Post(id="post-1", community_id=COMMUNITY_ID, author_id=CREATOR_ID, title="Welcome")
        )

    asyncio.run(_seed())
    return catalog


def make_container(**overrides: Any) -> Container:
    """In-memory container with fake gateways; keyword overrides win."""
    options: dict[str, Any] = {
        "use_external": False,
        "payment_mode": "instant",
        "flouci": FakeFlouci(),
        "stripe_link": FakeStripeLink(),
        "flouci_webhook_secret": WEBHOOK_SECRET,
        "catalog": seed_catalog(),
    }
    options.update(overrides)
    return build_container(**options)


@pytest.fixture(autouse=True)
def container() -> Iterator[Container]:
    """Fresh object graph per test, so no state bleeds between tests."""
    c = make_container()
    set_container(c)
    yield c
    set_container(None)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid HS256 access token for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])
