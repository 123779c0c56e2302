from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from typing import Any

import pytest
import stripe

from shabaka.services.gateways.stripe_link import StripeLinkGateway, field_of

SECRET = "whsec_test"


def _gateway(api_key: str | None = "sk_test_1") -> StripeLinkGateway:
    return StripeLinkGateway(api_key=api_key, webhook_secret=SECRET)


def _signed(payload: bytes, secret: str = SECRET) -> str:
    timestamp = int(time.time())
    digest = hmac.new(
        secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


EVENT = json.dumps(
    {
        "id": "evt_1",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_1",
                "object": "checkout.session",
                "payment_status": "paid",
                "metadata": {"orderId": "order-1"},
            }
        },
    }
).encode()


def test_field_of_reads_dicts_and_objects() -> None:
    assert field_of({"id": "a"}, "id") == "a"
    assert field_of(SimpleNamespace(id="b"), "id") == "b"
    assert field_of(None, "id") is None
    assert field_of({}, "id") is None


def test_construct_event_accepts_valid_signature() -> None:
    event = _gateway().construct_event(EVENT, _signed(EVENT))
    assert event.success
    assert event.type == "checkout.session.completed"
    assert field_of(event.data, "id") == "cs_1"
    assert field_of(event.data, "payment_status") == "paid"


def test_construct_event_rejects_wrong_secret() -> None:
    event = _gateway().construct_event(EVENT, _signed(EVENT, secret="whsec_other"))
    assert not event.success
    assert event.error


def test_construct_event_rejects_tampered_payload() -> None:
    signature = _signed(EVENT)
    tampered = EVENT.replace(b'"paid"', b'"unpaid"')
    assert not _gateway().construct_event(tampered, signature).success


def test_construct_event_without_secret() -> None:
    gateway = StripeLinkGateway(api_key="sk_test_1", webhook_secret=None)
    event = gateway.construct_event(EVENT, _signed(EVENT))
    assert not event.success
    assert "STRIPE_WEBHOOK_SECRET" in (event.error or "")


def test_unconfigured_gateway_fails_softly() -> None:
    gateway = _gateway(api_key=None)
    assert not gateway.configured
    result = asyncio.run(
        gateway.create_checkout_session(
            amount_dt=10.0, product_name="x", success_url="s", cancel_url="c"
        )
    )
    assert not result.success


def test_checkout_session_uses_millimes(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_create(**kwargs: Any) -> dict[str, Any]:
        captured.update(kwargs)
        return {"id": "cs_new", "url": "https://checkout.stripe.test/cs_new"}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    result = asyncio.run(
        _gateway().create_checkout_session(
            amount_dt=30.0,
            product_name="Python from zero",
            success_url="https://app/ok",
            cancel_url="https://app/ko",
            metadata={"orderId": "order-1"},
            customer_email="ann@example.com",
        )
    )

    assert result.success
    assert result.payment_id == "cs_new"
    assert captured["api_key"] == "sk_test_1"
    assert captured["mode"] == "payment"
    price_data = captured["line_items"][0]["price_data"]
    assert price_data["unit_amount"] == 30000
    assert price_data["currency"] == "tnd"
    assert captured["metadata"] == {"orderId": "order-1"}


def test_stripe_error_becomes_failed_result(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_create(**kwargs: Any) -> dict[str, Any]:
        raise stripe.InvalidRequestError("No such price", param="price")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    result = asyncio.run(
        _gateway().create_subscription_session(
            price_id="price_x", success_url="s", cancel_url="c"
        )
    )
    assert not result.success
    assert result.error


def test_verify_reads_payment_intent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        stripe.checkout.Session,
        "retrieve",
        lambda **kwargs: {
            "id": kwargs["id"],
            "mode": "payment",
            "customer": "cus_1",
            "metadata": {"orderId": "order-1"},
            "payment_intent": {
                "status": "succeeded",
                "amount": 30000,
                "payment_method_types": ["link"],
            },
        },
    )

    result = asyncio.run(_gateway().verify("cs_1"))

    assert result.success
    assert result.status == "succeeded"
    assert result.amount == 30.0
    assert result.payment_method == "link"
    assert result.customer_id == "cus_1"
    assert result.metadata == {"orderId": "order-1"}


def test_verify_subscription_session_uses_payment_status(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        stripe.checkout.Session,
        "retrieve",
        lambda **kwargs: {
            "mode": "subscription",
            "payment_status": "no_payment_required",
            "customer": {"id": "cus_2"},
        },
    )

    result = asyncio.run(_gateway().verify("cs_2"))

    assert result.status == "succeeded"
    assert result.customer_id == "cus_2"


def test_verify_without_intent_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        stripe.checkout.Session, "retrieve", lambda **kwargs: {"mode": "payment"}
    )
    result = asyncio.run(_gateway().verify("cs_3"))
    assert not result.success
    assert result.error == "No payment intent found"


def test_refund_goes_through_payment_intent(monkeypatch: pytest.MonkeyPatch) -> None:
    refunded: list[str] = []

    def fake_refund(**kwargs: Any) -> dict[str, Any]:
        refunded.append(kwargs["payment_intent"])
        return {"id": "re_1"}

    monkeypatch.setattr(
        stripe.checkout.Session, "retrieve", lambda **kwargs: {"payment_intent": "pi_1"}
    )
    monkeypatch.setattr(stripe.Refund, "create", fake_refund)

    result = asyncio.run(_gateway().refund("cs_1"))

    assert result.success
    assert result.value == "re_1"
    assert refunded == ["pi_1"]
