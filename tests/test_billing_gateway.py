import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from app.core.errors import (
    BillingNotConfigured,
    CheckoutCreationFailed,
    InvalidWebhookSignature,
    ValidationError,
)
from app.services.billing_gateway import (
    CheckoutRequest,
    StripeCheckoutGateway,
    to_minor_units,
    verify_webhook_event,
)

SECRET = "whsec_test"


def _request() -> CheckoutRequest:
    return CheckoutRequest(
        external_id="plan_acme_1773144000000",
        restaurant_slug="acme",
        restaurant_name="Acme Burger",
        plan_id="plan_basic",
        plan_name="Plano Básico",
        amount=Decimal("149.90"),
        success_url="http://localhost:3000/master?checkout=success&externalId=plan_acme_1773144000000",
        cancel_url="http://localhost:3000/master?checkout=cancel&externalId=plan_acme_1773144000000",
        customer_email="dono@acme.com",
    )


def _sign(payload: bytes, timestamp: int | None = None, secret: str = SECRET) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def session_create(monkeypatch):
    calls = []
    outcome = {"result": SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")}

    def fake_create(**params):
        calls.append(params)
        if isinstance(outcome["result"], Exception):
            raise outcome["result"]
        return outcome["result"]

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return SimpleNamespace(calls=calls, outcome=outcome)


def test_to_minor_units_rounds_to_cents():
    assert to_minor_units(Decimal("149.90")) == 14990
    assert to_minor_units(Decimal("0.005")) == 1


def test_checkout_session_is_created_with_monthly_recurring_price(session_create):
    session = StripeCheckoutGateway(secret_key="sk_test_123").create_checkout_session(_request())

    assert session.session_id == "cs_test_1"
    assert session.url == "https://checkout.stripe.com/c/pay/cs_test_1"
    params = session_create.calls[0]
    assert params["api_key"] == "sk_test_123"
    assert params["mode"] == "subscription"
    assert params["client_reference_id"] == "plan_acme_1773144000000"
    assert params["customer_email"] == "dono@acme.com"
    price_data = params["line_items"][0]["price_data"]
    assert price_data["unit_amount"] == 14990
    assert price_data["currency"] == "brl"
    assert price_data["recurring"] == {"interval": "month"}
    assert price_data["product_data"]["name"] == "Plano Básico"
    assert params["metadata"]["restaurantSlug"] == "acme"
    assert params["subscription_data"]["metadata"]["externalId"] == "plan_acme_1773144000000"


def test_provider_rejection_forwards_status_and_message(session_create):
    session_create.outcome["result"] = stripe.CardError(
        "Your card was declined.",
        None,
        "card_declined",
        http_status=402,
        json_body={"error": {"message": "Your card was declined."}},
    )

    with pytest.raises(CheckoutCreationFailed) as exc_info:
        StripeCheckoutGateway(secret_key="sk_test_123").create_checkout_session(_request())

    assert exc_info.value.status_code == 402
    assert exc_info.value.message == "Your card was declined."
    assert exc_info.value.details == {"error": {"message": "Your card was declined."}}


@pytest.mark.parametrize(
    "url",
    [None, "https://evil.example.com/pay", "http://checkout.stripe.com/c/pay/cs_test_1"],
)
def test_response_without_valid_checkout_url_is_rejected(session_create, url):
    session_create.outcome["result"] = SimpleNamespace(id="cs_test_1", url=url)

    with pytest.raises(CheckoutCreationFailed) as exc_info:
        StripeCheckoutGateway(secret_key="sk_test_123").create_checkout_session(_request())

    assert exc_info.value.status_code == 502


def test_network_failure_is_reported_as_upstream_error(session_create):
    session_create.outcome["result"] = stripe.APIConnectionError("connection refused")

    with pytest.raises(CheckoutCreationFailed) as exc_info:
        StripeCheckoutGateway(secret_key="sk_test_123").create_checkout_session(_request())

    assert exc_info.value.status_code == 502


def test_missing_secret_key_is_not_configured(session_create):
    gateway = StripeCheckoutGateway(secret_key="")

    assert gateway.is_configured is False
    with pytest.raises(BillingNotConfigured):
        gateway.create_checkout_session(_request())
    assert session_create.calls == []


def test_webhook_signature_is_accepted():
    payload = json.dumps({"type": "checkout.session.completed"}).encode()

    verify_webhook_event(payload, _sign(payload), SECRET)


@pytest.mark.parametrize(
    ("header_for", "secret"),
    [
        (lambda payload: _sign(payload, secret="whsec_outro"), SECRET),
        (lambda payload: _sign(payload, timestamp=int(time.time()) - 3_600), SECRET),
        (lambda payload: _sign(b"{}"), SECRET),
        (lambda payload: "t=abc,v1=123", SECRET),
        (lambda payload: None, SECRET),
        (lambda payload: _sign(payload), ""),
    ],
)
def test_webhook_signature_rejections(header_for, secret):
    payload = json.dumps({"type": "checkout.session.completed"}).encode()

    with pytest.raises(InvalidWebhookSignature):
        verify_webhook_event(payload, header_for(payload), secret)


def test_webhook_with_invalid_json_is_validation_error():
    with pytest.raises(ValidationError):
        verify_webhook_event(b"not-json", _sign(b"not-json"), SECRET)
