"""Tests for payment intent creation."""

import stripe

import payments


class FakeIntents:
    def __init__(self):
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return {"id": "pi_test", "client_secret": "pi_test_secret"}


def test_creates_intent_in_cents(client, buyer, monkeypatch):
    fake = FakeIntents()
    monkeypatch.setattr(payments, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(payments.stripe.PaymentIntent, "create", fake.create)

    response = client.post("/api/payments/create-payment-intent", json={"amount": 19.99}, headers=buyer[1])
    assert response.status_code == 200
    assert response.json()["client_secret"] == "pi_test_secret"
    assert fake.calls[0]["amount"] == 1999
    assert fake.calls[0]["payment_method_types"] == ["card"]


def test_gateway_failure(client, buyer, monkeypatch):
    def boom(**kwargs):
        raise stripe.StripeError("card network unavailable")

    monkeypatch.setattr(payments, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(payments.stripe.PaymentIntent, "create", boom)

    response = client.post("/api/payments/create-payment-intent", json={"amount": 10}, headers=buyer[1])
    assert response.status_code == 500
    assert response.json()["detail"].startswith("Payment failed")


def test_not_configured(client, buyer, monkeypatch):
    monkeypatch.setattr(payments, "STRIPE_SECRET_KEY", None)
    response = client.post("/api/payments/create-payment-intent", json={"amount": 10}, headers=buyer[1])
    assert response.status_code == 500


def test_buyer_only(client, admin):
    response = client.post("/api/payments/create-payment-intent", json={"amount": 10}, headers=admin[1])
    assert response.status_code == 403
