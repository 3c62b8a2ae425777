from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from linwheel.db import models
from linwheel.main import app
from linwheel.services import billing

client = TestClient(app)


@pytest.mark.parametrize("status,expected", [
    ("active", "pro"),
    ("trialing", "pro"),
    ("past_due", "past_due"),
    ("canceled", "canceled"),
    ("unpaid", "canceled"),
    ("incomplete", "free"),
    (None, "free"),
])
def test_map_stripe_status(status, expected):
    assert billing.map_stripe_status(status) == expected


def test_checkout_completed_upgrades_profile(db):
    handled = billing.handle_event(db, {
        "type": "checkout.session.completed",
        "data": {"object": {"mode": "subscription", "customer": "cus_1", "subscription": "sub_1",
                            "metadata": {"supabase_user_id": "user-1"}}},
    })
    assert handled is True
    profile = db.query(models.Profile).filter(models.Profile.id == "user-1").one()
    assert profile.subscription_status == "pro"
    assert profile.stripe_customer_id == "cus_1"


def test_subscription_updated_and_deleted(db):
    db.add(models.Profile(id="user-1", stripe_customer_id="cus_1", subscription_status="pro"))
    db.commit()

    billing.handle_event(db, {
        "type": "customer.subscription.updated",
        "data": {"object": {"id": "sub_1", "customer": "cus_1", "status": "past_due",
                            "items": {"data": [{"current_period_end": 1893456000}]}}},
    })
    profile = db.query(models.Profile).filter(models.Profile.id == "user-1").one()
    assert profile.subscription_status == "past_due"
    assert profile.stripe_current_period_end.year == 2030

    billing.handle_event(db, {"type": "customer.subscription.deleted",
                              "data": {"object": {"id": "sub_1", "customer": "cus_1"}}})
    db.refresh(profile)
    assert profile.subscription_status == "free"
    assert profile.stripe_subscription_id is None


def test_unhandled_event_type(db):
    assert billing.handle_event(db, {"type": "charge.refunded", "data": {"object": {}}}) is False


@patch("linwheel.services.billing.construct_event")
def test_webhook_dispatches_verified_event(mock_construct):
    mock_construct.return_value = {"type": "invoice.created", "data": {"object": {}}}
    resp = client.post("/api/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=abc"})
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "handled": False}
    mock_construct.assert_called_once_with(b"{}", "t=1,v1=abc")


@patch("linwheel.services.billing.construct_event", side_effect=ValueError("bad payload"))
def test_webhook_rejects_bad_signature(mock_construct):
    resp = client.post("/api/stripe/webhook", content=b"nope")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Webhook signature verification failed"}


def test_checkout_unavailable_without_stripe_key(auth_headers):
    resp = client.post("/api/stripe/checkout", json={"interval": "monthly"}, headers=auth_headers())
    assert resp.status_code == 503


def test_checkout_session(db, auth_headers, monkeypatch):
    fake = MagicMock()
    fake.Customer.create.return_value = {"id": "cus_9"}
    fake.checkout.Session.create.return_value = {"url": "https://checkout.stripe.test/s/1"}
    monkeypatch.setattr(billing, "_stripe", lambda: fake)
    monkeypatch.setattr(billing, "is_configured", lambda: True)
    monkeypatch.setattr(billing.settings, "stripe_pro_yearly_price_id", "price_yearly")

    resp = client.post("/api/stripe/checkout", json={"interval": "yearly"}, headers=auth_headers("buyer"))
    assert resp.json() == {"url": "https://checkout.stripe.test/s/1"}
    kwargs = fake.checkout.Session.create.call_args.kwargs
    assert kwargs["customer"] == "cus_9"
    assert kwargs["line_items"] == [{"price": "price_yearly", "quantity": 1}]
    assert kwargs["metadata"] == {"supabase_user_id": "buyer"}


def test_usage_and_upgrade_interest(db, auth_headers):
    headers = auth_headers("user-5")
    usage = client.get("/api/usage", headers=headers).json()
    assert usage["content"]["remaining"] == 25
    assert usage["subscription_status"] == "free"

    assert client.post("/api/upgrade-interest", headers=headers).json() == {"success": True}
    me = client.get("/api/me", headers=headers).json()
    assert me["profile"]["interested_in_pro"] is True
    assert me["user"] == {"id": "user-5", "email": "user@example.com"}


def test_portal_requires_billing_account(auth_headers, monkeypatch):
    monkeypatch.setattr(billing, "is_configured", lambda: True)
    resp = client.post("/api/stripe/portal", headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json() == {"error": "No billing account found"}
