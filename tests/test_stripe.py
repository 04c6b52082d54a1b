"""
Stripe Billing Tests

Checkout and portal session creation with the Stripe SDK mocked out, and
webhook processing of signed events into subscription and sales rows.
"""

import datetime as dt
import json
import time
from unittest.mock import patch

from fanclub.data import subscriptions
from fanclub.data.users import ensure_user_row
from fanclub.services import billing
from tests.conftest import auth, stripe_signature

USER = "payer-1"


def _post_event(client, event, secret=None):
    payload = json.dumps(event)
    sig = stripe_signature(payload, secret) if secret else stripe_signature(payload)
    return client.post(
        "/api/stripe/webhook",
        content=payload,
        headers={"stripe-signature": sig, "content-type": "application/json"},
    )


def _with_customer(user_id=USER, customer_id="cus_123"):
    ensure_user_row(user_id, f"{user_id}@example.com", "Payer")
    subscriptions.upsert_subscription(user_id, status="incomplete", stripe_customer_id=customer_id)


class TestCheckout:
    """POST /api/stripe/checkout"""

    def test_creates_customer_and_session(self, client):
        with patch("stripe.Customer.create", return_value={"id": "cus_new"}) as customer, patch(
            "stripe.checkout.Session.create",
            return_value={"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"},
        ) as session:
            response = client.post("/api/stripe/checkout", json={"plan": "monthly"}, headers=auth(USER))

        assert response.status_code == 200
        assert response.json()["data"] == {"sessionId": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"}
        customer.assert_called_once()
        kwargs = session.call_args.kwargs
        assert kwargs["customer"] == "cus_new"
        assert kwargs["mode"] == "subscription"
        assert kwargs["line_items"] == [{"price": "price_monthly_test", "quantity": 1}]
        assert kwargs["success_url"] == "https://dashboard.example.com/dashboard?success=true"
        assert kwargs["metadata"] == {"userId": USER, "plan": "monthly"}

        row = subscriptions.get_subscription(USER)
        assert row["stripe_customer_id"] == "cus_new"
        assert row["status"] == "incomplete"

    def test_reuses_existing_customer(self, client):
        _with_customer()
        with patch("stripe.Customer.create") as customer, patch(
            "stripe.checkout.Session.create", return_value={"id": "cs_2", "url": "https://x"}
        ) as session:
            client.post("/api/stripe/checkout", json={"plan": "yearly"}, headers=auth(USER))
        customer.assert_not_called()
        assert session.call_args.kwargs["customer"] == "cus_123"
        assert session.call_args.kwargs["line_items"][0]["price"] == "price_yearly_test"

    def test_invalid_plan_is_400(self, client):
        response = client.post("/api/stripe/checkout", json={"plan": "weekly"}, headers=auth(USER))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid plan"}

    def test_stripe_failure_is_500(self, client):
        with patch("stripe.Customer.create", side_effect=RuntimeError("boom")):
            response = client.post("/api/stripe/checkout", json={"plan": "monthly"}, headers=auth(USER))
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create checkout session"}

    def test_requires_auth(self, client):
        assert client.post("/api/stripe/checkout", json={"plan": "monthly"}).status_code == 401


class TestPortal:
    """POST /api/stripe/portal"""

    def test_no_customer_is_404(self, client):
        response = client.post("/api/stripe/portal", headers=auth(USER))
        assert response.status_code == 404

    def test_portal_url(self, client):
        _with_customer()
        with patch("stripe.billing_portal.Session.create", return_value={"url": "https://billing"}) as ps:
            response = client.post("/api/stripe/portal", headers=auth(USER))
        assert response.json()["data"] == {"url": "https://billing"}
        assert ps.call_args.kwargs["return_url"] == "https://dashboard.example.com/dashboard"


class TestStatus:
    """GET /api/stripe/status"""

    def test_unsubscribed(self, client):
        data = client.get("/api/stripe/status", headers=auth(USER)).json()["data"]
        assert data == {"subscribed": False, "subscription": None}


class TestWebhook:
    """POST /api/stripe/webhook"""

    def test_missing_signature(self, client):
        response = client.post("/api/stripe/webhook", content="{}")
        assert response.status_code == 400
        assert response.json() == {"error": "No signature"}

    def test_bad_signature(self, client):
        response = _post_event(client, {"type": "invoice.payment_failed"}, secret="whsec_wrong")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid signature"}

    def test_stale_signature_rejected(self, client):
        payload = json.dumps({"type": "invoice.payment_failed"})
        sig = stripe_signature(payload, timestamp=int(time.time()) - 3600)
        response = client.post("/api/stripe/webhook", content=payload, headers={"stripe-signature": sig})
        assert response.status_code == 400

    def test_unknown_event_acknowledged(self, client):
        response = _post_event(client, {"type": "customer.created", "data": {"object": {}}})
        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_checkout_completed_activates(self, client):
        _with_customer()
        start = int(time.time())
        end = start + 30 * 86400
        sub = {
            "id": "sub_1",
            "current_period_start": start,
            "current_period_end": end,
            "items": {"data": [{"price": {"id": "price_monthly_test"}}]},
        }
        event = {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "customer": "cus_123",
                    "subscription": "sub_1",
                    "metadata": {"userId": USER},
                }
            },
        }
        with patch("stripe.Subscription.retrieve", return_value=sub):
            response = _post_event(client, event)
        assert response.status_code == 200

        row = subscriptions.get_subscription(USER)
        assert row["status"] == "active"
        assert row["stripe_subscription_id"] == "sub_1"
        assert row["price_id"] == "price_monthly_test"
        assert subscriptions.is_subscribed(USER)

        status = client.get("/api/stripe/status", headers=auth(USER)).json()["data"]
        assert status["subscribed"] is True

    def test_subscription_updated(self, client):
        _with_customer()
        end = int(time.time()) + 86400
        event = {
            "type": "customer.subscription.updated",
            "data": {
                "object": {
                    "id": "sub_9",
                    "customer": "cus_123",
                    "status": "trialing",
                    "items": {"data": [{"current_period_end": end, "price": {"id": "price_yearly_test"}}]},
                }
            },
        }
        assert _post_event(client, event).status_code == 200
        row = subscriptions.get_subscription(USER)
        assert row["status"] == "trialing"
        assert row["price_id"] == "price_yearly_test"
        assert subscriptions.is_subscribed(USER)

    def test_subscription_deleted_cancels(self, client):
        _with_customer()
        event = {"type": "customer.subscription.deleted", "data": {"object": {"customer": "cus_123"}}}
        assert _post_event(client, event).status_code == 200
        assert subscriptions.get_subscription(USER)["status"] == "canceled"
        assert not subscriptions.is_subscribed(USER)

    def test_payment_failed_marks_past_due(self, client):
        _with_customer()
        event = {"type": "invoice.payment_failed", "data": {"object": {"customer": "cus_123"}}}
        assert _post_event(client, event).status_code == 200
        assert subscriptions.get_subscription(USER)["status"] == "past_due"

    def test_payment_succeeded_records_sale(self, client):
        _with_customer()
        event = {
            "type": "invoice.payment_succeeded",
            "data": {
                "object": {
                    "customer": "cus_123",
                    "amount_paid": 980,
                    "payment_intent": "pi_1",
                    "parent": {"subscription_details": {"subscription": "sub_1"}},
                }
            },
        }
        assert _post_event(client, event).status_code == 200
        sales = subscriptions.list_sales(USER)
        assert len(sales) == 1
        assert sales[0]["amount"] == 980
        assert sales[0]["subscription_id"] == "sub_1"
        assert sales[0]["stripe_payment_intent_id"] == "pi_1"

    def test_handler_error_is_500(self, client):
        with patch.object(billing, "EVENT_HANDLERS", {"invoice.payment_failed": _raise}):
            response = _post_event(client, {"type": "invoice.payment_failed", "data": {"object": {}}})
        assert response.status_code == 500


def _raise(obj):
    raise RuntimeError("db down")


class TestDerivePeriod:
    """Subscription period fallbacks."""

    def test_interval_fallback(self):
        sub = {
            "current_period_start": 1_700_000_000,
            "items": {"data": [{"price": {"recurring": {"interval": "year", "interval_count": 1}}}]},
        }
        start, end = billing.derive_period(sub)
        assert end - start == dt.timedelta(days=365)

    def test_trial_end(self):
        start, end = billing.derive_period({"trial_end": 1_700_000_000})
        assert start is None
        assert end == dt.datetime.fromtimestamp(1_700_000_000, tz=dt.timezone.utc)
