import datetime as dt
import logging
from typing import Any

import stripe

from fanclub.core.config import Settings
from fanclub.data import subscriptions, users
from fanclub.services.plans import CHECKOUT_PLANS

log = logging.getLogger("fanclub.billing")

DEFAULT_PRICE_ID = "pro_monthly"


class BillingNotConfigured(RuntimeError):
    pass


class UnknownPlan(ValueError):
    pass


def configure(cfg: Settings) -> None:
    if not cfg.STRIPE_SECRET_KEY:
        raise BillingNotConfigured("STRIPE_SECRET_KEY not set")
    stripe.api_key = cfg.STRIPE_SECRET_KEY


def as_dict(obj: Any) -> dict[str, Any]:
    """Plain dict view of a Stripe object (or a dict already)."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


# --- helpers for Stripe timestamps/subscription periods ---
def to_utc_dt_from_unix(ts: int | str | None) -> dt.datetime | None:
    try:
        if ts is None:
            return None
        # Stripe uses unix seconds; tolerate strings
        val = int(ts)
        if val <= 0:
            return None
        return dt.datetime.fromtimestamp(val, tz=dt.timezone.utc)
    except (TypeError, ValueError):
        return None


def _first_item(sub: dict[str, Any]) -> dict[str, Any]:
    items = (sub.get("items") or {}).get("data") or []
    return (items[0] if items else {}) or {}


def price_id_of(sub: dict[str, Any]) -> str | None:
    price = _first_item(sub).get("price") or {}
    return price.get("id") if isinstance(price, dict) else price


def derive_period(sub: dict[str, Any]) -> tuple[dt.datetime | None, dt.datetime | None]:
    """Best-effort (current_period_start, current_period_end) for a subscription.

    Newer API versions carry the period on the subscription item; trial_end
    and the price interval are the fallbacks for the end.
    """
    item = _first_item(sub)
    start = to_utc_dt_from_unix(sub.get("current_period_start")) or to_utc_dt_from_unix(
        item.get("current_period_start")
    )
    end = to_utc_dt_from_unix(sub.get("current_period_end")) or to_utc_dt_from_unix(
        item.get("current_period_end")
    )
    if end is None:
        end = to_utc_dt_from_unix(sub.get("trial_end"))
    if end is None:
        recurring = (item.get("price") or {}).get("recurring") or {}
        interval = recurring.get("interval")
        count = int(recurring.get("interval_count") or 1)
        base = start or dt.datetime.now(dt.timezone.utc)
        if interval == "year":
            end = base + dt.timedelta(days=365 * count)
        elif interval == "month":
            # 30 days per month is good enough for gating
            end = base + dt.timedelta(days=30 * count)
    return start, end


def _invoice_subscription(invoice: dict[str, Any]) -> str | None:
    sub = invoice.get("subscription")
    if sub:
        return sub if isinstance(sub, str) else sub.get("id")
    details = ((invoice.get("parent") or {}).get("subscription_details") or {})
    return details.get("subscription")


def price_id_for_plan(plan: str, cfg: Settings) -> str:
    if plan not in CHECKOUT_PLANS:
        raise UnknownPlan(plan)
    price_id = getattr(cfg, CHECKOUT_PLANS[plan]["price_env"])
    if not price_id:
        raise BillingNotConfigured(f"{CHECKOUT_PLANS[plan]['price_env']} not set")
    return price_id


def create_checkout_session(user_id: str, email: str | None, plan: str, cfg: Settings) -> dict[str, Any]:
    if not cfg.PUBLIC_BASE_URL:
        raise BillingNotConfigured("PUBLIC_BASE_URL not set")
    price_id = price_id_for_plan(plan, cfg)
    configure(cfg)

    customer_id = subscriptions.get_stripe_customer_id(user_id)
    if not customer_id:
        profile = users.get_user(user_id) or {}
        customer = stripe.Customer.create(
            email=email or profile.get("email") or None,
            name=profile.get("name") or None,
            metadata={"userId": user_id},
        )
        customer_id = customer["id"]
        subscriptions.upsert_subscription(
            user_id, status="incomplete", stripe_customer_id=customer_id, price_id=price_id
        )
        log.info("billing.customer created user=%s customer=%s", user_id, customer_id)

    session = stripe.checkout.Session.create(
        customer=customer_id,
        payment_method_types=["card"],
        line_items=[{"price": price_id, "quantity": 1}],
        mode="subscription",
        client_reference_id=user_id,
        success_url=f"{cfg.PUBLIC_BASE_URL}/dashboard?success=true",
        cancel_url=f"{cfg.PUBLIC_BASE_URL}/dashboard?canceled=true",
        metadata={"userId": user_id, "plan": plan},
    )
    return {"sessionId": session["id"], "url": session["url"]}


def create_portal_session(user_id: str, cfg: Settings) -> dict[str, Any] | None:
    if not cfg.PUBLIC_BASE_URL:
        raise BillingNotConfigured("PUBLIC_BASE_URL not set")
    configure(cfg)
    customer_id = subscriptions.get_stripe_customer_id(user_id)
    if not customer_id:
        return None
    params: dict[str, Any] = {"customer": customer_id, "return_url": f"{cfg.PUBLIC_BASE_URL}/dashboard"}
    if cfg.STRIPE_PORTAL_CONFIGURATION_ID:
        params["configuration"] = cfg.STRIPE_PORTAL_CONFIGURATION_ID
    ps = stripe.billing_portal.Session.create(**params)
    return {"url": ps["url"]}


# --- webhook event handlers ---
def _on_checkout_completed(session: dict[str, Any]) -> None:
    user_id = (session.get("metadata") or {}).get("userId") or session.get("client_reference_id")
    customer_id = session.get("customer")
    sub_id = session.get("subscription")
    if not user_id:
        log.warning("stripe.webhook checkout.session.completed without user reference")
        return

    start = end = None
    price_id = None
    if sub_id:
        sub = as_dict(stripe.Subscription.retrieve(sub_id))
        start, end = derive_period(sub)
        price_id = price_id_of(sub)
    now = dt.datetime.now(dt.timezone.utc)
    subscriptions.upsert_subscription(
        user_id,
        status="active",
        stripe_customer_id=customer_id,
        stripe_subscription_id=sub_id,
        price_id=price_id or DEFAULT_PRICE_ID,
        current_period_start=start or now,
        current_period_end=end or now + dt.timedelta(days=30),
    )
    log.info("stripe.webhook event=checkout.session.completed user=%s sub=%s", user_id, sub_id)


def _on_subscription_changed(sub: dict[str, Any]) -> None:
    customer_id = sub.get("customer")
    user_id = subscriptions.find_user_id_by_stripe_customer(customer_id)
    if not user_id:
        log.error("stripe.webhook no user for customer=%s", customer_id)
        return
    start, end = derive_period(sub)
    subscriptions.update_subscription_by_customer(
        customer_id,
        status=sub.get("status") or "active",
        stripe_subscription_id=sub.get("id"),
        price_id=price_id_of(sub),
        current_period_start=start,
        current_period_end=end,
    )
    log.info("stripe.webhook subscription user=%s status=%s", user_id, sub.get("status"))


def _on_subscription_deleted(sub: dict[str, Any]) -> None:
    subscriptions.update_subscription_by_customer(sub.get("customer"), status="canceled")
    log.info("stripe.webhook subscription canceled customer=%s", sub.get("customer"))


def _on_payment_succeeded(invoice: dict[str, Any]) -> None:
    customer_id = invoice.get("customer")
    user_id = subscriptions.find_user_id_by_stripe_customer(customer_id)
    if not user_id:
        log.error("stripe.webhook no user for customer=%s", customer_id)
        return
    payment_intent = invoice.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")
    subscriptions.record_sale(
        user_id,
        invoice.get("amount_paid") or 0,
        subscription_id=_invoice_subscription(invoice),
        payment_intent_id=payment_intent,
    )
    log.info("stripe.webhook payment recorded user=%s amount=%s", user_id, invoice.get("amount_paid"))


def _on_payment_failed(invoice: dict[str, Any]) -> None:
    subscriptions.update_subscription_by_customer(invoice.get("customer"), status="past_due")
    log.info("stripe.webhook payment failed customer=%s", invoice.get("customer"))


EVENT_HANDLERS = {
    "checkout.session.completed": _on_checkout_completed,
    "customer.subscription.created": _on_subscription_changed,
    "customer.subscription.updated": _on_subscription_changed,
    "customer.subscription.deleted": _on_subscription_deleted,
    "invoice.payment_succeeded": _on_payment_succeeded,
    "invoice.payment_failed": _on_payment_failed,
}


def handle_event(event: dict[str, Any]) -> bool:
    """Apply one webhook event; False when the type is not handled."""
    etype = event.get("type")
    handler = EVENT_HANDLERS.get(etype)
    if handler is None:
        log.info("stripe.webhook ignored event=%s", etype)
        return False
    handler(as_dict((event.get("data") or {}).get("object")))
    return True
