import json
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from fanclub.core.auth import get_current_user
from fanclub.core.config import get_settings
from fanclub.core.responses import error_response, success_response
from fanclub.core.types import CheckoutRequest
from fanclub.data.subscriptions import get_subscription, is_subscribed
from fanclub.routes.deps import rate_limited
from fanclub.services import billing

router = APIRouter(prefix="/api/stripe")
log = logging.getLogger("fanclub.stripe")


@router.post("/checkout")
def checkout(body: CheckoutRequest, user=Depends(rate_limited("RL_DEFAULT_PER_MIN", "billing"))):
    cfg = get_settings()
    try:
        result = billing.create_checkout_session(user["user_id"], user["email"], body.plan, cfg)
    except billing.UnknownPlan:
        raise HTTPException(status_code=400, detail="Invalid plan")
    except billing.BillingNotConfigured:
        log.error("stripe checkout requested but billing is not configured")
        raise HTTPException(status_code=500, detail="Stripe not configured")
    except Exception:
        log.exception("stripe.checkout.create failed user=%s", user["user_id"])
        raise HTTPException(status_code=500, detail="Failed to create checkout session")
    log.info("stripe.checkout user=%s plan=%s session=%s", user["user_id"], body.plan, result["sessionId"])
    return success_response(result)


@router.post("/portal")
def portal(user=Depends(rate_limited("RL_DEFAULT_PER_MIN", "billing"))):
    cfg = get_settings()
    try:
        result = billing.create_portal_session(user["user_id"], cfg)
    except billing.BillingNotConfigured:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    except Exception:
        log.exception("billing.portal failed user=%s", user["user_id"])
        raise HTTPException(status_code=500, detail="Failed to create portal session")
    if result is None:
        raise HTTPException(status_code=404, detail="No billing account for this user")
    return success_response(result)


@router.get("/status")
def status(user=Depends(get_current_user)):
    """The server's view of the caller's subscription row."""
    uid = user["user_id"]
    sub = get_subscription(uid)
    return success_response({"subscribed": is_subscribed(uid), "subscription": sub})


@router.post("/webhook")
async def stripe_webhook(request: Request):
    # Only endpoint without auth; protected by Stripe signature verification
    cfg = get_settings()
    if not cfg.STRIPE_WEBHOOK_SECRET:
        log.error("stripe.webhook received but STRIPE_WEBHOOK_SECRET not set")
        return error_response("Webhook not configured", 400)
    if cfg.STRIPE_SECRET_KEY:
        stripe.api_key = cfg.STRIPE_SECRET_KEY

    payload = (await request.body()).decode("utf-8")
    sig = request.headers.get("stripe-signature")
    if not sig:
        return error_response("No signature", 400)
    try:
        stripe.WebhookSignature.verify_header(
            payload, sig, cfg.STRIPE_WEBHOOK_SECRET, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
        )
        event = json.loads(payload)
    except Exception:
        log.warning("stripe.webhook signature verification failed")
        return error_response("Invalid signature", 400)

    etype = event.get("type")
    try:
        billing.handle_event(event)
    except Exception:
        log.exception("stripe.webhook handler error for event=%s", etype)
        return error_response("Webhook handler failed", 500)

    return JSONResponse({"received": True})
