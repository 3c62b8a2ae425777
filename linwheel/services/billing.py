"""Stripe checkout, customer portal and webhook sync into profiles."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from linwheel.config import settings
from linwheel.db.models import Profile
from linwheel.services.usage import get_or_create_profile

logger = logging.getLogger(__name__)

PLANS = {
    "free": {
        "name": "Free",
        "content_limit": settings.free_content_limit,
        "image_limit": settings.free_image_limit,
    },
    "pro": {
        "name": "Pro",
        "content_limit": None,
        "image_limit": None,
        "price": {"monthly": 29, "yearly": 290},
    },
}


def is_configured() -> bool:
    return bool(settings.stripe_secret_key)


def _stripe():
    if not settings.stripe_secret_key:
        raise RuntimeError("STRIPE_SECRET_KEY is not set. Put it in .env or set it in the environment.")
    stripe.api_key = settings.stripe_secret_key
    return stripe


def price_id(interval: str) -> Optional[str]:
    if interval == "yearly":
        return settings.stripe_pro_yearly_price_id
    return settings.stripe_pro_monthly_price_id


def map_stripe_status(status: Optional[str]) -> str:
    if status in ("active", "trialing"):
        return "pro"
    if status == "past_due":
        return "past_due"
    if status in ("canceled", "unpaid", "incomplete_expired"):
        return "canceled"
    return "free"


def _ts(value: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None) if value else None


def get_or_create_customer(db: Session, profile: Profile) -> str:
    if profile.stripe_customer_id:
        return profile.stripe_customer_id
    customer = _stripe().Customer.create(
        email=profile.email,
        metadata={"supabase_user_id": profile.id},
    )
    profile.stripe_customer_id = customer["id"]
    db.add(profile)
    db.commit()
    logger.info("created stripe customer %s for user %s", customer["id"], profile.id)
    return customer["id"]


def create_checkout_session(db: Session, user_id: str, email: Optional[str], interval: str = "monthly") -> str:
    price = price_id(interval)
    if not price:
        raise RuntimeError(f"No Stripe price configured for the {interval} plan")
    profile = get_or_create_profile(db, user_id, email)
    customer_id = get_or_create_customer(db, profile)
    session = _stripe().checkout.Session.create(
        customer=customer_id,
        mode="subscription",
        line_items=[{"price": price, "quantity": 1}],
        success_url=f"{settings.app_url}/settings?checkout=success",
        cancel_url=f"{settings.app_url}/pricing?checkout=canceled",
        metadata={"supabase_user_id": user_id},
        subscription_data={"metadata": {"supabase_user_id": user_id}},
        allow_promotion_codes=True,
    )
    return session["url"]


def create_portal_session(profile: Profile) -> str:
    session = _stripe().billing_portal.Session.create(
        customer=profile.stripe_customer_id,
        return_url=f"{settings.app_url}/settings",
    )
    return session["url"]


def construct_event(payload: bytes, signature: Optional[str]):
    """Verify the webhook signature; raises ValueError or stripe.SignatureVerificationError."""
    if not settings.stripe_webhook_secret:
        raise RuntimeError("STRIPE_WEBHOOK_SECRET is not set.")
    return stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)


def _profile_by_customer(db: Session, customer_id: Optional[str]) -> Optional[Profile]:
    if not customer_id:
        return None
    return db.query(Profile).filter(Profile.stripe_customer_id == customer_id).first()


def _period_end(subscription: Dict[str, Any]) -> Optional[datetime]:
    items = (subscription.get("items") or {}).get("data") or []
    if items and items[0].get("current_period_end"):
        return _ts(items[0]["current_period_end"])
    return _ts(subscription.get("current_period_end"))


def apply_subscription(db: Session, subscription: Dict[str, Any]) -> Optional[Profile]:
    customer_id = subscription.get("customer")
    profile = _profile_by_customer(db, customer_id)
    if profile is None:
        user_id = (subscription.get("metadata") or {}).get("supabase_user_id")
        if not user_id:
            logger.warning("no user found for stripe customer %s", customer_id)
            return None
        profile = get_or_create_profile(db, user_id)
        profile.stripe_customer_id = customer_id
    profile.subscription_status = map_stripe_status(subscription.get("status"))
    profile.stripe_subscription_id = subscription.get("id")
    profile.stripe_current_period_end = _period_end(subscription)
    db.add(profile)
    db.commit()
    logger.info("user %s subscription now %s", profile.id, profile.subscription_status)
    return profile


def handle_checkout_completed(db: Session, session: Dict[str, Any]) -> None:
    if session.get("mode") != "subscription":
        return
    user_id = (session.get("metadata") or {}).get("supabase_user_id")
    if not user_id:
        logger.warning("checkout.session.completed without supabase_user_id metadata")
        return
    profile = get_or_create_profile(db, user_id)
    profile.stripe_customer_id = session.get("customer")
    profile.stripe_subscription_id = session.get("subscription")
    profile.subscription_status = "pro"
    db.add(profile)
    db.commit()
    logger.info("checkout completed for user %s", user_id)


def handle_subscription_deleted(db: Session, subscription: Dict[str, Any]) -> None:
    profile = _profile_by_customer(db, subscription.get("customer"))
    if profile is None:
        logger.warning("no user found for deleted subscription %s", subscription.get("id"))
        return
    profile.subscription_status = "free"
    profile.stripe_subscription_id = None
    profile.stripe_current_period_end = None
    db.add(profile)
    db.commit()


def sync_customer(db: Session, customer_id: str) -> None:
    subs = _stripe().Subscription.list(customer=customer_id, status="all", limit=1)
    data = subs.get("data") or []
    if data:
        apply_subscription(db, data[0])


def handle_event(db: Session, event: Dict[str, Any]) -> bool:
    """Dispatch a verified webhook event. Returns False for event types we ignore."""
    kind = event["type"]
    obj = event["data"]["object"]
    logger.info("stripe webhook %s", kind)
    if kind == "checkout.session.completed":
        handle_checkout_completed(db, obj)
    elif kind in ("customer.subscription.created", "customer.subscription.updated"):
        apply_subscription(db, obj)
    elif kind == "customer.subscription.deleted":
        handle_subscription_deleted(db, obj)
    elif kind == "invoice.payment_succeeded":
        if obj.get("customer"):
            sync_customer(db, obj["customer"])
    else:
        return False
    return True


def subscription_info(profile: Profile) -> Dict[str, Any]:
    period_end = profile.stripe_current_period_end
    return {
        "subscription_status": profile.subscription_status,
        "stripe_subscription_id": profile.stripe_subscription_id,
        "current_period_end": period_end.isoformat() if period_end else None,
        "has_billing_account": bool(profile.stripe_customer_id),
    }
