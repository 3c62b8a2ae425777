import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, require_user
from linwheel.deps import get_db
from linwheel.services import billing, usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["billing"])

class CheckoutIn(BaseModel):
    interval: str = "monthly"

def _require_stripe() -> None:
    if not billing.is_configured():
        raise HTTPException(503, "Billing not configured")

@router.post("/stripe/checkout")
def checkout(body: CheckoutIn, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    _require_stripe()
    if body.interval not in ("monthly", "yearly"):
        raise HTTPException(400, "interval must be monthly or yearly")
    try:
        url = billing.create_checkout_session(db, user.id, user.email, body.interval)
    except RuntimeError as e:
        raise HTTPException(503, str(e))
    except stripe.StripeError as e:
        logger.error("stripe checkout failed for %s: %s", user.id, e)
        raise HTTPException(500, "Failed to create checkout session")
    return {"url": url}

@router.post("/stripe/portal")
def portal(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    _require_stripe()
    profile = usage.get_or_create_profile(db, user.id, user.email)
    if not profile.stripe_customer_id:
        raise HTTPException(400, "No billing account found")
    try:
        url = billing.create_portal_session(profile)
    except stripe.StripeError as e:
        logger.error("stripe portal failed for %s: %s", user.id, e)
        raise HTTPException(500, "Failed to create portal session")
    return {"url": url}

@router.get("/stripe/subscription")
def subscription(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    profile = usage.get_or_create_profile(db, user.id, user.email)
    return billing.subscription_info(profile)

@router.post("/stripe/webhook")
async def webhook(request: Request, stripe_signature: Optional[str] = Header(None), db: Session = Depends(get_db)):
    payload = await request.body()
    try:
        event = billing.construct_event(payload, stripe_signature)
    except RuntimeError as e:
        raise HTTPException(503, str(e))
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("rejected stripe webhook: %s", e)
        raise HTTPException(400, "Webhook signature verification failed")
    return {"received": True, "handled": billing.handle_event(db, event)}

@router.get("/usage")
def get_usage(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    return usage.full_usage(db, user.id)

@router.post("/upgrade-interest")
def upgrade_interest(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    usage.get_or_create_profile(db, user.id, user.email)
    usage.mark_interested_in_pro(db, user.id)
    return {"success": True}

@router.get("/me")
def me(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    profile = usage.get_or_create_profile(db, user.id, user.email)
    return {
        "user": {"id": user.id, "email": user.email},
        "profile": {
            "full_name": profile.full_name,
            "subscription_status": profile.subscription_status,
            "interested_in_pro": profile.interested_in_pro,
        },
        "usage": usage.full_usage(db, user.id),
    }
