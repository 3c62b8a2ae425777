from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, require_user
from linwheel.config import settings
from linwheel.deps import get_db
from linwheel.services import push

router = APIRouter(prefix="/api/push", tags=["push"])

class SubscriptionKeys(BaseModel):
    p256dh: Optional[str] = None
    auth: Optional[str] = None

class SubscribeIn(BaseModel):
    endpoint: Optional[str] = None
    keys: Optional[SubscriptionKeys] = None

class UnsubscribeIn(BaseModel):
    endpoint: Optional[str] = None

@router.get("/subscribe")
def public_key():
    if not push.is_configured():
        raise HTTPException(503, "Push notifications not configured")
    return {"public_key": settings.vapid_public_key}

@router.post("/subscribe")
def subscribe(body: SubscribeIn, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    if not body.endpoint or not body.keys or not body.keys.p256dh or not body.keys.auth:
        raise HTTPException(400, "Invalid subscription data")
    row = push.save_subscription(db, user.id, body.endpoint, body.keys.p256dh, body.keys.auth)
    return {"success": True, "subscription_id": row.id}

@router.delete("/subscribe")
def unsubscribe(body: UnsubscribeIn, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    if not body.endpoint:
        raise HTTPException(400, "Endpoint is required")
    return {"success": True, "deleted": push.delete_subscription(db, user.id, body.endpoint)}
