import json
import logging
from typing import Any, Dict, List, Optional

from pywebpush import WebPushException, webpush
from sqlalchemy.orm import Session

from linwheel.config import settings
from linwheel.db.models import PushSubscription

logger = logging.getLogger(__name__)

# the push service answers 404/410 once a browser has dropped the subscription
GONE_STATUSES = (404, 410)


def is_configured() -> bool:
    return bool(settings.vapid_public_key and settings.vapid_private_key)


def list_subscriptions(db: Session, user_id: str) -> List[PushSubscription]:
    return db.query(PushSubscription).filter(PushSubscription.user_id == user_id).all()


def save_subscription(db: Session, user_id: str, endpoint: str, p256dh: str, auth: str) -> PushSubscription:
    row = (
        db.query(PushSubscription)
        .filter(PushSubscription.user_id == user_id, PushSubscription.endpoint == endpoint)
        .first()
    )
    if row is None:
        row = PushSubscription(user_id=user_id, endpoint=endpoint)
    row.p256dh = p256dh
    row.auth = auth
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def delete_subscription(db: Session, user_id: str, endpoint: str) -> int:
    n = (
        db.query(PushSubscription)
        .filter(PushSubscription.user_id == user_id, PushSubscription.endpoint == endpoint)
        .delete(synchronize_session=False)
    )
    db.commit()
    return n


def send_notification(db: Session, sub: PushSubscription, payload: Dict[str, Any]) -> bool:
    if not is_configured():
        logger.warning("VAPID keys not configured, skipping notification")
        return False
    try:
        webpush(
            subscription_info={"endpoint": sub.endpoint, "keys": {"p256dh": sub.p256dh, "auth": sub.auth}},
            data=json.dumps(payload),
            vapid_private_key=settings.vapid_private_key,
            vapid_claims={"sub": settings.vapid_subject},
        )
        return True
    except WebPushException as e:
        status = e.response.status_code if e.response is not None else None
        if status in GONE_STATUSES:
            logger.info("push subscription %s expired (%s), removing", sub.id, status)
            db.delete(sub)
            db.commit()
        else:
            logger.error("push to subscription %s failed: %s", sub.id, e)
        return False


def send_to_user(db: Session, user_id: str, payload: Dict[str, Any]) -> int:
    """Send to every subscription the user has; returns how many were delivered."""
    return sum(1 for sub in list_subscriptions(db, user_id) if send_notification(db, sub, payload))


def _snippet(text: Optional[str], n: int = 50) -> str:
    text = (text or "").strip()
    return text[:n] + ("..." if len(text) > n else "")


def send_post_published_notification(db: Session, user_id: str, title: str, post_url: str, content_id: str,
                                     content_type: str = "post") -> int:
    return send_to_user(db, user_id, {
        "title": "Post Published!",
        "body": f'"{_snippet(title)}" is now live on LinkedIn',
        "icon": "/logo.png",
        "badge": "/badge.png",
        "url": post_url,
        "data": {"content_type": content_type, "content_id": content_id, "action": "post_published"},
    })


def send_content_reminder(db: Session, user_id: str, approved_count: int) -> int:
    return send_to_user(db, user_id, {
        "title": "Nothing scheduled for tomorrow",
        "body": f"You have {approved_count} approved piece{'s' if approved_count != 1 else ''} ready. Schedule one to stay consistent.",
        "icon": "/logo.png",
        "badge": "/badge.png",
        "url": "/dashboard",
        "data": {"action": "content_reminder"},
    })
