from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from linwheel.config import settings
from linwheel.db.base import utcnow
from linwheel.db.models import Profile

def get_or_create_profile(db: Session, user_id: str, email: Optional[str] = None) -> Profile:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile:
        if email and not profile.email:
            profile.email = email
            db.commit()
        return profile
    profile = Profile(id=user_id, email=email)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile

def is_pro(profile: Optional[Profile]) -> bool:
    return bool(profile and profile.subscription_status == "pro")

def _usage(count: int, limit: int, pro: bool) -> Dict[str, Any]:
    return {
        "count": count,
        "limit": None if pro else limit,  # None == unlimited
        "remaining": None if pro else max(0, limit - count),
        "subscription_status": "pro" if pro else "free",
    }

def content_usage(db: Session, user_id: str) -> Dict[str, Any]:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    return _usage(profile.generation_count if profile else 0, settings.free_content_limit, is_pro(profile))

def image_usage(db: Session, user_id: str) -> Dict[str, Any]:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    return _usage(profile.image_generation_count if profile else 0, settings.free_image_limit, is_pro(profile))

def full_usage(db: Session, user_id: str) -> Dict[str, Any]:
    content = content_usage(db, user_id)
    return {
        "content": content,
        "images": image_usage(db, user_id),
        "subscription_status": content["subscription_status"],
    }

def can_generate(db: Session, user_id: str) -> bool:
    u = content_usage(db, user_id)
    return u["remaining"] is None or u["remaining"] > 0

def can_generate_images(db: Session, user_id: str) -> bool:
    u = image_usage(db, user_id)
    return u["remaining"] is None or u["remaining"] > 0

def increment_usage(db: Session, user_id: str) -> None:
    profile = get_or_create_profile(db, user_id)
    profile.generation_count = (profile.generation_count or 0) + 1
    db.commit()

def increment_image_usage(db: Session, user_id: str, count: int = 1) -> None:
    profile = get_or_create_profile(db, user_id)
    profile.image_generation_count = (profile.image_generation_count or 0) + count
    db.commit()

def mark_interested_in_pro(db: Session, user_id: str) -> None:
    profile = get_or_create_profile(db, user_id)
    profile.interested_in_pro = True
    profile.interested_at = utcnow()
    db.commit()
