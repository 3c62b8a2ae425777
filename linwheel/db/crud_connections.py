from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from linwheel.db.base import utcnow
from linwheel.db.models import LinkedInConnection
from linwheel.db import token_crypto

# LinkedIn access tokens default to 60 days when expires_in is absent
DEFAULT_EXPIRES_IN = 60 * 24 * 3600

def calculate_expires_at(expires_in: Optional[int]) -> datetime:
    return utcnow() + timedelta(seconds=expires_in or DEFAULT_EXPIRES_IN)

def get_connection(db: Session, user_id: str) -> Optional[LinkedInConnection]:
    return db.query(LinkedInConnection).filter(LinkedInConnection.user_id == user_id).first()

def save_connection(
    db: Session,
    user_id: str,
    access_token: str,
    expires_in: Optional[int],
    refresh_token: Optional[str] = None,
    profile_id: Optional[str] = None,
    profile_name: Optional[str] = None,
) -> LinkedInConnection:
    """Replace whatever connection the user had. Tokens arrive in plain text and are stored encrypted."""
    db.query(LinkedInConnection).filter(LinkedInConnection.user_id == user_id).delete()
    row = LinkedInConnection(
        user_id=user_id,
        access_token=token_crypto.encrypt_token(access_token),
        refresh_token=token_crypto.encrypt_token(refresh_token) if refresh_token else None,
        expires_at=calculate_expires_at(expires_in),
        linkedin_profile_id=profile_id,
        linkedin_profile_name=profile_name,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def delete_connection(db: Session, user_id: str) -> bool:
    n = db.query(LinkedInConnection).filter(LinkedInConnection.user_id == user_id).delete()
    db.commit()
    return n > 0

def is_expired(conn: LinkedInConnection, now: Optional[datetime] = None) -> bool:
    if not conn.expires_at:
        return False
    expires_at = conn.expires_at.replace(tzinfo=None)
    return expires_at < (now or utcnow())

def update_access_token_only(db: Session, user_id: str, new_access_token: str, expires_in: Optional[int]) -> None:
    conn = get_connection(db, user_id)
    if not conn:
        return
    conn.access_token = token_crypto.encrypt_token(new_access_token)
    conn.expires_at = calculate_expires_at(expires_in)
    db.add(conn)
    db.commit()
