# linwheel/routers/auth_linkedin.py
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, require_user
from linwheel.config import settings
from linwheel.db import crud_connections, serializers, token_crypto
from linwheel.deps import get_db
from linwheel.services import linkedin_api

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/linkedin", tags=["linkedin-auth"])

def _settings_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.app_url}/settings?{query}", status_code=302)

def _error_redirect(message: str) -> RedirectResponse:
    return _settings_redirect(f"linkedin_error={quote(message)}")

@router.get("")
def login(user: CurrentUser = Depends(require_user)) -> RedirectResponse:
    if not settings.linkedin_client_id or not settings.linkedin_client_secret or not settings.fernet_key:
        raise HTTPException(500, "Missing LinkedIn or FERNET config in .env")
    state = linkedin_api.create_oauth_state(user.id)
    return RedirectResponse(linkedin_api.auth_url(state), status_code=302)

@router.get("/callback")
def callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if error:
        logger.warning("LinkedIn OAuth error: %s %s", error, error_description or "")
        return _error_redirect(error_description or error)
    if not code or not state:
        return _error_redirect("missing_params")

    user_id = linkedin_api.verify_oauth_state(state)
    if not user_id:
        return _error_redirect("invalid_state")

    try:
        token_resp = linkedin_api.exchange_code_for_token(code)
        info = linkedin_api.get_user_info(token_resp["access_token"])
    except linkedin_api.LinkedInError as e:
        logger.error("LinkedIn token exchange failed for user %s: %s", user_id, e)
        return _error_redirect("token_exchange_failed")

    crud_connections.save_connection(
        db,
        user_id=user_id,
        access_token=token_resp["access_token"],
        expires_in=token_resp.get("expires_in"),
        refresh_token=token_resp.get("refresh_token"),  # may be absent
        profile_id=info.get("sub"),
        profile_name=info.get("name"),
    )
    logger.info("LinkedIn connected for user %s (%s)", user_id, info.get("name"))
    return _settings_redirect("linkedin_connected=true")

@router.get("/status")
def status(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    conn = crud_connections.get_connection(db, user.id)
    if not conn:
        return {"connected": False}
    return {
        "connected": True,
        "expired": crud_connections.is_expired(conn),
        "profile_name": conn.linkedin_profile_name,
        "expires_at": serializers.iso(conn.expires_at),
    }

@router.post("/disconnect")
def disconnect(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    return {"success": True, "deleted": crud_connections.delete_connection(db, user.id)}

@router.post("/refresh")
def refresh(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    conn = crud_connections.get_connection(db, user.id)
    if not conn:
        raise HTTPException(400, "LinkedIn account not connected")
    if not conn.refresh_token:
        raise HTTPException(400, "No refresh token on file. Please reconnect.")
    try:
        resp = linkedin_api.exchange_refresh_for_token(token_crypto.decrypt_token(conn.refresh_token))
    except linkedin_api.LinkedInError as e:
        logger.warning("LinkedIn refresh failed for user %s: %s", user.id, e)
        raise HTTPException(401, "LinkedIn token refresh failed; please reconnect.")
    crud_connections.update_access_token_only(db, user.id, resp["access_token"], resp.get("expires_in"))
    conn = crud_connections.get_connection(db, user.id)
    return {"success": True, "expires_at": serializers.iso(conn.expires_at)}
