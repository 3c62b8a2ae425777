from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from linwheel.config import settings
from linwheel.services import scheduler

router = APIRouter(prefix="/api/cron", tags=["cron"])

def require_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not settings.cron_secret or authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(401, "Unauthorized")

@router.api_route("/auto-publish", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
def auto_publish():
    return {"success": True, **scheduler.run_auto_publish()}

@router.api_route("/content-reminders", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
def content_reminders():
    return {"success": True, **scheduler.run_content_reminders()}
