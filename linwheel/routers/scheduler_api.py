from typing import Any, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import APIRouter, Depends, HTTPException

from linwheel.config import settings
from linwheel.routers.cron import require_cron_secret
from linwheel.services.scheduler import run_auto_publish

# same shared secret as the external cron endpoints
router = APIRouter(prefix="/scheduler", tags=["scheduler"], dependencies=[Depends(require_cron_secret)])

scheduler: Optional[BackgroundScheduler] = None

@router.post("/run")
def run_now() -> Dict[str, Any]:
    return run_auto_publish()

@router.post("/start")
def start(cron: Optional[str] = None) -> Dict[str, Any]:
    # standard 5-field cron, UTC: m h dom mon dow
    global scheduler
    if scheduler and scheduler.running:
        return {"status": "already-running"}
    cron = cron or settings.auto_publish_cron
    try:
        trigger = CronTrigger.from_crontab(cron, timezone="UTC")
    except ValueError as e:
        raise HTTPException(400, f"Invalid cron expression: {e}")

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(run_auto_publish, trigger, id="auto_publish", replace_existing=True, max_instances=1, coalesce=True)
    scheduler.start()
    return {"status": "started", "cron": cron}

@router.post("/stop")
def stop() -> Dict[str, Any]:
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        return {"status": "stopped"}
    return {"status": "not-running"}

@router.get("/status")
def status() -> Dict[str, Any]:
    running = bool(scheduler and scheduler.running)
    job = scheduler.get_job("auto_publish") if running else None
    return {
        "running": running,
        "next_run_at": job.next_run_time.isoformat() if job and job.next_run_time else None,
    }
