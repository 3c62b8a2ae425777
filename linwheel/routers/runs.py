from typing import Any, List, Optional

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, get_current_user
from linwheel.db import crud, models, serializers
from linwheel.deps import get_db
from linwheel.services import generation, llm_client, pipeline, sources, usage

router = APIRouter(prefix="/api", tags=["runs"])

class GenerateIn(BaseModel):
    transcript: Optional[str] = None
    source_label: Optional[str] = None
    selected_angles: Optional[List[str]] = None
    selected_article_angles: Optional[List[str]] = None
    source_urls: Optional[List[Any]] = None

class GenerateMoreIn(BaseModel):
    angle: str
    count: int = 2

class GenerateMoreArticlesIn(BaseModel):
    angle: str
    count: int = 1

@router.post("/generate")
def generate(
    body: GenerateIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    source_urls = sources.valid_source_urls(body.source_urls)
    if (not body.transcript or not body.transcript.strip()) and not source_urls:
        raise HTTPException(400, "Transcript is required")

    angles = pipeline.filter_angles(body.selected_angles, models.POST_ANGLES, default_all=True)
    article_angles = pipeline.filter_angles(body.selected_article_angles, models.ARTICLE_ANGLES, default_all=False)

    if user:
        if not usage.can_generate(db, user.id):
            return JSONResponse(
                status_code=403,
                content={"error": "Generation limit reached", "usage": usage.content_usage(db, user.id)},
            )
        usage.increment_usage(db, user.id)

    run = crud.create_run(
        db,
        transcript=body.transcript or "",
        source_label=(body.source_label or "").strip() or "Untitled",
        selected_angles=angles,
        selected_article_angles=article_angles,
        user_id=user.id if user else None,
    )
    if source_urls:
        crud.create_source_links(db, run.id, source_urls)
    # the pipeline takes minutes; the client polls GET /api/runs/{id}
    background_tasks.add_task(generation.process_run, run.id)
    return {"run_id": run.id}

@router.get("/runs")
def list_runs(db: Session = Depends(get_db)):
    return {"runs": [serializers.run_dict(r) for r in crud.list_runs(db)]}

@router.delete("/runs")
def delete_all_runs(db: Session = Depends(get_db)):
    return {"deleted": crud.delete_all_runs(db)}

def _run_or_404(db: Session, run_id: str) -> models.GenerationRun:
    run = crud.get_run(db, run_id)
    if not run:
        raise HTTPException(404, "Run not found")
    return run

@router.get("/runs/{run_id}")
def get_run(run_id: str, db: Session = Depends(get_db)):
    run = _run_or_404(db, run_id)
    return {
        "run": serializers.run_dict(run),
        "insights": [serializers.insight_dict(i) for i in crud.list_insights(db, run_id)],
        "posts": [serializers.post_dict(p, crud.get_post_intent(db, p.id)) for p in crud.list_posts(db, run_id)],
        "articles": [
            serializers.article_dict(a, crud.get_article_intent(db, a.id)) for a in crud.list_articles(db, run_id)
        ],
        "sources": [serializers.source_link_dict(s) for s in crud.list_source_links(db, run_id)],
    }

@router.delete("/runs/{run_id}")
def delete_run(run_id: str, db: Session = Depends(get_db)):
    crud.delete_run(db, _run_or_404(db, run_id))
    return {"deleted": True}

def _has_input(db: Session, run: models.GenerationRun) -> bool:
    return bool((run.transcript or "").strip() or crud.list_source_links(db, run.id))

@router.post("/runs/{run_id}/retry")
def retry_run(run_id: str, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    run = _run_or_404(db, run_id)
    if run.status != "failed":
        raise HTTPException(400, "Can only retry failed runs")
    if not _has_input(db, run):
        raise HTTPException(400, "No transcript available for retry")
    generation.reset_for_retry(db, run)
    background_tasks.add_task(generation.retry_run, run.id)
    return {"retrying": True}

def _run_with_insights(db: Session, run_id: str):
    run = _run_or_404(db, run_id)
    if not _has_input(db, run):
        raise HTTPException(400, "No transcript available for regeneration")
    insights = crud.list_insights(db, run_id)
    if not insights:
        raise HTTPException(400, "No insights found for this run")
    return run, insights

@router.post("/runs/{run_id}/generate-more")
def generate_more(run_id: str, body: GenerateMoreIn, db: Session = Depends(get_db)):
    if body.angle not in models.POST_ANGLES:
        raise HTTPException(400, "Invalid angle")
    run, insights = _run_with_insights(db, run_id)
    try:
        posts = generation.generate_more_posts(db, run, insights[0], body.angle, max(1, body.count))
    except (RuntimeError, httpx.HTTPError) as e:
        raise HTTPException(500, f"Generation failed: {e}")
    return {"generated": len(posts), "posts": [serializers.post_dict(p, crud.get_post_intent(db, p.id)) for p in posts]}

@router.post("/runs/{run_id}/generate-more-articles")
def generate_more_articles(run_id: str, body: GenerateMoreArticlesIn, db: Session = Depends(get_db)):
    if body.angle not in models.ARTICLE_ANGLES:
        raise HTTPException(400, "Invalid angle")
    run, insights = _run_with_insights(db, run_id)
    try:
        articles = generation.generate_more_articles(db, run, insights[0], body.angle, max(1, body.count))
    except (RuntimeError, httpx.HTTPError) as e:
        raise HTTPException(500, f"Generation failed: {e}")
    return {
        "generated": len(articles),
        "articles": [serializers.article_dict(a, crud.get_article_intent(db, a.id)) for a in articles],
    }

@router.get("/llm/status")
def llm_status():
    return llm_client.provider_status()
