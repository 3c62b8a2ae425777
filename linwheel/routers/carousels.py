import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, get_current_user, require_user
from linwheel.db import crud, models, serializers
from linwheel.deps import get_db
from linwheel.services import carousel as carousels
from linwheel.services import generation
from linwheel.services.publishing import owner_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/articles", tags=["carousels"])

class CarouselIn(BaseModel):
    provider: Optional[str] = None
    style_preset: Optional[str] = None
    force_regenerate: bool = False

class CarouselScheduleIn(BaseModel):
    scheduled_at: Optional[str] = None
    shared_schedule: bool = False
    offset_days: Optional[int] = None
    auto_publish: bool = True

class ActivateVersionIn(BaseModel):
    slide_number: Any = None
    version_id: Any = None

def _article_or_404(db: Session, article_id: str) -> models.Article:
    article = crud.get_article(db, article_id)
    if not article:
        raise HTTPException(404, "Article not found")
    return article

def _llm_or_none():
    # captions fall back to the article's own headings without an LLM
    try:
        return generation.get_llm()
    except RuntimeError as e:
        logger.info("carousel captions without LLM: %s", e)
        return None

@router.post("/{article_id}/carousel")
def create_carousel(
    article_id: str,
    body: Optional[CarouselIn] = None,
    db: Session = Depends(get_db),
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    body = body or CarouselIn()
    article = _article_or_404(db, article_id)
    cached = crud.get_carousel(db, article.id)
    llm = None if (cached and cached.generated_pdf_url and not body.force_regenerate) else _llm_or_none()
    try:
        return carousels.generate_carousel(
            db, llm, article,
            provider=body.provider,
            style_preset=body.style_preset,
            force_regenerate=body.force_regenerate,
            user_id=user.id if user else owner_of(db, article),
        )
    except carousels.CarouselError as e:
        return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.message})

@router.get("/{article_id}/carousel")
def get_carousel(article_id: str, db: Session = Depends(get_db)):
    c = crud.get_carousel(db, article_id)
    if not c:
        return {"exists": False}
    return {"exists": True, **serializers.carousel_dict(c)}

@router.delete("/{article_id}/carousel")
def delete_carousel(article_id: str, db: Session = Depends(get_db)):
    c = crud.get_carousel(db, article_id)
    if not c:
        raise HTTPException(404, "Carousel not found")
    carousels.delete_carousel(db, c)
    return {"deleted": True}

@router.post("/{article_id}/carousel/schedule")
def schedule_carousel(
    article_id: str,
    body: CarouselScheduleIn,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_user),
):
    article = _article_or_404(db, article_id)
    try:
        c = carousels.schedule_carousel(
            db, article, crud.get_carousel(db, article.id),
            scheduled_at=body.scheduled_at,
            shared_schedule=body.shared_schedule,
            offset_days=body.offset_days,
            auto_publish=body.auto_publish,
        )
    except carousels.CarouselError as e:
        raise HTTPException(e.status_code, e.message)
    return {"success": True, **serializers.carousel_schedule_dict(c)}

@router.delete("/{article_id}/carousel/schedule")
def unschedule_carousel(article_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    c = crud.get_carousel(db, article_id)
    if not c:
        raise HTTPException(404, "Carousel not found")
    try:
        c = carousels.unschedule_carousel(db, c)
    except carousels.CarouselError as e:
        raise HTTPException(e.status_code, e.message)
    return {"success": True, **serializers.carousel_schedule_dict(c)}

@router.get("/{article_id}/carousel/schedule")
def get_carousel_schedule(article_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    c = crud.get_carousel(db, article_id)
    if not c:
        raise HTTPException(404, "Carousel not found")
    return serializers.carousel_schedule_dict(c)

def _carousel_or_404(db: Session, article_id: str) -> models.ArticleCarouselIntent:
    c = crud.get_carousel(db, article_id)
    if not c:
        raise HTTPException(404, "Carousel not found")
    return c

@router.get("/{article_id}/carousel/versions")
def list_slide_versions(article_id: str, slide: Optional[int] = None, db: Session = Depends(get_db)):
    c = _carousel_or_404(db, article_id)
    try:
        return carousels.slide_versions(db, c, slide)
    except carousels.CarouselError as e:
        raise HTTPException(e.status_code, e.message)

@router.post("/{article_id}/carousel/versions")
def activate_slide_version(article_id: str, body: ActivateVersionIn, db: Session = Depends(get_db)):
    c = _carousel_or_404(db, article_id)
    try:
        return carousels.activate_slide_version(db, c, body.slide_number, body.version_id)
    except carousels.CarouselError as e:
        raise HTTPException(e.status_code, e.message)
