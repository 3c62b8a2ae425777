from typing import Any, List, Optional

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, require_user
from linwheel.db import crud, models, serializers
from linwheel.deps import get_db
from linwheel.services import generation, images, publishing
from linwheel.services.pipeline import ArticleDraft, compose_article_text

router = APIRouter(prefix="/api/articles", tags=["articles"])

EDITABLE_FIELDS = ("title", "subtitle", "introduction", "sections", "conclusion")

class ArticleUpdateIn(BaseModel):
    title: Optional[str] = None
    subtitle: Optional[str] = None
    introduction: Optional[str] = None
    sections: Optional[List[str]] = None
    conclusion: Optional[str] = None

class RegeneratePromptIn(BaseModel):
    feedback: Optional[str] = None

class ApproveIn(BaseModel):
    approved: Any = None

class ScheduleIn(BaseModel):
    scheduled_at: Optional[str] = None
    auto_publish: Any = None

def _article_or_404(db: Session, article_id: str) -> models.Article:
    article = crud.get_article(db, article_id)
    if not article:
        raise HTTPException(404, "Article not found")
    return article

@router.get("/{article_id}")
def get_article(article_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    article = _article_or_404(db, article_id)
    return serializers.article_dict(article, crud.get_article_intent(db, article.id))

@router.patch("/{article_id}")
def update_article(
    article_id: str,
    body: ArticleUpdateIn,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_user),
):
    article = _article_or_404(db, article_id)
    if article.linkedin_post_urn:
        raise HTTPException(400, "Cannot edit a published article")
    updates = {k: getattr(body, k) for k in EDITABLE_FIELDS if k in body.model_fields_set}
    if not updates:
        raise HTTPException(400, "No updates provided")
    for field in ("title", "introduction", "conclusion"):
        if field in updates and not (updates[field] or "").strip():
            raise HTTPException(400, f"Article {field} cannot be empty")
    for key, value in updates.items():
        setattr(article, key, value if key != "sections" else list(value or []))
    article.full_text = compose_article_text(ArticleDraft(
        title=article.title or "",
        subtitle=article.subtitle,
        introduction=article.introduction or "",
        sections=list(article.sections or []),
        conclusion=article.conclusion or "",
    ))
    db.add(article)
    db.commit()
    db.refresh(article)
    return serializers.article_dict(article, crud.get_article_intent(db, article.id))

@router.delete("/{article_id}")
def delete_article(article_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    crud.delete_article(db, _article_or_404(db, article_id))
    return {"success": True, "message": "Article deleted successfully"}

@router.post("/{article_id}/regenerate-prompt")
def regenerate_prompt(article_id: str, body: Optional[RegeneratePromptIn] = None, db: Session = Depends(get_db)):
    article = _article_or_404(db, article_id)
    feedback = ((body.feedback if body else None) or "").strip() or None
    try:
        intent = images.regenerate_prompt(db, generation.get_llm(), "article", article, feedback)
    except (RuntimeError, httpx.HTTPError, ValidationError, TypeError) as e:
        raise HTTPException(500, f"Prompt regeneration failed: {e}")
    return {"success": True, "intent_id": intent.id, "intent": serializers.intent_dict(intent)}

@router.post("/{article_id}/approve")
def approve_article(article_id: str, body: ApproveIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    if not isinstance(body.approved, bool):
        raise HTTPException(400, "approved must be a boolean")
    article = _article_or_404(db, article_id)
    article.approved = body.approved
    db.add(article)
    db.commit()

    intent = crud.get_article_intent(db, article.id)
    generating = images.dispatch_if_missing(background_tasks, "article", intent) if body.approved else False
    return {
        "success": True,
        "approved": article.approved,
        "image_intent": {
            "intent_id": intent.id if intent else None,
            "has_image": bool(intent and intent.generated_image_url),
            "image_url": intent.generated_image_url if intent else None,
            "generating": generating,
        },
    }

@router.get("/{article_id}/schedule")
def get_schedule(article_id: str, db: Session = Depends(get_db)):
    article = _article_or_404(db, article_id)
    return {
        "article_id": article.id,
        "scheduled_at": serializers.iso(article.scheduled_at),
        "scheduled_position": article.scheduled_position,
        "auto_publish": article.auto_publish,
    }

@router.patch("/{article_id}/schedule")
def update_schedule(article_id: str, body: ScheduleIn, db: Session = Depends(get_db)):
    article = _article_or_404(db, article_id)
    if "scheduled_at" in body.model_fields_set:
        if body.scheduled_at is None:
            article.scheduled_at = None
            article.scheduled_position = None
        else:
            try:
                article.scheduled_at = serializers.parse_datetime(body.scheduled_at)
            except ValueError:
                raise HTTPException(400, "Invalid scheduled_at date")
    if isinstance(body.auto_publish, bool):
        article.auto_publish = body.auto_publish
    db.add(article)
    db.commit()
    db.refresh(article)
    return {
        "success": True,
        "article_id": article.id,
        "scheduled_at": serializers.iso(article.scheduled_at),
        "auto_publish": article.auto_publish,
    }

@router.post("/{article_id}/publish-linkedin")
def publish_article(article_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    article = _article_or_404(db, article_id)
    try:
        return publishing.publish_article(db, article, user.id)
    except publishing.PublishError as e:
        return JSONResponse(status_code=e.status_code, content=e.body())
