from typing import Any, Optional

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, require_user
from linwheel.db import crud, models, serializers
from linwheel.deps import get_db
from linwheel.services import generation, images, publishing
from linwheel.services.article_formatter import LINKEDIN_CHAR_LIMIT

router = APIRouter(prefix="/api/posts", tags=["posts"])

class ManualPostIn(BaseModel):
    full_text: Optional[str] = None
    hook: Optional[str] = None
    auto_publish: Optional[bool] = True

class PostUpdateIn(BaseModel):
    full_text: Optional[str] = None
    hook: Optional[str] = None

class RegeneratePromptIn(BaseModel):
    feedback: Optional[str] = None

class ApproveIn(BaseModel):
    approved: Any = None

class ScheduleIn(BaseModel):
    scheduled_at: Optional[str] = None
    auto_publish: Any = None

def _check_text(text: Optional[str]) -> str:
    if not text or not text.strip():
        raise HTTPException(400, "Post content is required")
    if len(text) > LINKEDIN_CHAR_LIMIT:
        raise HTTPException(400, f"Post exceeds {LINKEDIN_CHAR_LIMIT} character limit")
    return text

def _first_line(text: str) -> str:
    return text.strip().split("\n", 1)[0].strip()

def _post_or_404(db: Session, post_id: str) -> models.LinkedInPost:
    post = crud.get_post(db, post_id)
    if not post:
        raise HTTPException(404, "Post not found")
    return post

@router.post("")
def create_manual_post(body: ManualPostIn, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    text = _check_text(body.full_text)
    hook = (body.hook or "").strip() or _first_line(text)
    post = crud.create_manual_post(db, user.id, text, hook, auto_publish=body.auto_publish is not False)
    return {"success": True, "post": serializers.post_dict(post)}

@router.get("/{post_id}")
def get_post(post_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    post = _post_or_404(db, post_id)
    return serializers.post_dict(post, crud.get_post_intent(db, post.id))

@router.patch("/{post_id}")
def update_post(
    post_id: str,
    body: PostUpdateIn,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_user),
):
    post = _post_or_404(db, post_id)
    if post.linkedin_post_urn:
        raise HTTPException(400, "Cannot edit a published post")
    # an explicit null hook counts as no update
    fields = {k for k in body.model_fields_set if k != "hook" or body.hook is not None}
    if not fields:
        raise HTTPException(400, "No updates provided")
    if "full_text" in fields:
        post.full_text = _check_text(body.full_text)
    if "hook" in fields:
        post.hook = body.hook
    db.add(post)
    db.commit()
    db.refresh(post)
    return serializers.post_dict(post, crud.get_post_intent(db, post.id))

@router.delete("/{post_id}")
def delete_post(post_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    crud.delete_post(db, _post_or_404(db, post_id))
    return {"deleted": True}

@router.post("/{post_id}/regenerate-prompt")
def regenerate_prompt(post_id: str, body: Optional[RegeneratePromptIn] = None, db: Session = Depends(get_db)):
    post = _post_or_404(db, post_id)
    feedback = ((body.feedback if body else None) or "").strip() or None
    try:
        intent = images.regenerate_prompt(db, generation.get_llm(), "post", post, feedback)
    except (RuntimeError, httpx.HTTPError, ValidationError, TypeError) as e:
        raise HTTPException(500, f"Prompt regeneration failed: {e}")
    return {"success": True, "intent_id": intent.id, "intent": serializers.intent_dict(intent)}

@router.post("/{post_id}/approve")
def approve_post(post_id: str, body: ApproveIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    if not isinstance(body.approved, bool):
        raise HTTPException(400, "approved must be a boolean")
    post = _post_or_404(db, post_id)
    post.approved = body.approved
    db.add(post)
    db.commit()

    intent = crud.get_post_intent(db, post.id)
    generating = images.dispatch_if_missing(background_tasks, "post", intent) if body.approved else False
    return {
        "success": True,
        "approved": post.approved,
        "image_intent": {
            "intent_id": intent.id if intent else None,
            "has_image": bool(intent and intent.generated_image_url),
            "image_url": intent.generated_image_url if intent else None,
            "generating": generating,
        },
    }

@router.get("/{post_id}/schedule")
def get_schedule(post_id: str, db: Session = Depends(get_db)):
    post = _post_or_404(db, post_id)
    return {
        "post_id": post.id,
        "scheduled_at": serializers.iso(post.scheduled_at),
        "scheduled_position": post.scheduled_position,
        "auto_publish": post.auto_publish,
    }

@router.patch("/{post_id}/schedule")
def update_schedule(post_id: str, body: ScheduleIn, db: Session = Depends(get_db)):
    post = _post_or_404(db, post_id)
    if "scheduled_at" in body.model_fields_set:
        if body.scheduled_at is None:
            post.scheduled_at = None
            post.scheduled_position = None
        else:
            try:
                post.scheduled_at = serializers.parse_datetime(body.scheduled_at)
            except ValueError:
                raise HTTPException(400, "Invalid scheduled_at date")
    if isinstance(body.auto_publish, bool):
        post.auto_publish = body.auto_publish
    db.add(post)
    db.commit()
    db.refresh(post)
    return {
        "success": True,
        "post_id": post.id,
        "scheduled_at": serializers.iso(post.scheduled_at),
        "auto_publish": post.auto_publish,
    }

@router.post("/{post_id}/publish-linkedin")
def publish_post(post_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    post = _post_or_404(db, post_id)
    try:
        return publishing.publish_post(db, post, user.id)
    except publishing.PublishError as e:
        return JSONResponse(status_code=e.status_code, content=e.body())
