from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, get_current_user
from linwheel.db import crud, models, serializers
from linwheel.deps import get_db
from linwheel.services import images, t2i, usage

router = APIRouter(prefix="/api", tags=["image-intents"])

class IntentUpdateIn(BaseModel):
    prompt: Optional[str] = None
    negative_prompt: Optional[str] = None
    headline_text: Optional[str] = None
    style_preset: Optional[str] = None
    include_in_post: Optional[bool] = None

class GenerateImageIn(BaseModel):
    provider: Optional[str] = None
    include_text: bool = True

def _intent_or_404(db: Session, kind: str, intent_id: str):
    intent = crud.get_intent(db, kind, intent_id)
    if not intent:
        raise HTTPException(404, "Image intent not found")
    return intent

def _update(db: Session, kind: str, intent_id: str, body: IntentUpdateIn):
    intent = _intent_or_404(db, kind, intent_id)
    allowed = ["prompt", "negative_prompt", "headline_text", "style_preset"]
    if kind == "article":
        allowed.append("include_in_post")
    updates = {k: getattr(body, k) for k in allowed if k in body.model_fields_set and getattr(body, k) is not None}
    if not updates:
        raise HTTPException(400, "No updates provided")
    if "style_preset" in updates and updates["style_preset"] not in models.STYLE_PRESETS:
        raise HTTPException(400, "Invalid style preset")
    for key, value in updates.items():
        setattr(intent, key, value)
    db.add(intent)
    db.commit()
    db.refresh(intent)
    return serializers.intent_dict(intent)

def _generate(db: Session, kind: str, intent_id: str, body: GenerateImageIn, user: Optional[CurrentUser]):
    intent = _intent_or_404(db, kind, intent_id)
    if user and not usage.can_generate_images(db, user.id):
        return JSONResponse(
            status_code=403,
            content={"error": "Image generation limit reached", "usage": usage.image_usage(db, user.id)},
        )
    result = images.generate_for_intent(
        db, kind, intent,
        provider=body.provider,
        include_text=body.include_text,
        user_id=user.id if user else None,
    )
    if not result["success"]:
        return JSONResponse(status_code=500, content=result)
    if user:
        usage.increment_image_usage(db, user.id)
    return result

def _versions(db: Session, kind: str, intent_id: str):
    intent = _intent_or_404(db, kind, intent_id)
    return {"versions": [serializers.version_dict(v) for v in crud.list_versions(db, kind, intent.id)]}

# --- post covers ---

@router.get("/posts/image-intents/{intent_id}")
def get_post_intent(intent_id: str, db: Session = Depends(get_db)):
    return serializers.intent_dict(_intent_or_404(db, "post", intent_id))

@router.patch("/posts/image-intents/{intent_id}")
def update_post_intent(intent_id: str, body: IntentUpdateIn, db: Session = Depends(get_db)):
    return _update(db, "post", intent_id, body)

@router.post("/posts/image-intents/{intent_id}")
def generate_post_image(
    intent_id: str,
    body: Optional[GenerateImageIn] = None,
    db: Session = Depends(get_db),
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    return _generate(db, "post", intent_id, body or GenerateImageIn(), user)

@router.get("/posts/image-intents/{intent_id}/versions")
def post_intent_versions(intent_id: str, db: Session = Depends(get_db)):
    return _versions(db, "post", intent_id)

# --- article covers ---

@router.get("/articles/image-intents/{intent_id}")
def get_article_intent(intent_id: str, db: Session = Depends(get_db)):
    return serializers.intent_dict(_intent_or_404(db, "article", intent_id))

@router.patch("/articles/image-intents/{intent_id}")
def update_article_intent(intent_id: str, body: IntentUpdateIn, db: Session = Depends(get_db)):
    return _update(db, "article", intent_id, body)

@router.post("/articles/image-intents/{intent_id}")
def generate_article_image(
    intent_id: str,
    body: Optional[GenerateImageIn] = None,
    db: Session = Depends(get_db),
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    return _generate(db, "article", intent_id, body or GenerateImageIn(), user)

@router.get("/articles/image-intents/{intent_id}/versions")
def article_intent_versions(intent_id: str, db: Session = Depends(get_db)):
    return _versions(db, "article", intent_id)

@router.get("/images/providers")
def image_providers():
    return t2i.providers_status()
