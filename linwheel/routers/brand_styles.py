from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from linwheel.auth.session import CurrentUser, require_user
from linwheel.db import serializers
from linwheel.deps import get_db
from linwheel.services import brand_styles

router = APIRouter(prefix="/api/brand-styles", tags=["brand-styles"])

class BrandStyleIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    primary_colors: Optional[List[Dict[str, Any]]] = None
    secondary_colors: Optional[List[Dict[str, Any]]] = None
    color_mood: Optional[str] = None
    typography_style: Optional[str] = None
    headline_weight: Optional[str] = None
    imagery_approach: Optional[str] = None
    artistic_references: Optional[List[str]] = None
    lighting_preference: Optional[str] = None
    composition_style: Optional[str] = None
    mood_descriptors: Optional[List[str]] = None
    texture_preference: Optional[str] = None
    aspect_ratio_preference: Optional[str] = None
    depth_of_field: Optional[str] = None
    style_prefix: Optional[str] = None
    style_suffix: Optional[str] = None
    negative_concepts: Optional[List[str]] = None
    reference_image_urls: Optional[List[str]] = None
    is_active: Optional[bool] = None

def _invalid(errors: List[str]) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": errors[0], "details": errors})

def _style_or_404(db: Session, user: CurrentUser, style_id: str):
    row = brand_styles.get_brand_style(db, user.id, style_id)
    if not row:
        raise HTTPException(404, "Brand style not found")
    return row

@router.get("")
def list_styles(db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    rows = brand_styles.list_brand_styles(db, user.id)
    active = next((r for r in rows if r.is_active), None)
    return {
        "styles": [serializers.brand_style_dict(r) for r in rows],
        "active_style_id": active.id if active else None,
    }

@router.get("/presets")
def list_presets():
    return {"presets": brand_styles.PRESETS}

@router.post("")
def create_style(body: BrandStyleIn, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    data = body.model_dump(exclude_unset=True)
    errors = brand_styles.validate_brand_style(data)
    if errors:
        return _invalid(errors)
    data["is_active"] = bool(data.get("is_active"))
    row = brand_styles.create_brand_style(db, user.id, data)
    return {"success": True, "style": serializers.brand_style_dict(row)}

@router.get("/{style_id}")
def get_style(style_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    return serializers.brand_style_dict(_style_or_404(db, user, style_id))

@router.patch("/{style_id}")
def update_style(style_id: str, body: BrandStyleIn, db: Session = Depends(get_db),
                 user: CurrentUser = Depends(require_user)):
    row = _style_or_404(db, user, style_id)
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No updates provided")
    errors = brand_styles.validate_brand_style(updates, partial=True)
    if errors:
        return _invalid(errors)
    row = brand_styles.update_brand_style(db, row, updates)
    return {"success": True, "style": serializers.brand_style_dict(row)}

@router.delete("/{style_id}")
def delete_style(style_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    row = _style_or_404(db, user, style_id)
    if row.is_active:
        raise HTTPException(400, "Cannot delete active brand style. Deactivate it first.")
    db.delete(row)
    db.commit()
    return {"deleted": True}

@router.post("/{style_id}/activate")
def activate_style(style_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    row = brand_styles.set_active(db, _style_or_404(db, user, style_id), True)
    return {"success": True, "style": serializers.brand_style_dict(row)}

@router.delete("/{style_id}/activate")
def deactivate_style(style_id: str, db: Session = Depends(get_db), user: CurrentUser = Depends(require_user)):
    row = brand_styles.set_active(db, _style_or_404(db, user, style_id), False)
    return {"success": True, "style": serializers.brand_style_dict(row)}
