from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from linwheel.db import serializers
from linwheel.deps import get_db
from linwheel.services import voice

router = APIRouter(prefix="/api/voice-profiles", tags=["voice-profiles"])

class VoiceProfileIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    samples: Optional[List[str]] = None
    is_active: Optional[bool] = None

def _profile_or_404(db: Session, profile_id: str):
    row = voice.get_voice_profile(db, profile_id)
    if not row:
        raise HTTPException(404, "Voice profile not found")
    return row

@router.get("")
def list_profiles(db: Session = Depends(get_db)):
    rows = voice.list_voice_profiles(db)
    return {"profiles": [serializers.voice_profile_dict(r) for r in rows]}

@router.post("")
def create_profile(body: VoiceProfileIn, db: Session = Depends(get_db)):
    if not (body.name or "").strip():
        raise HTTPException(400, "Name is required")
    samples = [s for s in (body.samples or []) if s and s.strip()]
    if not samples:
        raise HTTPException(400, "At least one writing sample is required")
    row = voice.create_voice_profile(db, {
        "name": body.name.strip(),
        "description": body.description,
        "samples": samples,
        "is_active": bool(body.is_active),
    })
    return {"success": True, "profile": serializers.voice_profile_dict(row)}

@router.get("/{profile_id}")
def get_profile(profile_id: str, db: Session = Depends(get_db)):
    return serializers.voice_profile_dict(_profile_or_404(db, profile_id))

@router.patch("/{profile_id}")
def update_profile(profile_id: str, body: VoiceProfileIn, db: Session = Depends(get_db)):
    row = _profile_or_404(db, profile_id)
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No updates provided")
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(400, "Name is required")
    if "samples" in updates:
        updates["samples"] = [s for s in (updates["samples"] or []) if s and s.strip()]
    row = voice.update_voice_profile(db, row, updates)
    return {"success": True, "profile": serializers.voice_profile_dict(row)}

@router.delete("/{profile_id}")
def delete_profile(profile_id: str, db: Session = Depends(get_db)):
    row = _profile_or_404(db, profile_id)
    db.delete(row)
    db.commit()
    return {"deleted": True}

@router.post("/{profile_id}/activate")
def activate_profile(profile_id: str, db: Session = Depends(get_db)):
    row = voice.activate_voice_profile(db, _profile_or_404(db, profile_id))
    return {"success": True, "profile": serializers.voice_profile_dict(row)}
