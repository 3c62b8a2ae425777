from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session
from linwheel.db.models import VoiceProfile

MAX_SAMPLES_IN_PROMPT = 5

def get_active_voice_profile(db: Session) -> Optional[VoiceProfile]:
    return db.query(VoiceProfile).filter(VoiceProfile.is_active.is_(True)).first()

def list_voice_profiles(db: Session) -> List[VoiceProfile]:
    return db.query(VoiceProfile).order_by(VoiceProfile.created_at.desc()).all()

def get_voice_profile(db: Session, profile_id: str) -> Optional[VoiceProfile]:
    return db.query(VoiceProfile).filter(VoiceProfile.id == profile_id).first()

def _deactivate_all(db: Session, keep_id: Optional[str] = None) -> None:
    q = db.query(VoiceProfile).filter(VoiceProfile.is_active.is_(True))
    if keep_id:
        q = q.filter(VoiceProfile.id != keep_id)
    q.update({VoiceProfile.is_active: False}, synchronize_session=False)

def create_voice_profile(db: Session, data: Dict[str, Any]) -> VoiceProfile:
    if data.get("is_active"):
        _deactivate_all(db)
    row = VoiceProfile(
        name=data["name"],
        description=data.get("description"),
        samples=list(data.get("samples") or []),
        is_active=bool(data.get("is_active")),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def update_voice_profile(db: Session, row: VoiceProfile, updates: Dict[str, Any]) -> VoiceProfile:
    if updates.get("is_active"):
        _deactivate_all(db, keep_id=row.id)
    for key, value in updates.items():
        setattr(row, key, value)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def activate_voice_profile(db: Session, row: VoiceProfile) -> VoiceProfile:
    return update_voice_profile(db, row, {"is_active": True})

def voice_prompt_block(profile: Optional[VoiceProfile]) -> str:
    """Few-shot block appended to writer prompts so output matches the user's style."""
    if not profile or not profile.samples:
        return ""
    samples = [s.strip() for s in profile.samples if isinstance(s, str) and s.strip()]
    if not samples:
        return ""
    parts = [
        "VOICE MATCHING:",
        "Match the tone, rhythm and vocabulary of these writing samples. Do not copy their content.",
    ]
    if profile.description:
        parts.append(f"Style notes: {profile.description}")
    for i, sample in enumerate(samples[:MAX_SAMPLES_IN_PROMPT], start=1):
        parts.append(f"--- Sample {i} ---\n{sample}")
    return "\n".join(parts)
