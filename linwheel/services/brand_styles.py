import re
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from linwheel.db.base import utcnow
from linwheel.db.models import BrandStyleProfile

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")

IMAGERY_DESCRIPTIONS = {
    "photography": "professional editorial photograph",
    "illustration": "refined digital illustration",
    "abstract": "abstract conceptual artwork",
    "3d_render": "polished 3D render",
    "mixed_media": "mixed media composition",
    "minimalist": "minimalist graphic composition",
}

PRESETS: List[Dict[str, Any]] = [
    {
        "id": "corporate_clean",
        "name": "Corporate Clean",
        "description": "Trustworthy blues with crisp, uncluttered compositions.",
        "primary_colors": [{"hex": "#1E3A8A", "name": "Navy", "usage": "dominant"}, {"hex": "#3B82F6", "name": "Blue", "usage": "accent"}],
        "color_mood": "cool, confident and professional",
        "imagery_approach": "photography",
        "lighting_preference": "soft natural daylight",
        "composition_style": "centered with generous negative space",
        "mood_descriptors": ["trustworthy", "clear", "calm"],
        "depth_of_field": "shallow",
    },
    {
        "id": "bold_startup",
        "name": "Bold Startup",
        "description": "High-energy gradients for founders and product teams.",
        "primary_colors": [{"hex": "#7C3AED", "name": "Violet", "usage": "dominant"}, {"hex": "#EC4899", "name": "Pink", "usage": "accent"}],
        "color_mood": "vibrant and energetic",
        "imagery_approach": "abstract",
        "lighting_preference": "glowing neon highlights",
        "composition_style": "dynamic diagonals",
        "mood_descriptors": ["bold", "optimistic", "fast"],
        "depth_of_field": "varied",
    },
    {
        "id": "warm_editorial",
        "name": "Warm Editorial",
        "description": "Magazine-style warmth for thought leadership.",
        "primary_colors": [{"hex": "#B45309", "name": "Amber", "usage": "dominant"}, {"hex": "#FDE68A", "name": "Cream", "usage": "background"}],
        "color_mood": "warm earthy tones",
        "imagery_approach": "illustration",
        "lighting_preference": "golden hour",
        "composition_style": "rule of thirds",
        "mood_descriptors": ["thoughtful", "human", "grounded"],
        "texture_preference": "subtle paper grain",
        "depth_of_field": "medium",
    },
    {
        "id": "dark_tech",
        "name": "Dark Tech",
        "description": "Dark mode aesthetics for engineering audiences.",
        "primary_colors": [{"hex": "#0F172A", "name": "Slate", "usage": "background"}, {"hex": "#22D3EE", "name": "Cyan", "usage": "accent"}],
        "color_mood": "dark with electric accents",
        "imagery_approach": "3d_render",
        "lighting_preference": "rim lighting on dark backgrounds",
        "composition_style": "symmetrical, layered depth",
        "mood_descriptors": ["technical", "precise", "modern"],
        "texture_preference": "smooth glossy surfaces",
        "depth_of_field": "deep",
    },
]


def validate_brand_style(data: Dict[str, Any], partial: bool = False) -> List[str]:
    """Return a list of validation errors (empty when valid)."""
    errors = []
    if not partial or "name" in data:
        if not str(data.get("name") or "").strip():
            errors.append("Name is required")
    if not partial or "imagery_approach" in data:
        if not data.get("imagery_approach"):
            errors.append("Imagery approach is required")
    if not partial or "primary_colors" in data:
        colors = data.get("primary_colors") or []
        if not colors:
            errors.append("At least one primary color is required")
        for c in colors:
            if not isinstance(c, dict) or not HEX_COLOR.match(str(c.get("hex", ""))):
                errors.append(f"Invalid hex color: {c.get('hex') if isinstance(c, dict) else c}")
    for c in data.get("secondary_colors") or []:
        if not isinstance(c, dict) or not HEX_COLOR.match(str(c.get("hex", ""))):
            errors.append(f"Invalid hex color: {c.get('hex') if isinstance(c, dict) else c}")
    return errors


def compose_prompt(base_prompt: str, style: Optional[BrandStyleProfile]) -> str:
    if style is None:
        return base_prompt
    parts: List[str] = []
    if style.style_prefix:
        parts.append(style.style_prefix)
    if style.imagery_approach:
        parts.append(IMAGERY_DESCRIPTIONS.get(style.imagery_approach, style.imagery_approach.replace("_", " ")))
    parts.append(base_prompt)
    if style.color_mood:
        parts.append(f"Color palette: {style.color_mood}")
    elif style.primary_colors:
        names = [c.get("name") or c.get("hex") for c in style.primary_colors if isinstance(c, dict)]
        parts.append(f"Color palette: {', '.join(n for n in names if n)}")
    if style.artistic_references:
        parts.append(f"In the style of {', '.join(style.artistic_references)}")
    if style.lighting_preference:
        parts.append(f"Lighting: {style.lighting_preference}")
    if style.composition_style:
        parts.append(f"Composition: {style.composition_style}")
    if style.mood_descriptors:
        parts.append(f"Mood: {', '.join(style.mood_descriptors)}")
    if style.texture_preference:
        parts.append(f"Texture: {style.texture_preference}")
    if style.depth_of_field and style.depth_of_field != "varied":
        parts.append(f"{style.depth_of_field} depth of field")
    if style.style_suffix:
        parts.append(style.style_suffix)
    return ". ".join(p.strip().rstrip(".") for p in parts if p and p.strip())


def compose_negative_prompt(base_negative: str, style: Optional[BrandStyleProfile]) -> str:
    if style is None or not style.negative_concepts:
        return base_negative
    extra = ", ".join(style.negative_concepts)
    return f"{base_negative}, {extra}" if base_negative else extra


def styled_prompts(base_prompt: str, base_negative: str, style: Optional[BrandStyleProfile]) -> Tuple[str, str]:
    return compose_prompt(base_prompt, style), compose_negative_prompt(base_negative, style)

# --- persistence ---

def list_brand_styles(db: Session, user_id: str) -> List[BrandStyleProfile]:
    return (
        db.query(BrandStyleProfile)
        .filter(BrandStyleProfile.user_id == user_id)
        .order_by(BrandStyleProfile.created_at.desc())
        .all()
    )

def get_brand_style(db: Session, user_id: str, style_id: str) -> Optional[BrandStyleProfile]:
    return (
        db.query(BrandStyleProfile)
        .filter(BrandStyleProfile.id == style_id, BrandStyleProfile.user_id == user_id)
        .first()
    )

def get_active_brand_style(db: Session, user_id: Optional[str]) -> Optional[BrandStyleProfile]:
    if not user_id:
        return None
    return (
        db.query(BrandStyleProfile)
        .filter(BrandStyleProfile.user_id == user_id, BrandStyleProfile.is_active.is_(True))
        .first()
    )

def _deactivate_others(db: Session, user_id: str, keep_id: Optional[str] = None) -> None:
    q = db.query(BrandStyleProfile).filter(BrandStyleProfile.user_id == user_id, BrandStyleProfile.is_active.is_(True))
    if keep_id:
        q = q.filter(BrandStyleProfile.id != keep_id)
    q.update({BrandStyleProfile.is_active: False}, synchronize_session=False)

def create_brand_style(db: Session, user_id: str, data: Dict[str, Any]) -> BrandStyleProfile:
    if data.get("is_active"):
        _deactivate_others(db, user_id)
    row = BrandStyleProfile(user_id=user_id, **data)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def update_brand_style(db: Session, row: BrandStyleProfile, updates: Dict[str, Any]) -> BrandStyleProfile:
    if updates.get("is_active"):
        _deactivate_others(db, row.user_id, keep_id=row.id)
    for key, value in updates.items():
        setattr(row, key, value)
    row.updated_at = utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def set_active(db: Session, row: BrandStyleProfile, active: bool) -> BrandStyleProfile:
    return update_brand_style(db, row, {"is_active": active})
