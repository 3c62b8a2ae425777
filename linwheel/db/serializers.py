"""Row -> JSON dict helpers shared by the routers."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from linwheel.db import models

def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None

def parse_datetime(value: str) -> datetime:
    """ISO-8601 string -> naive UTC, the form every timestamp column stores. Raises ValueError."""
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

def run_dict(run: models.GenerationRun) -> Dict[str, Any]:
    return {
        "id": run.id,
        "created_at": iso(run.created_at),
        "source_label": run.source_label,
        "status": run.status,
        "post_count": run.post_count or 0,
        "article_count": run.article_count or 0,
        "error": run.error,
        "selected_angles": run.selected_angles or [],
        "selected_article_angles": run.selected_article_angles or [],
    }

def insight_dict(ins: models.Insight) -> Dict[str, Any]:
    return {
        "id": ins.id,
        "topic": ins.topic,
        "claim": ins.claim,
        "why_it_matters": ins.why_it_matters,
        "misconception": ins.misconception,
        "professional_implication": ins.professional_implication,
    }

def source_link_dict(link: models.SourceLink) -> Dict[str, Any]:
    return {
        "id": link.id,
        "url": link.url,
        "title": link.title,
        "status": link.status,
        "error": link.error,
        "fetched_at": iso(link.fetched_at),
    }

def intent_dict(intent) -> Optional[Dict[str, Any]]:
    if intent is None:
        return None
    out = {
        "id": intent.id,
        "prompt": intent.prompt,
        "negative_prompt": intent.negative_prompt,
        "headline_text": intent.headline_text,
        "style_preset": intent.style_preset,
        "generated_image_url": intent.generated_image_url,
        "generated_at": iso(intent.generated_at),
        "generation_provider": intent.generation_provider,
        "generation_error": intent.generation_error,
    }
    if isinstance(intent, models.ArticleImageIntent):
        out["article_id"] = intent.article_id
        out["include_in_post"] = intent.include_in_post
    else:
        out["post_id"] = intent.post_id
    return out

def version_dict(v: models.ImageVersion) -> Dict[str, Any]:
    return {
        "id": v.id,
        "version_number": v.version_number,
        "prompt": v.prompt,
        "headline_text": v.headline_text,
        "image_url": v.image_url,
        "include_text": v.include_text,
        "is_active": v.is_active,
        "provider": v.generation_provider,
        "generated_at": iso(v.generated_at),
    }

def post_dict(post: models.LinkedInPost, intent=None) -> Dict[str, Any]:
    return {
        "id": post.id,
        "run_id": post.run_id,
        "insight_id": post.insight_id,
        "hook": post.hook,
        "body_beats": post.body_beats or [],
        "open_question": post.open_question,
        "post_type": post.post_type,
        "full_text": post.full_text,
        "version_number": post.version_number,
        "approved": post.approved,
        "is_manual_draft": post.is_manual_draft,
        "scheduled_at": iso(post.scheduled_at),
        "scheduled_position": post.scheduled_position,
        "auto_publish": post.auto_publish,
        "linkedin_post_urn": post.linkedin_post_urn,
        "linkedin_published_at": iso(post.linkedin_published_at),
        "linkedin_publish_error": post.linkedin_publish_error,
        "image_intent": intent_dict(intent),
    }

def article_dict(article: models.Article, intent=None) -> Dict[str, Any]:
    return {
        "id": article.id,
        "run_id": article.run_id,
        "insight_id": article.insight_id,
        "article_type": article.article_type,
        "title": article.title,
        "subtitle": article.subtitle,
        "introduction": article.introduction,
        "sections": article.sections or [],
        "conclusion": article.conclusion,
        "full_text": article.full_text,
        "version_number": article.version_number,
        "approved": article.approved,
        "scheduled_at": iso(article.scheduled_at),
        "scheduled_position": article.scheduled_position,
        "auto_publish": article.auto_publish,
        "linkedin_post_urn": article.linkedin_post_urn,
        "linkedin_published_at": iso(article.linkedin_published_at),
        "linkedin_publish_error": article.linkedin_publish_error,
        "image_intent": intent_dict(intent),
    }

def carousel_dict(c: models.ArticleCarouselIntent) -> Dict[str, Any]:
    return {
        "id": c.id,
        "article_id": c.article_id,
        "page_count": c.page_count,
        "pages": c.pages or [],
        "style_preset": c.style_preset,
        "pdf_url": c.generated_pdf_url,
        "generated_at": iso(c.generated_at),
        "provider": c.generation_provider,
        "error": c.generation_error,
        "status": c.status,
    }

def carousel_schedule_dict(c: models.ArticleCarouselIntent) -> Dict[str, Any]:
    return {
        "carousel_id": c.id,
        "scheduled_at": iso(c.scheduled_at),
        "offset_days": c.offset_days,
        "auto_publish": c.auto_publish,
        "status": c.status,
        "published_at": iso(c.published_at),
        "linkedin_post_urn": c.linkedin_post_urn,
        "publish_error": c.publish_error,
        "is_scheduled": c.scheduled_at is not None and c.status == "scheduled",
        "is_published": c.status == "published",
    }

def slide_version_dict(v: models.CarouselSlideVersion) -> Dict[str, Any]:
    return {
        "id": v.id,
        "slide_number": v.slide_number,
        "version_number": v.version_number,
        "slide_type": v.slide_type,
        "prompt": v.prompt,
        "headline_text": v.headline_text,
        "image_url": v.image_url,
        "is_active": bool(v.is_active),
        "generation_provider": v.generation_provider,
        "generated_at": iso(v.generated_at),
    }

def brand_style_dict(s: models.BrandStyleProfile) -> Dict[str, Any]:
    return {
        "id": s.id,
        "name": s.name,
        "description": s.description,
        "primary_colors": s.primary_colors or [],
        "secondary_colors": s.secondary_colors or [],
        "color_mood": s.color_mood,
        "typography_style": s.typography_style,
        "headline_weight": s.headline_weight,
        "imagery_approach": s.imagery_approach,
        "artistic_references": s.artistic_references or [],
        "lighting_preference": s.lighting_preference,
        "composition_style": s.composition_style,
        "mood_descriptors": s.mood_descriptors or [],
        "texture_preference": s.texture_preference,
        "aspect_ratio_preference": s.aspect_ratio_preference,
        "depth_of_field": s.depth_of_field,
        "style_prefix": s.style_prefix,
        "style_suffix": s.style_suffix,
        "negative_concepts": s.negative_concepts or [],
        "reference_image_urls": s.reference_image_urls or [],
        "is_active": s.is_active,
        "created_at": iso(s.created_at),
        "updated_at": iso(s.updated_at),
    }

def voice_profile_dict(v: models.VoiceProfile) -> Dict[str, Any]:
    return {
        "id": v.id,
        "name": v.name,
        "description": v.description,
        "samples": v.samples or [],
        "is_active": v.is_active,
        "created_at": iso(v.created_at),
        "updated_at": iso(v.updated_at),
    }
