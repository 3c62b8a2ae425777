"""
Article carousels: five square slides (title, three content, call to action)
rendered to PDF for LinkedIn document posts.

Captions come from the LLM with a deterministic fallback built from the
article, backgrounds from the T2I provider with a gradient fallback slide, so
a carousel is produced even with no provider configured.
"""
import logging
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from linwheel.db import crud, models, serializers
from linwheel.db.base import utcnow
from linwheel.db.serializers import parse_datetime
from linwheel.services import brand_styles, prompts, rendering, t2i
from linwheel.services.storage import get_storage

logger = logging.getLogger(__name__)

PAGE_COUNT = 5
MAX_HEADLINE_CHARS = 60
SLIDE_ASPECT_RATIO = "1:1"

_HEADING = re.compile(r"^#+\s*(.+)$", re.MULTILINE)


class CarouselError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class SlideCaption(BaseModel):
    slide_number: int
    slide_type: str
    headline: str
    image_prompt: str = ""


def sanitize_headline(text: str) -> str:
    text = re.sub(r"[#*_`>]", "", text or "").strip()
    text = re.sub(r"\s+", " ", text)
    if len(text) <= MAX_HEADLINE_CHARS:
        return text
    cut = text[:MAX_HEADLINE_CHARS - 3]
    space = cut.rfind(" ")
    return (cut[:space] if space > 20 else cut) + "..."


def article_summary(article: models.Article) -> str:
    parts = [f"TITLE: {article.title or ''}"]
    if article.subtitle:
        parts.append(f"SUBTITLE: {article.subtitle}")
    if article.introduction:
        parts.append(f"INTRO: {article.introduction[:300]}")
    for i, section in enumerate((article.sections or [])[:3], start=1):
        m = _HEADING.search(section or "")
        heading = m.group(1) if m else ""
        body = _HEADING.sub("", section or "", count=1).strip()[:200]
        parts.append(f"SECTION {i}: {heading}\n{body}")
    if article.conclusion:
        parts.append(f"CONCLUSION: {article.conclusion[:200]}")
    return "\n\n".join(parts)


def fallback_captions(article: models.Article) -> List[SlideCaption]:
    sections = list(article.sections or [])
    captions = [SlideCaption(
        slide_number=1,
        slide_type="title",
        headline=sanitize_headline(article.title or "Untitled"),
        image_prompt="abstract geometric forms, professional gradient, modern editorial header",
    )]
    for i in range(3):
        section = sections[i] if i < len(sections) else ""
        m = _HEADING.search(section or "")
        first_phrase = re.split(r"[.!?,;:]", section or "")[0].strip()
        captions.append(SlideCaption(
            slide_number=i + 2,
            slide_type="content",
            headline=sanitize_headline((m.group(1) if m else "") or first_phrase or f"Key Insight {i + 1}"),
            image_prompt="abstract concept, minimal geometric shapes, deep gradients, professional",
        ))
    captions.append(SlideCaption(
        slide_number=5,
        slide_type="cta",
        headline="Ready to learn more?",
        image_prompt="forward momentum, bright optimistic tones, inspirational abstract",
    ))
    return captions


def generate_captions(llm, article: models.Article) -> List[SlideCaption]:
    try:
        data = llm.generate_json(prompts.CAROUSEL_CAPTION_PROMPT, article_summary(article), temperature=0.7)
        raw = data.get("slides") or data.get("items") or []
        captions = [SlideCaption(**s) for s in raw if isinstance(s, dict)]
    except (RuntimeError, httpx.HTTPError, ValidationError) as e:
        logger.warning("carousel captions for article %s fell back: %s", article.id, e)
        return fallback_captions(article)
    if len(captions) != PAGE_COUNT:
        logger.warning("carousel captions for article %s: got %d slides, using fallback", article.id, len(captions))
        return fallback_captions(article)
    for c in captions:
        c.headline = sanitize_headline(c.headline)
    return captions


def _render_page(caption: SlideCaption, style_preset: str, provider: Optional[str],
                 style: Optional[models.BrandStyleProfile]) -> Tuple[bytes, Optional[str]]:
    prompt, negative = brand_styles.styled_prompts(
        caption.image_prompt, "text, letters, words, watermark, people, faces", style
    )
    result = t2i.generate_image(
        t2i.ImageRequest(prompt=prompt, negative_prompt=negative, style_preset=style_preset,
                         aspect_ratio=SLIDE_ASPECT_RATIO, quality="standard"),
        provider,
    )
    if result.success:
        try:
            raw = result.image_bytes()
            if raw is None:
                raw = get_storage().read(result.image_url)
            return rendering.overlay_headline(raw, caption.headline, rendering.SLIDE_SIZE), result.provider
        except (httpx.HTTPError, OSError, ValueError) as e:
            logger.warning("slide %d background unusable: %s", caption.slide_number, e)
    else:
        logger.info("slide %d: no background (%s)", caption.slide_number, result.error)
    return rendering.fallback_slide(caption.headline, style_preset), None


def generate_carousel(db: Session, llm, article: models.Article, provider: Optional[str] = None,
                      style_preset: Optional[str] = None, force_regenerate: bool = False,
                      user_id: Optional[str] = None) -> Dict[str, Any]:
    carousel = crud.get_carousel(db, article.id)
    if carousel and carousel.generated_pdf_url and not force_regenerate:
        return {**_result(carousel), "cached": True}

    intent = crud.get_article_intent(db, article.id)
    preset = style_preset or (intent.style_preset if intent else None) or "typographic_minimal"
    if preset not in models.STYLE_PRESETS:
        raise CarouselError(400, "Invalid style preset")

    if carousel is None:
        carousel = models.ArticleCarouselIntent(article_id=article.id, page_count=PAGE_COUNT)
        db.add(carousel)
        db.flush()
    captions = generate_captions(llm, article) if llm is not None else fallback_captions(article)
    style = brand_styles.get_active_brand_style(db, user_id)
    storage = get_storage()

    latest: Dict[int, int] = {}
    for v in crud.list_slide_versions(db, carousel.id):
        latest.setdefault(v.slide_number, v.version_number)

    pages: List[Dict[str, Any]] = []
    page_providers: List[Optional[str]] = []
    slides: List[bytes] = []
    used_provider = None
    try:
        for caption in captions:
            png, page_provider = _render_page(caption, preset, provider, style)
            used_provider = used_provider or page_provider
            version = latest.get(caption.slide_number, 0) + 1
            url = storage.save_bytes(png, f"carousel-{carousel.id}-page-{caption.slide_number}-v{version}.png")
            slides.append(png)
            pages.append({**caption.model_dump(), "image_url": url})
            page_providers.append(page_provider)
        pdf_url = storage.save_bytes(rendering.images_to_pdf(slides), f"carousel-{carousel.id}.pdf")
    except (OSError, ValueError) as e:
        logger.exception("carousel %s failed", carousel.id)
        carousel.status = "failed"
        carousel.generation_error = str(e)
        carousel.generated_at = utcnow()
        db.add(carousel)
        db.commit()
        raise CarouselError(500, f"Carousel generation failed: {e}") from e

    carousel.page_count = len(pages)
    carousel.pages = pages
    carousel.style_preset = preset
    carousel.generated_pdf_url = pdf_url
    carousel.generated_at = utcnow()
    carousel.generation_provider = used_provider or "fallback"
    carousel.generation_error = None
    if carousel.status not in ("scheduled", "published"):
        carousel.status = "ready"
    for page, page_provider in zip(pages, page_providers):
        crud.add_slide_version(db, carousel.id, page, page_provider or "fallback")
    db.add(carousel)
    db.commit()
    db.refresh(carousel)
    logger.info("carousel %s ready for article %s (%s)", carousel.id, article.id, carousel.generation_provider)
    return _result(carousel)


def _result(carousel: models.ArticleCarouselIntent) -> Dict[str, Any]:
    return {
        "success": True,
        "carousel_id": carousel.id,
        "pdf_url": carousel.generated_pdf_url,
        "page_count": carousel.page_count,
        "pages": carousel.pages or [],
        "provider": carousel.generation_provider,
    }


def delete_carousel(db: Session, carousel: models.ArticleCarouselIntent) -> None:
    storage = get_storage()
    urls = {page.get("image_url") for page in carousel.pages or []}
    for version in crud.list_slide_versions(db, carousel.id):
        urls.add(version.image_url)
        db.delete(version)
    for url in urls:
        storage.delete(url)
    storage.delete(carousel.generated_pdf_url)
    db.delete(carousel)
    db.commit()



def _slide_number(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= PAGE_COUNT:
        raise CarouselError(400, f"Invalid slide number. Must be 1-{PAGE_COUNT}.")
    return value


def slide_versions(db: Session, carousel: models.ArticleCarouselIntent, slide_number) -> Dict[str, Any]:
    slide_number = _slide_number(slide_number)
    versions = crud.list_slide_versions(db, carousel.id, slide_number)
    active = next((v for v in versions if v.is_active), None)
    return {
        "slide_number": slide_number,
        "versions": [serializers.slide_version_dict(v) for v in versions],
        "active_version_id": active.id if active else None,
    }


def activate_slide_version(db: Session, carousel: models.ArticleCarouselIntent, slide_number,
                           version_id) -> Dict[str, Any]:
    """Put an earlier render of one slide back into the carousel and rebuild the PDF."""
    slide_number = _slide_number(slide_number)
    if not isinstance(version_id, str) or not version_id:
        raise CarouselError(400, "version_id is required")
    versions = crud.list_slide_versions(db, carousel.id, slide_number)
    chosen = next((v for v in versions if v.id == version_id), None)
    if chosen is None:
        raise CarouselError(404, "Version not found for this slide")

    pages = []
    for page in carousel.pages or []:
        if page.get("slide_number") == slide_number:
            page = {
                **page,
                "slide_type": chosen.slide_type or page.get("slide_type"),
                "headline": chosen.headline_text or "",
                "image_prompt": chosen.prompt or "",
                "image_url": chosen.image_url,
            }
        pages.append(page)

    storage = get_storage()
    try:
        slides = [storage.read(page["image_url"]) for page in pages]
        pdf_url = storage.save_bytes(rendering.images_to_pdf(slides), f"carousel-{carousel.id}.pdf")
    except (httpx.HTTPError, OSError, ValueError, KeyError, TypeError) as e:
        logger.warning("carousel %s: could not rebuild PDF with version %s: %s", carousel.id, version_id, e)
        raise CarouselError(500, f"Could not rebuild carousel PDF: {e}") from e

    for v in versions:
        v.is_active = v.id == chosen.id
        db.add(v)
    carousel.pages = pages
    carousel.generated_pdf_url = pdf_url
    db.add(carousel)
    db.commit()
    db.refresh(carousel)
    logger.info("carousel %s: slide %d now uses version %d", carousel.id, slide_number, chosen.version_number)
    return {
        "success": True,
        "pages": carousel.pages,
        "pdf_url": carousel.generated_pdf_url,
        "activated_slide": slide_number,
        "activated_version_id": chosen.id,
    }

def resolve_schedule(article: models.Article, scheduled_at: Optional[str] = None,
                     shared_schedule: bool = False, offset_days: Optional[int] = None):
    """Pick the carousel's publish time: explicit date, the article's time, or the article's time plus N days."""
    if scheduled_at:
        try:
            return parse_datetime(scheduled_at), None
        except ValueError:
            raise CarouselError(400, "Invalid scheduled_at date")
    unscheduled = "Article is not scheduled. Schedule the article first or provide an explicit date."
    if shared_schedule:
        if not article.scheduled_at:
            raise CarouselError(400, unscheduled)
        return article.scheduled_at, 0
    if offset_days is not None and offset_days >= 0:
        if not article.scheduled_at:
            raise CarouselError(400, unscheduled)
        return article.scheduled_at + timedelta(days=offset_days), offset_days
    raise CarouselError(400, "Provide shared_schedule, offset_days, or explicit scheduled_at")


def schedule_carousel(db: Session, article: models.Article, carousel: Optional[models.ArticleCarouselIntent],
                      scheduled_at: Optional[str] = None, shared_schedule: bool = False,
                      offset_days: Optional[int] = None, auto_publish: bool = True) -> models.ArticleCarouselIntent:
    if carousel is None:
        raise CarouselError(404, "Carousel not found. Generate a carousel first.")
    if carousel.status == "published" or carousel.linkedin_post_urn:
        raise CarouselError(400, "Carousel already published")
    if not carousel.generated_pdf_url and not carousel.pages:
        raise CarouselError(400, "Carousel not ready. Generate the carousel first.")
    when, offset = resolve_schedule(article, scheduled_at, shared_schedule, offset_days)
    carousel.scheduled_at = when
    carousel.offset_days = offset
    carousel.auto_publish = auto_publish
    carousel.status = "scheduled"
    carousel.publish_error = None
    db.add(carousel)
    db.commit()
    db.refresh(carousel)
    return carousel


def unschedule_carousel(db: Session, carousel: models.ArticleCarouselIntent) -> models.ArticleCarouselIntent:
    if carousel.status == "published":
        raise CarouselError(400, "Carousel already published. Cannot unschedule.")
    carousel.scheduled_at = None
    carousel.offset_days = None
    carousel.status = "ready" if carousel.generated_pdf_url else "pending"
    db.add(carousel)
    db.commit()
    db.refresh(carousel)
    return carousel
