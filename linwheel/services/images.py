import logging
from typing import Any, Dict, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from linwheel.db import crud, models
from linwheel.db.base import utcnow
from linwheel.deps import session_scope
from linwheel.services import brand_styles, pipeline, rendering, t2i
from linwheel.services.storage import get_storage

logger = logging.getLogger(__name__)

COVER_ASPECT_RATIO = "1.91:1"


def _owner_id(db: Session, kind: str, intent) -> Optional[str]:
    """User whose brand style applies to this intent (run owner, or the manual draft's author)."""
    if kind == "post":
        post = crud.get_post(db, intent.post_id)
        if not post:
            return None
        if post.user_id:
            return post.user_id
        run = crud.get_run(db, post.run_id) if post.run_id else None
    else:
        article = crud.get_article(db, intent.article_id)
        run = crud.get_run(db, article.run_id) if article and article.run_id else None
    return run.user_id if run else None


def _image_bytes(result: t2i.ImageResult) -> bytes:
    raw = result.image_bytes()
    if raw is not None:
        return raw
    return get_storage().read(result.image_url)


def generate_for_intent(
    db: Session,
    kind: str,
    intent,
    provider: Optional[str] = None,
    include_text: bool = True,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Generate, store and record a cover image for a post or article intent."""
    style = brand_styles.get_active_brand_style(db, user_id or _owner_id(db, kind, intent))
    prompt, negative = brand_styles.styled_prompts(intent.prompt or "", intent.negative_prompt or "", style)
    request = t2i.ImageRequest(
        prompt=prompt,
        negative_prompt=negative,
        headline_text="",  # text goes on via overlay, T2I mangles it
        style_preset=intent.style_preset or "typographic_minimal",
        aspect_ratio=COVER_ASPECT_RATIO,
        quality="hd",
    )
    result = t2i.generate_image(request, provider)

    if not result.success:
        intent.generation_error = result.error
        intent.generated_at = utcnow()
        intent.generation_provider = result.provider
        db.add(intent)
        db.commit()
        logger.warning("%s intent %s: generation failed (%s): %s", kind, intent.id, result.provider, result.error)
        return {"success": False, "error": result.error, "provider": result.provider}

    versions = crud.list_versions(db, kind, intent.id)
    next_version = (versions[0].version_number + 1) if versions else 1
    final_url = result.image_url
    try:
        raw = _image_bytes(result)
        if include_text and intent.headline_text:
            data = rendering.overlay_headline(raw, intent.headline_text)
            filename = f"{kind}-cover-{intent.id}-v{next_version}.png"
        else:
            data = raw
            filename = f"{kind}-cover-{intent.id}-v{next_version}-notext.png"
        final_url = get_storage().save_bytes(data, filename)
    except (httpx.HTTPError, OSError, ValueError) as e:
        # keep the provider URL rather than losing the image
        logger.error("%s intent %s: post-processing failed, keeping raw image: %s", kind, intent.id, e)

    if not final_url:
        intent.generation_error = "Image could not be stored"
        intent.generated_at = utcnow()
        intent.generation_provider = result.provider
        db.add(intent)
        db.commit()
        return {"success": False, "error": intent.generation_error, "provider": result.provider}

    version = crud.add_version(db, kind, intent, final_url, result.provider, include_text)
    intent.generated_image_url = final_url
    intent.generated_at = utcnow()
    intent.generation_provider = result.provider
    intent.generation_error = None
    db.add(intent)
    db.commit()
    logger.info("%s intent %s: image v%d stored at %s", kind, intent.id, version.version_number, final_url)
    return {
        "success": True,
        "image_url": final_url,
        "provider": result.provider,
        "metadata": result.metadata,
        "version": {"id": version.id, "version_number": version.version_number, "include_text": include_text},
    }


def generate_intent_image_job(kind: str, intent_id: str) -> None:
    """Background job used after approval. Skips intents that already have an image."""
    with session_scope() as db:
        intent = crud.get_intent(db, kind, intent_id)
        if intent is None:
            logger.info("%s intent %s vanished before generation", kind, intent_id)
            return
        if intent.generated_image_url:
            return
        generate_for_intent(db, kind, intent)


def dispatch_if_missing(background_tasks, kind: str, intent) -> bool:
    """Queue one cover generation for an intent without an image. Returns whether a job was queued."""
    if intent is None or intent.generated_image_url:
        return False
    background_tasks.add_task(generate_intent_image_job, kind, intent.id)
    return True


def _intent_content(kind: str, owner) -> Tuple[str, str]:
    if kind == "post":
        return owner.full_text or owner.hook or "", owner.hook or ""
    return f"{owner.title or ''}\n\n{owner.introduction or ''}", owner.title or ""


def regenerate_prompt(db: Session, llm, kind: str, owner, feedback: Optional[str] = None):
    """Rewrite the image direction of a post or article, creating the intent when missing.

    With feedback and an existing intent the previous direction is revised,
    otherwise a fresh one is written from the content. A changed prompt drops
    the generated image so the next generation uses it.
    """
    if kind == "post":
        intent = crud.get_post_intent(db, owner.id)
    else:
        intent = crud.get_article_intent(db, owner.id)
    content, headline_hint = _intent_content(kind, owner)
    if feedback and intent is not None:
        previous = pipeline.ImageIntentDraft(
            prompt=intent.prompt or "",
            negative_prompt=intent.negative_prompt or "",
            headline_text=intent.headline_text or "",
            style_preset=intent.style_preset or "typographic_minimal",
        )
        draft = pipeline.regenerate_image_intent(llm, content, previous, feedback)
    else:
        draft = pipeline.generate_image_intent(llm, content, headline_hint=headline_hint)

    if intent is None:
        if kind == "post":
            intent = models.ImageIntent(post_id=owner.id)
        else:
            intent = models.ArticleImageIntent(article_id=owner.id, include_in_post=True)
    for key, value in draft.model_dump().items():
        setattr(intent, key, value)
    intent.generated_image_url = None
    intent.generated_at = None
    intent.generation_error = None
    db.add(intent)
    db.commit()
    db.refresh(intent)
    logger.info("%s %s: image prompt %s", kind, owner.id, "revised" if feedback else "regenerated")
    return intent
