from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from linwheel.db import models

# --- runs ---

def create_run(
    db: Session,
    transcript: str,
    source_label: str = "Untitled",
    selected_angles: Optional[List[str]] = None,
    selected_article_angles: Optional[List[str]] = None,
    user_id: Optional[str] = None,
    status: str = "processing",
) -> models.GenerationRun:
    obj = models.GenerationRun(
        transcript=transcript,
        source_label=source_label,
        selected_angles=selected_angles,
        selected_article_angles=selected_article_angles,
        user_id=user_id,
        status=status,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_run(db: Session, run_id: str) -> Optional[models.GenerationRun]:
    return db.query(models.GenerationRun).filter(models.GenerationRun.id == run_id).first()

def list_runs(db: Session, limit: int = 50) -> List[models.GenerationRun]:
    return (
        db.query(models.GenerationRun)
        .order_by(models.GenerationRun.created_at.desc())
        .limit(limit)
        .all()
    )

def clear_run_content(db: Session, run_id: str) -> None:
    """Delete everything hanging off a run, children before parents. Does not commit."""
    post_ids = [pid for (pid,) in db.query(models.LinkedInPost.id).filter(models.LinkedInPost.run_id == run_id)]
    article_ids = [aid for (aid,) in db.query(models.Article.id).filter(models.Article.run_id == run_id)]

    if post_ids:
        intent_ids = [i for (i,) in db.query(models.ImageIntent.id).filter(models.ImageIntent.post_id.in_(post_ids))]
        _delete_versions(db, intent_ids, "post")
        db.query(models.ImageIntent).filter(models.ImageIntent.post_id.in_(post_ids)).delete(synchronize_session=False)
        db.query(models.LinkedInPost).filter(models.LinkedInPost.id.in_(post_ids)).delete(synchronize_session=False)

    if article_ids:
        intent_ids = [
            i for (i,) in db.query(models.ArticleImageIntent.id).filter(models.ArticleImageIntent.article_id.in_(article_ids))
        ]
        _delete_versions(db, intent_ids, "article")
        _delete_carousels(db, article_ids)
        db.query(models.ArticleImageIntent).filter(
            models.ArticleImageIntent.article_id.in_(article_ids)
        ).delete(synchronize_session=False)
        db.query(models.Article).filter(models.Article.id.in_(article_ids)).delete(synchronize_session=False)

    db.query(models.SourceSummary).filter(models.SourceSummary.run_id == run_id).delete(synchronize_session=False)
    db.query(models.DistilledInsight).filter(models.DistilledInsight.run_id == run_id).delete(synchronize_session=False)
    db.query(models.Insight).filter(models.Insight.run_id == run_id).delete(synchronize_session=False)

def _delete_versions(db: Session, intent_ids: List[str], kind: str) -> None:
    if not intent_ids:
        return
    db.query(models.ImageVersion).filter(
        models.ImageVersion.intent_id.in_(intent_ids),
        models.ImageVersion.intent_kind == kind,
    ).delete(synchronize_session=False)

def _delete_carousels(db: Session, article_ids: List[str]) -> None:
    carousel_ids = [
        c for (c,) in db.query(models.ArticleCarouselIntent.id).filter(models.ArticleCarouselIntent.article_id.in_(article_ids))
    ]
    if carousel_ids:
        db.query(models.CarouselSlideVersion).filter(
            models.CarouselSlideVersion.carousel_intent_id.in_(carousel_ids)
        ).delete(synchronize_session=False)
    db.query(models.ArticleCarouselIntent).filter(
        models.ArticleCarouselIntent.article_id.in_(article_ids)
    ).delete(synchronize_session=False)

def delete_run(db: Session, run: models.GenerationRun) -> None:
    clear_run_content(db, run.id)
    db.query(models.SourceLink).filter(models.SourceLink.run_id == run.id).delete(synchronize_session=False)
    db.delete(run)
    db.commit()

def delete_all_runs(db: Session) -> int:
    runs = db.query(models.GenerationRun).all()
    for run in runs:
        clear_run_content(db, run.id)
        db.query(models.SourceLink).filter(models.SourceLink.run_id == run.id).delete(synchronize_session=False)
        db.delete(run)
    db.commit()
    return len(runs)

# --- sources ---

def create_source_links(db: Session, run_id: str, urls: List[str]) -> List[models.SourceLink]:
    links = [models.SourceLink(run_id=run_id, url=url, status="pending") for url in urls]
    db.add_all(links)
    db.commit()
    return links

def list_source_links(db: Session, run_id: str) -> List[models.SourceLink]:
    return db.query(models.SourceLink).filter(models.SourceLink.run_id == run_id).all()

def list_distilled_insights(db: Session, run_id: str) -> List[models.DistilledInsight]:
    return db.query(models.DistilledInsight).filter(models.DistilledInsight.run_id == run_id).all()

# --- insights ---

def create_insight(db: Session, run_id: str, data: Dict[str, Any]) -> models.Insight:
    obj = models.Insight(
        run_id=run_id,
        topic=data.get("topic"),
        claim=data.get("claim"),
        why_it_matters=data.get("why_it_matters"),
        misconception=data.get("misconception"),
        professional_implication=data.get("professional_implication"),
    )
    db.add(obj)
    db.flush()
    return obj

def list_insights(db: Session, run_id: str) -> List[models.Insight]:
    return db.query(models.Insight).filter(models.Insight.run_id == run_id).all()

# --- posts ---

def get_post(db: Session, post_id: str) -> Optional[models.LinkedInPost]:
    return db.query(models.LinkedInPost).filter(models.LinkedInPost.id == post_id).first()

def list_posts(db: Session, run_id: str) -> List[models.LinkedInPost]:
    return (
        db.query(models.LinkedInPost)
        .filter(models.LinkedInPost.run_id == run_id)
        .order_by(models.LinkedInPost.post_type, models.LinkedInPost.version_number)
        .all()
    )

def max_post_version(db: Session, run_id: str, angle: str) -> int:
    v = (
        db.query(func.max(models.LinkedInPost.version_number))
        .filter(models.LinkedInPost.run_id == run_id, models.LinkedInPost.post_type == angle)
        .scalar()
    )
    return v or 0

def create_manual_post(db: Session, user_id: str, full_text: str, hook: str, auto_publish: bool = True) -> models.LinkedInPost:
    obj = models.LinkedInPost(
        run_id=None,
        insight_id=None,
        user_id=user_id,
        hook=hook,
        body_beats=[],
        open_question="",
        post_type="field_note",
        full_text=full_text,
        version_number=1,
        approved=True,
        is_manual_draft=True,
        auto_publish=auto_publish,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def delete_post(db: Session, post: models.LinkedInPost) -> None:
    intent_ids = [i for (i,) in db.query(models.ImageIntent.id).filter(models.ImageIntent.post_id == post.id)]
    _delete_versions(db, intent_ids, "post")
    db.query(models.ImageIntent).filter(models.ImageIntent.post_id == post.id).delete(synchronize_session=False)
    db.delete(post)
    db.commit()

# --- articles ---

def get_article(db: Session, article_id: str) -> Optional[models.Article]:
    return db.query(models.Article).filter(models.Article.id == article_id).first()

def delete_article(db: Session, article: models.Article) -> None:
    intent_ids = [
        i for (i,) in db.query(models.ArticleImageIntent.id).filter(models.ArticleImageIntent.article_id == article.id)
    ]
    _delete_versions(db, intent_ids, "article")
    db.query(models.ArticleImageIntent).filter(
        models.ArticleImageIntent.article_id == article.id
    ).delete(synchronize_session=False)
    _delete_carousels(db, [article.id])
    db.delete(article)
    db.commit()

def list_articles(db: Session, run_id: str) -> List[models.Article]:
    return (
        db.query(models.Article)
        .filter(models.Article.run_id == run_id)
        .order_by(models.Article.article_type, models.Article.version_number)
        .all()
    )

def max_article_version(db: Session, run_id: str, angle: str) -> int:
    v = (
        db.query(func.max(models.Article.version_number))
        .filter(models.Article.run_id == run_id, models.Article.article_type == angle)
        .scalar()
    )
    return v or 0

# --- image intents ---

def get_post_intent(db: Session, post_id: str) -> Optional[models.ImageIntent]:
    return db.query(models.ImageIntent).filter(models.ImageIntent.post_id == post_id).first()

def get_article_intent(db: Session, article_id: str) -> Optional[models.ArticleImageIntent]:
    return db.query(models.ArticleImageIntent).filter(models.ArticleImageIntent.article_id == article_id).first()

def get_intent(db: Session, kind: str, intent_id: str):
    model = models.ImageIntent if kind == "post" else models.ArticleImageIntent
    return db.query(model).filter(model.id == intent_id).first()

def list_versions(db: Session, kind: str, intent_id: str) -> List[models.ImageVersion]:
    return (
        db.query(models.ImageVersion)
        .filter(models.ImageVersion.intent_id == intent_id, models.ImageVersion.intent_kind == kind)
        .order_by(models.ImageVersion.version_number.desc())
        .all()
    )

def add_version(db: Session, kind: str, intent, image_url: str, provider: Optional[str], include_text: bool) -> models.ImageVersion:
    existing = list_versions(db, kind, intent.id)
    for v in existing:
        v.is_active = False
    row = models.ImageVersion(
        intent_id=intent.id,
        intent_kind=kind,
        version_number=(existing[0].version_number + 1) if existing else 1,
        prompt=intent.prompt,
        headline_text=intent.headline_text,
        image_url=image_url,
        include_text=include_text,
        is_active=True,
        generation_provider=provider,
    )
    db.add(row)
    return row

# --- carousels ---

def get_carousel(db: Session, article_id: str) -> Optional[models.ArticleCarouselIntent]:
    return (
        db.query(models.ArticleCarouselIntent)
        .filter(models.ArticleCarouselIntent.article_id == article_id)
        .first()
    )

def list_slide_versions(db: Session, carousel_id: str, slide_number: Optional[int] = None) -> List[models.CarouselSlideVersion]:
    q = db.query(models.CarouselSlideVersion).filter(models.CarouselSlideVersion.carousel_intent_id == carousel_id)
    if slide_number is not None:
        q = q.filter(models.CarouselSlideVersion.slide_number == slide_number)
    return q.order_by(models.CarouselSlideVersion.slide_number, models.CarouselSlideVersion.version_number.desc()).all()

def add_slide_version(db: Session, carousel_id: str, page: Dict[str, Any], provider: Optional[str]) -> models.CarouselSlideVersion:
    existing = list_slide_versions(db, carousel_id, page["slide_number"])
    for v in existing:
        v.is_active = False
    row = models.CarouselSlideVersion(
        carousel_intent_id=carousel_id,
        slide_number=page["slide_number"],
        version_number=(existing[0].version_number + 1) if existing else 1,
        slide_type=page.get("slide_type"),
        prompt=page.get("image_prompt"),
        headline_text=page.get("headline"),
        image_url=page.get("image_url"),
        is_active=True,
        generation_provider=provider,
    )
    db.add(row)
    return row
