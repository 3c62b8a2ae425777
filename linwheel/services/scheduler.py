"""
Scheduled work: auto-publish due content and daily content reminders.

Both jobs are plain functions so they can run from the cron endpoints or the
in-process APScheduler; each call opens its own session.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from linwheel.db import crud, models
from linwheel.db.base import utcnow
from linwheel.deps import session_scope
from linwheel.services import push
from linwheel.services.linkedin_api import post_url
from linwheel.services.publishing import CRON_MESSAGES, PublishError, owner_of, publish_article, publish_carousel, publish_post

logger = logging.getLogger(__name__)

NO_USER = "No user ID available for this post"


def due_posts(db: Session, now: datetime) -> List[models.LinkedInPost]:
    return (
        db.query(models.LinkedInPost)
        .filter(
            models.LinkedInPost.approved.is_(True),
            models.LinkedInPost.auto_publish.is_(True),
            models.LinkedInPost.scheduled_at.isnot(None),
            models.LinkedInPost.scheduled_at <= now,
            models.LinkedInPost.linkedin_post_urn.is_(None),
        )
        .order_by(models.LinkedInPost.scheduled_at)
        .all()
    )


def due_articles(db: Session, now: datetime) -> List[models.Article]:
    return (
        db.query(models.Article)
        .filter(
            models.Article.approved.is_(True),
            models.Article.auto_publish.is_(True),
            models.Article.scheduled_at.isnot(None),
            models.Article.scheduled_at <= now,
            models.Article.linkedin_post_urn.is_(None),
        )
        .order_by(models.Article.scheduled_at)
        .all()
    )


def due_carousels(db: Session, now: datetime) -> List[models.ArticleCarouselIntent]:
    return (
        db.query(models.ArticleCarouselIntent)
        .filter(
            models.ArticleCarouselIntent.status == "scheduled",
            models.ArticleCarouselIntent.auto_publish.is_(True),
            models.ArticleCarouselIntent.scheduled_at.isnot(None),
            models.ArticleCarouselIntent.scheduled_at <= now,
            models.ArticleCarouselIntent.linkedin_post_urn.is_(None),
        )
        .order_by(models.ArticleCarouselIntent.scheduled_at)
        .all()
    )


def _fail(db: Session, row, message: str, field: str = "linkedin_publish_error") -> None:
    setattr(row, field, message)
    db.add(row)
    db.commit()


def _publish_content(db: Session, kind: str, row) -> Dict[str, Any]:
    result: Dict[str, Any] = {"id": row.id, "type": kind, "success": False, "notification_sent": False}
    user_id = owner_of(db, row)
    if not user_id:
        _fail(db, row, NO_USER)
        result["error"] = NO_USER
        return result
    try:
        if kind == "post":
            published = publish_post(db, row, user_id, messages=CRON_MESSAGES)
            title = row.hook or row.full_text
        else:
            published = publish_article(db, row, user_id, messages=CRON_MESSAGES)
            title = row.title
    except PublishError as e:
        _fail(db, row, e.message)
        logger.warning("auto-publish %s %s failed: %s", kind, row.id, e.message)
        result["error"] = e.message
        return result
    result["success"] = True
    result["post_urn"] = published["post_urn"]
    result["notification_sent"] = push.send_post_published_notification(
        db, user_id, title or "", published["post_url"], row.id, content_type=kind
    ) > 0
    return result


def _publish_carousel(db: Session, carousel: models.ArticleCarouselIntent) -> Dict[str, Any]:
    result: Dict[str, Any] = {"id": carousel.id, "type": "carousel", "success": False, "notification_sent": False}
    article = crud.get_article(db, carousel.article_id)
    user_id = owner_of(db, article) if article else None
    if not user_id:
        carousel.status = "failed"
        _fail(db, carousel, NO_USER, field="publish_error")
        result["error"] = NO_USER
        return result
    try:
        published = publish_carousel(db, carousel, article, user_id)
    except PublishError as e:
        carousel.status = "failed"
        _fail(db, carousel, e.message, field="publish_error")
        logger.warning("auto-publish carousel %s failed: %s", carousel.id, e.message)
        result["error"] = e.message
        return result
    result["success"] = True
    result["post_urn"] = published["post_urn"]
    result["notification_sent"] = push.send_post_published_notification(
        db, user_id, f"Carousel: {article.title or ''}", post_url(published["post_urn"]), carousel.id,
        content_type="carousel",
    ) > 0
    return result


def run_auto_publish(now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    results: List[Dict[str, Any]] = []
    with session_scope() as db:
        for post in due_posts(db, now):
            results.append(_publish_content(db, "post", post))
        for article in due_articles(db, now):
            results.append(_publish_content(db, "article", article))
        for carousel in due_carousels(db, now):
            results.append(_publish_carousel(db, carousel))

    published = [r for r in results if r["success"]]
    summary = {
        "processed": len(results),
        "published": len(published),
        "failed": len(results) - len(published),
        "notifications_sent": sum(1 for r in results if r["notification_sent"]),
        "errors": [{"id": r["id"], "type": r["type"], "error": r["error"]} for r in results if not r["success"]],
        "results": results,
    }
    logger.info("auto-publish: %d processed, %d published, %d failed",
                summary["processed"], summary["published"], summary["failed"])
    return summary


def _users_with_upcoming(db: Session, now: datetime, until: datetime) -> Set[str]:
    users: Set[str] = set()
    for model in (models.LinkedInPost, models.Article):
        rows = db.query(model).filter(model.scheduled_at.isnot(None), model.scheduled_at > now, model.scheduled_at <= until)
        for row in rows:
            owner = owner_of(db, row)
            if owner:
                users.add(owner)
    return users


def _approved_backlog(db: Session) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for model in (models.LinkedInPost, models.Article):
        rows = db.query(model).filter(model.approved.is_(True), model.linkedin_post_urn.is_(None))
        for row in rows:
            owner = owner_of(db, row)
            if owner:
                counts[owner] = counts.get(owner, 0) + 1
    return counts


def run_content_reminders(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Remind users who have approved content but nothing scheduled in the next 24 hours."""
    now = now or utcnow()
    with session_scope() as db:
        busy = _users_with_upcoming(db, now, now + timedelta(hours=24))
        backlog = _approved_backlog(db)
        reminded = 0
        sent = 0
        for user_id, count in backlog.items():
            if user_id in busy:
                continue
            delivered = push.send_content_reminder(db, user_id, count)
            if delivered:
                reminded += 1
                sent += delivered
    logger.info("content reminders: %d users reminded, %d notifications", reminded, sent)
    return {"users_checked": len(backlog), "users_reminded": reminded, "notifications_sent": sent}
