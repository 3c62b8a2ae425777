"""Publish approved posts and articles to the author's LinkedIn account."""
import logging
from typing import Any, Dict, Optional

import httpx
from cryptography.fernet import InvalidToken
from sqlalchemy.orm import Session

from linwheel.db import crud, crud_connections, models, token_crypto
from linwheel.db.base import utcnow
from linwheel.services import linkedin_api
from linwheel.services.article_formatter import format_article
from linwheel.services.linkedin_api import LinkedInClient, LinkedInError
from linwheel.services.storage import get_storage

logger = logging.getLogger(__name__)

# wording shown to a user publishing by hand
ROUTE_MESSAGES = {
    "not_connected": "LinkedIn account not connected",
    "expired": "LinkedIn connection expired. Please reconnect.",
    "no_profile": "LinkedIn profile ID missing. Please reconnect.",
}
# wording stored on rows the auto-publish run could not send
CRON_MESSAGES = {
    "not_connected": "LinkedIn not connected",
    "expired": "LinkedIn connection expired",
    "no_profile": "LinkedIn profile ID missing",
}


class PublishError(Exception):
    def __init__(self, status_code: int, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.extra = extra or {}

    def body(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


def client_for_user(db: Session, user_id: str, messages: Dict[str, str] = ROUTE_MESSAGES) -> LinkedInClient:
    conn = crud_connections.get_connection(db, user_id)
    if conn is None:
        raise PublishError(400, messages["not_connected"])
    if crud_connections.is_expired(conn):
        raise PublishError(400, messages["expired"])
    try:
        access_token = token_crypto.decrypt_token(conn.access_token)
    except InvalidToken:
        raise PublishError(400, messages["not_connected"])
    if not conn.linkedin_profile_id:
        raise PublishError(400, messages["no_profile"])
    return LinkedInClient(access_token, conn.linkedin_profile_id)


def owner_of(db: Session, row) -> Optional[str]:
    if getattr(row, "user_id", None):
        return row.user_id
    run = crud.get_run(db, row.run_id) if row.run_id else None
    return run.user_id if run else None


def _check_owner(db: Session, row, user_id: str) -> None:
    owner = owner_of(db, row)
    if owner and owner != user_id:
        raise PublishError(403, "Unauthorized")


def _upload_cover(client: LinkedInClient, image_url: str) -> str:
    try:
        data = get_storage().read(image_url)
    except (httpx.HTTPError, OSError) as e:
        raise LinkedInError(linkedin_api.IMAGE_UPLOAD_FAILED, f"could not read cover {image_url}: {e}") from e
    content_type = "image/jpeg" if image_url.lower().endswith((".jpg", ".jpeg")) else "image/png"
    return client.upload_image(data, content_type)


def _send(db: Session, row, client: LinkedInClient, commentary: str,
          image_url: Optional[str], alt_text: Optional[str]) -> Dict[str, str]:
    try:
        media_urn = _upload_cover(client, image_url) if image_url else None
        result = client.create_post(commentary, media_urn=media_urn, alt_text=alt_text)
    except LinkedInError as e:
        row.linkedin_publish_error = e.user_message
        db.add(row)
        db.commit()
        logger.warning("publish of %s %s failed: %s (%s)", row.__tablename__, row.id, e.code, e)
        raise PublishError(401 if e.requires_reconnect else 500, e.user_message, {"code": e.code}) from e

    row.linkedin_post_urn = result["post_urn"]
    row.linkedin_published_at = utcnow()
    row.linkedin_publish_error = None
    db.add(row)
    db.commit()
    logger.info("published %s %s as %s", row.__tablename__, row.id, result["post_urn"])
    return result


def publish_post(db: Session, post: models.LinkedInPost, user_id: str,
                 messages: Dict[str, str] = ROUTE_MESSAGES) -> Dict[str, Any]:
    _check_owner(db, post, user_id)
    if not post.approved:
        raise PublishError(400, "Post must be approved before publishing")
    if post.linkedin_post_urn:
        raise PublishError(400, "Post already published to LinkedIn", {"linkedin_post_urn": post.linkedin_post_urn})
    client = client_for_user(db, user_id, messages)

    intent = crud.get_post_intent(db, post.id)
    image_url = intent.generated_image_url if intent else None
    alt_text = (intent.headline_text if intent else None) or post.hook
    result = _send(db, post, client, post.full_text or "", image_url, alt_text)
    return {"success": True, **result}


def publish_article(db: Session, article: models.Article, user_id: str,
                    messages: Dict[str, str] = ROUTE_MESSAGES) -> Dict[str, Any]:
    _check_owner(db, article, user_id)
    if not article.approved:
        raise PublishError(400, "Article must be approved before publishing")
    if article.linkedin_post_urn:
        raise PublishError(400, "Article already published to LinkedIn", {"linkedin_post_urn": article.linkedin_post_urn})
    client = client_for_user(db, user_id, messages)

    intent = crud.get_article_intent(db, article.id)
    image_url = None
    # a null include_in_post comes from rows created before the column existed
    if intent and intent.generated_image_url and intent.include_in_post is not False:
        image_url = intent.generated_image_url
    alt_text = (intent.headline_text if intent else None) or article.title
    commentary = format_article(article)
    result = _send(db, article, client, commentary, image_url, alt_text)
    return {"success": True, **result, "formatted_length": len(commentary)}


def publish_carousel(db: Session, carousel: models.ArticleCarouselIntent, article: models.Article,
                     user_id: str, messages: Dict[str, str] = CRON_MESSAGES) -> Dict[str, str]:
    """Upload the carousel PDF as a document post. Used by the auto-publish run."""
    if carousel.linkedin_post_urn:
        raise PublishError(400, "Carousel already published", {"linkedin_post_urn": carousel.linkedin_post_urn})
    if not carousel.generated_pdf_url:
        raise PublishError(400, "Carousel has no PDF")
    client = client_for_user(db, user_id, messages)
    try:
        pdf = get_storage().read(carousel.generated_pdf_url)
        document_urn = client.upload_document(pdf)
        title = article.title or "Carousel"
        result = client.create_post(
            f"{title}\n\n{article.subtitle or ''}".strip(),
            media_urn=document_urn,
            media_title=title,
        )
    except (httpx.HTTPError, OSError) as e:
        raise PublishError(500, f"Could not read carousel PDF: {e}") from e
    except LinkedInError as e:
        raise PublishError(401 if e.requires_reconnect else 500, e.user_message, {"code": e.code}) from e
    carousel.status = "published"
    carousel.published_at = utcnow()
    carousel.linkedin_post_urn = result["post_urn"]
    carousel.publish_error = None
    db.add(carousel)
    db.commit()
    logger.info("published carousel %s as %s", carousel.id, result["post_urn"])
    return result
