from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from linwheel.db import crud, crud_connections, models
from linwheel.db.base import utcnow
from linwheel.main import app
from linwheel.services import publishing, scheduler
from linwheel.services.storage import get_storage

client = TestClient(app)

CRON = {"Authorization": "Bearer test-cron-secret"}
URN = "urn:li:share:42"


@pytest.fixture
def linkedin():
    with patch("linwheel.services.publishing.LinkedInClient") as cls:
        cls.return_value.create_post.return_value = {"post_urn": URN, "post_url": f"https://www.linkedin.com/feed/update/{URN}"}
        cls.return_value.upload_document.return_value = "urn:li:document:9"
        yield cls


def _due(db, row, minutes=-5, **kw):
    row.approved = True
    row.scheduled_at = utcnow() + timedelta(minutes=minutes)
    for key, value in kw.items():
        setattr(row, key, value)
    db.commit()


def test_cron_requires_secret():
    assert client.post("/api/cron/auto-publish").status_code == 401
    resp = client.get("/api/cron/auto-publish", headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


def test_cron_with_nothing_due():
    resp = client.get("/api/cron/auto-publish", headers=CRON)
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["processed"] == 0


def test_selection_skips_future_unapproved_manual_and_published(db, make_run):
    _, due_post, due_article = make_run()
    _due(db, due_post)
    _due(db, due_article)
    _, future, _ = make_run()
    _due(db, future, minutes=60)
    _, unapproved, _ = make_run()
    _due(db, unapproved, approved=False)
    _, manual_off, _ = make_run()
    _due(db, manual_off, auto_publish=False)
    _, done, _ = make_run()
    _due(db, done, linkedin_post_urn="urn:li:share:1")

    now = utcnow()
    assert [p.id for p in scheduler.due_posts(db, now)] == [due_post.id]
    assert [a.id for a in scheduler.due_articles(db, now)] == [due_article.id]


def test_auto_publish_publishes_due_post(db, make_run, linkedin):
    crud_connections.save_connection(db, "user-1", "access-1", 3600, profile_id="abc")
    _, post, _ = make_run()
    _due(db, post)

    resp = client.post("/api/cron/auto-publish", headers=CRON)
    body = resp.json()
    assert body["processed"] == 1
    assert body["published"] == 1
    assert body["failed"] == 0
    assert body["notifications_sent"] == 0
    db.expire_all()
    assert crud.get_post(db, post.id).linkedin_post_urn == URN


def test_auto_publish_records_failures(db, make_run, linkedin):
    _, post, _ = make_run()
    _due(db, post)
    orphan = models.LinkedInPost(hook="h", full_text="text", approved=True,
                                 scheduled_at=utcnow() - timedelta(minutes=1))
    db.add(orphan)
    db.commit()

    summary = scheduler.run_auto_publish()
    assert summary["failed"] == 2
    errors = {e["id"]: e["error"] for e in summary["errors"]}
    assert errors[post.id] == "LinkedIn not connected"
    assert errors[orphan.id] == scheduler.NO_USER
    db.expire_all()
    assert crud.get_post(db, post.id).linkedin_publish_error == "LinkedIn not connected"
    linkedin.return_value.create_post.assert_not_called()


def test_auto_publish_carousel(db, make_run, linkedin):
    crud_connections.save_connection(db, "user-1", "access-1", 3600, profile_id="abc")
    _, _, article = make_run()
    pdf_url = get_storage().save_bytes(b"%PDF-1.4 fake", "carousel-test.pdf")
    carousel = models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url=pdf_url, status="scheduled",
                                            scheduled_at=utcnow() - timedelta(minutes=1))
    db.add(carousel)
    db.commit()

    summary = scheduler.run_auto_publish()
    assert summary["published"] == 1
    linkedin.return_value.upload_document.assert_called_once_with(b"%PDF-1.4 fake")
    assert linkedin.return_value.create_post.call_args.kwargs["media_title"] == "Article title"
    db.expire_all()
    stored = crud.get_carousel(db, article.id)
    assert stored.status == "published"
    assert stored.linkedin_post_urn == URN



def test_auto_publish_skips_published_carousel(db, make_run, linkedin):
    crud_connections.save_connection(db, "user-1", "access-1", 3600, profile_id="abc")
    _, _, article = make_run()
    pdf_url = get_storage().save_bytes(b"%PDF-1.4 fake", "carousel-done.pdf")
    # status left at scheduled with a urn already recorded
    db.add(models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url=pdf_url, status="scheduled",
                                        scheduled_at=utcnow() - timedelta(minutes=1), linkedin_post_urn="urn:li:share:1"))
    db.commit()

    assert scheduler.due_carousels(db, utcnow()) == []
    summary = scheduler.run_auto_publish()
    assert summary["processed"] == 0
    linkedin.return_value.upload_document.assert_not_called()
    db.expire_all()
    assert crud.get_carousel(db, article.id).linkedin_post_urn == "urn:li:share:1"


def test_publish_carousel_refuses_carousel_with_urn(db, make_run, linkedin):
    _, _, article = make_run()
    carousel = models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url="/media/c.pdf",
                                            status="published", linkedin_post_urn="urn:li:share:1")
    db.add(carousel)
    db.commit()
    with pytest.raises(publishing.PublishError) as exc:
        publishing.publish_carousel(db, carousel, article, "user-1")
    assert exc.value.status_code == 400
    assert exc.value.body() == {"error": "Carousel already published", "linkedin_post_urn": "urn:li:share:1"}
    linkedin.return_value.create_post.assert_not_called()

@patch("linwheel.services.push.send_content_reminder", return_value=1)
def test_content_reminders(mock_remind, db, make_run):
    make_run(user_id="idle", approved=True)
    _, busy_post, _ = make_run(user_id="busy", approved=True)
    busy_post.scheduled_at = utcnow() + timedelta(hours=3)
    db.commit()

    resp = client.post("/api/cron/content-reminders", headers=CRON)
    assert resp.json() == {"success": True, "users_checked": 2, "users_reminded": 1, "notifications_sent": 1}
    mock_remind.assert_called_once()
    assert mock_remind.call_args.args[1:] == ("idle", 2)
