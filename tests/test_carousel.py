from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from linwheel.db import crud, models
from linwheel.main import app
from linwheel.services import carousel as carousels

from conftest import FakeLLM

client = TestClient(app)


def _article(**kw):
    defaults = dict(title="Why small PRs win", introduction="Intro.", conclusion="End.",
                    sections=["## Review faster\nBody", "Short sections help. More text", ""])
    defaults.update(kw)
    return models.Article(**defaults)


def test_sanitize_headline():
    assert carousels.sanitize_headline("**Bold** _claim_") == "Bold claim"
    long = carousels.sanitize_headline("word " * 30)
    assert len(long) <= carousels.MAX_HEADLINE_CHARS
    assert long.endswith("...")


def test_fallback_captions_follow_article_structure():
    captions = carousels.fallback_captions(_article())
    assert [c.slide_type for c in captions] == ["title", "content", "content", "content", "cta"]
    assert [c.headline for c in captions] == [
        "Why small PRs win", "Review faster", "Short sections help", "Key Insight 3", "Ready to learn more?",
    ]


def test_generate_captions_uses_llm_slides():
    captions = carousels.generate_captions(FakeLLM(), _article(id="a1"))
    assert [c.headline for c in captions] == ["Slide 1", "Slide 2", "Slide 3", "Slide 4", "Slide 5"]


def test_generate_captions_falls_back_on_wrong_slide_count():
    class ThreeSlides:
        def generate_json(self, system, user, temperature=0.5):
            return {"slides": [{"slide_number": n, "slide_type": "content", "headline": "x"} for n in (1, 2, 3)]}

    captions = carousels.generate_captions(ThreeSlides(), _article(id="a1"))
    assert captions[0].headline == "Why small PRs win"


def test_resolve_schedule_precedence():
    article = _article(scheduled_at=datetime(2030, 5, 1, 9, 0))
    assert carousels.resolve_schedule(article, scheduled_at="2030-06-01T10:00:00Z", shared_schedule=True) == \
        (datetime(2030, 6, 1, 10, 0), None)
    assert carousels.resolve_schedule(article, shared_schedule=True, offset_days=3) == (datetime(2030, 5, 1, 9, 0), 0)
    assert carousels.resolve_schedule(article, offset_days=2) == (datetime(2030, 5, 3, 9, 0), 2)


def test_resolve_schedule_errors():
    with pytest.raises(carousels.CarouselError) as exc:
        carousels.resolve_schedule(_article(), shared_schedule=True)
    assert exc.value.message.startswith("Article is not scheduled")

    with pytest.raises(carousels.CarouselError) as exc:
        carousels.resolve_schedule(_article(scheduled_at=datetime(2030, 5, 1)), offset_days=-1)
    assert exc.value.message == "Provide shared_schedule, offset_days, or explicit scheduled_at"


def test_generate_carousel_without_providers_uses_fallback_slides(make_run):
    _, _, article = make_run()
    resp = client.post(f"/api/articles/{article.id}/carousel", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["page_count"] == 5
    assert body["provider"] == "fallback"
    assert body["pdf_url"].endswith(".pdf")

    again = client.post(f"/api/articles/{article.id}/carousel", json={}).json()
    assert again["cached"] is True
    assert again["carousel_id"] == body["carousel_id"]

    status = client.get(f"/api/articles/{article.id}/carousel").json()
    assert status["exists"] is True
    assert status["status"] == "ready"


def test_generate_carousel_rejects_bad_preset(make_run):
    _, _, article = make_run()
    resp = client.post(f"/api/articles/{article.id}/carousel", json={"style_preset": "sparkles"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Invalid style preset"}


def test_schedule_routes_need_login(make_run):
    _, _, article = make_run()
    url = f"/api/articles/{article.id}/carousel/schedule"
    assert client.post(url, json={"offset_days": 1}).status_code == 401
    assert client.get(url).status_code == 401
    resp = client.delete(url)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


def test_schedule_requires_carousel(make_run, auth_headers):
    _, _, article = make_run()
    resp = client.post(f"/api/articles/{article.id}/carousel/schedule", json={"offset_days": 1},
                       headers=auth_headers())
    assert resp.status_code == 404
    assert resp.json() == {"error": "Carousel not found. Generate a carousel first."}


def test_schedule_and_unschedule(db, make_run, auth_headers):
    _, _, article = make_run()
    article.scheduled_at = datetime(2030, 5, 1, 9, 0)
    db.add(models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url="/media/c.pdf", status="ready"))
    db.commit()

    resp = client.post(f"/api/articles/{article.id}/carousel/schedule", json={"offset_days": 1},
                       headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["scheduled_at"] == "2030-05-02T09:00:00"
    assert resp.json()["status"] == "scheduled"
    assert resp.json()["is_scheduled"] is True

    info = client.get(f"/api/articles/{article.id}/carousel/schedule", headers=auth_headers()).json()
    assert info["offset_days"] == 1

    resp = client.delete(f"/api/articles/{article.id}/carousel/schedule", headers=auth_headers())
    assert resp.json()["status"] == "ready"
    assert resp.json()["scheduled_at"] is None


def test_cannot_unschedule_published_carousel(db, make_run, auth_headers):
    _, _, article = make_run()
    db.add(models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url="/media/c.pdf", status="published"))
    db.commit()
    resp = client.delete(f"/api/articles/{article.id}/carousel/schedule", headers=auth_headers())
    assert resp.status_code == 400


def test_cannot_reschedule_published_carousel(db, make_run, auth_headers):
    _, _, article = make_run()
    db.add(models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url="/media/c.pdf", status="published",
                                        linkedin_post_urn="urn:li:share:7"))
    db.commit()
    resp = client.post(f"/api/articles/{article.id}/carousel/schedule",
                       json={"scheduled_at": "2030-06-01T10:00:00Z"}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json() == {"error": "Carousel already published"}
    db.expire_all()
    stored = crud.get_carousel(db, article.id)
    assert stored.status == "published"
    assert stored.scheduled_at is None


def test_schedule_rejects_carousel_with_urn_even_if_status_drifted(db, make_run):
    _, _, article = make_run()
    carousel = models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url="/media/c.pdf", status="ready",
                                            linkedin_post_urn="urn:li:share:7")
    db.add(carousel)
    db.commit()
    with pytest.raises(carousels.CarouselError) as exc:
        carousels.schedule_carousel(db, article, carousel, scheduled_at="2030-06-01T10:00:00Z")
    assert exc.value.status_code == 400
    assert exc.value.message == "Carousel already published"


def test_regenerating_published_carousel_keeps_it_published(db, make_run):
    _, _, article = make_run()
    db.add(models.ArticleCarouselIntent(article_id=article.id, generated_pdf_url="/media/c.pdf", status="published",
                                        linkedin_post_urn="urn:li:share:7"))
    db.commit()
    resp = client.post(f"/api/articles/{article.id}/carousel", json={"force_regenerate": True})
    assert resp.status_code == 200
    db.expire_all()
    stored = crud.get_carousel(db, article.id)
    assert stored.status == "published"
    assert stored.linkedin_post_urn == "urn:li:share:7"


# --- slide versions ---

def test_generate_records_one_version_per_slide(db, make_run):
    _, _, article = make_run()
    client.post(f"/api/articles/{article.id}/carousel", json={})
    client.post(f"/api/articles/{article.id}/carousel", json={"force_regenerate": True})

    resp = client.get(f"/api/articles/{article.id}/carousel/versions", params={"slide": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["slide_number"] == 2
    assert [v["version_number"] for v in body["versions"]] == [2, 1]
    assert [v["is_active"] for v in body["versions"]] == [True, False]
    assert body["active_version_id"] == body["versions"][0]["id"]
    assert body["versions"][0]["image_url"] != body["versions"][1]["image_url"]


def test_versions_reject_bad_slide_number(db, make_run):
    _, _, article = make_run()
    db.add(models.ArticleCarouselIntent(article_id=article.id, status="ready"))
    db.commit()
    resp = client.get(f"/api/articles/{article.id}/carousel/versions", params={"slide": 6})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid slide number. Must be 1-5."}
    assert client.get(f"/api/articles/{article.id}/carousel/versions").status_code == 400


def test_versions_need_carousel(make_run):
    _, _, article = make_run()
    resp = client.get(f"/api/articles/{article.id}/carousel/versions", params={"slide": 1})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Carousel not found"}


def test_activate_earlier_version_restores_slide(db, make_run):
    _, _, article = make_run()
    client.post(f"/api/articles/{article.id}/carousel", json={})
    client.post(f"/api/articles/{article.id}/carousel", json={"force_regenerate": True})
    versions = client.get(f"/api/articles/{article.id}/carousel/versions", params={"slide": 3}).json()["versions"]
    first = versions[-1]

    resp = client.post(f"/api/articles/{article.id}/carousel/versions",
                       json={"slide_number": 3, "version_id": first["id"]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["activated_slide"] == 3
    assert body["activated_version_id"] == first["id"]
    assert body["pages"][2]["image_url"] == first["image_url"]
    assert body["pdf_url"].endswith(".pdf")

    after = client.get(f"/api/articles/{article.id}/carousel/versions", params={"slide": 3}).json()
    assert after["active_version_id"] == first["id"]


def test_activate_rejects_version_of_other_slide(make_run):
    _, _, article = make_run()
    client.post(f"/api/articles/{article.id}/carousel", json={})
    slide_one = client.get(f"/api/articles/{article.id}/carousel/versions", params={"slide": 1}).json()["versions"][0]

    resp = client.post(f"/api/articles/{article.id}/carousel/versions",
                       json={"slide_number": 2, "version_id": slide_one["id"]})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Version not found for this slide"}

    resp = client.post(f"/api/articles/{article.id}/carousel/versions", json={"slide_number": 2})
    assert resp.status_code == 400
    assert resp.json() == {"error": "version_id is required"}


def test_delete_carousel(db, make_run):
    _, _, article = make_run()
    db.add(models.ArticleCarouselIntent(article_id=article.id, status="ready"))
    db.commit()
    assert client.delete(f"/api/articles/{article.id}/carousel").json() == {"deleted": True}
    db.expire_all()
    assert crud.get_carousel(db, article.id) is None
