from unittest.mock import patch

from fastapi.testclient import TestClient

from linwheel.db import crud, models
from linwheel.main import app
from linwheel.services import prompts

client = TestClient(app)


# --- approval ---

def test_approve_requires_boolean(make_run):
    _, post, _ = make_run()
    resp = client.post(f"/api/posts/{post.id}/approve", json={"approved": "yes"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "approved must be a boolean"}


@patch("linwheel.services.images.generate_intent_image_job")
def test_approve_queues_one_image_generation(mock_job, db, make_run):
    _, post, _ = make_run()
    intent = crud.get_post_intent(db, post.id)

    resp = client.post(f"/api/posts/{post.id}/approve", json={"approved": True})
    assert resp.status_code == 200
    body = resp.json()
    assert body["approved"] is True
    assert body["image_intent"] == {"intent_id": intent.id, "has_image": False, "image_url": None, "generating": True}
    mock_job.assert_called_once_with("post", intent.id)


@patch("linwheel.services.images.generate_intent_image_job")
def test_unapprove_does_not_generate(mock_job, make_run):
    _, post, _ = make_run(approved=True)
    resp = client.post(f"/api/posts/{post.id}/approve", json={"approved": False})
    assert resp.json()["approved"] is False
    assert resp.json()["image_intent"]["generating"] is False
    mock_job.assert_not_called()


@patch("linwheel.services.images.generate_intent_image_job")
def test_approve_skips_existing_image(mock_job, db, make_run):
    _, post, _ = make_run()
    intent = crud.get_post_intent(db, post.id)
    intent.generated_image_url = "/media/cover.png"
    db.commit()

    resp = client.post(f"/api/posts/{post.id}/approve", json={"approved": True})
    assert resp.json()["image_intent"]["has_image"] is True
    assert resp.json()["image_intent"]["generating"] is False
    mock_job.assert_not_called()


@patch("linwheel.services.images.generate_intent_image_job")
def test_article_approve_queues_generation(mock_job, db, make_run):
    _, _, article = make_run()
    intent = crud.get_article_intent(db, article.id)
    resp = client.post(f"/api/articles/{article.id}/approve", json={"approved": True})
    assert resp.json()["image_intent"]["generating"] is True
    mock_job.assert_called_once_with("article", intent.id)


# --- editing ---

def test_post_and_article_routes_need_login(make_run):
    _, post, article = make_run()
    for method, url in (
        ("get", f"/api/posts/{post.id}"),
        ("patch", f"/api/posts/{post.id}"),
        ("delete", f"/api/posts/{post.id}"),
        ("get", f"/api/articles/{article.id}"),
        ("patch", f"/api/articles/{article.id}"),
        ("delete", f"/api/articles/{article.id}"),
    ):
        resp = client.request(method.upper(), url, json={"full_text": "x"} if method == "patch" else None)
        assert resp.status_code == 401, url
        assert resp.json() == {"error": "Unauthorized"}


def test_get_post(make_run, auth_headers):
    _, post, _ = make_run()
    resp = client.get(f"/api/posts/{post.id}", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["hook"] == "Hook line"
    assert client.get("/api/posts/nope", headers=auth_headers()).status_code == 404


def test_update_post_text(make_run, auth_headers):
    _, post, _ = make_run()
    resp = client.patch(f"/api/posts/{post.id}", json={"full_text": "New text"}, headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["full_text"] == "New text"
    assert resp.json()["hook"] == "Hook line"


def test_update_post_rejects_long_text(make_run, auth_headers):
    _, post, _ = make_run()
    resp = client.patch(f"/api/posts/{post.id}", json={"full_text": "x" * 3001}, headers=auth_headers())
    assert resp.status_code == 400


def test_update_post_null_hook_is_no_update(make_run, auth_headers):
    _, post, _ = make_run()
    resp = client.patch(f"/api/posts/{post.id}", json={"hook": None}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json() == {"error": "No updates provided"}

    resp = client.patch(f"/api/posts/{post.id}", json={"hook": None, "full_text": "Kept hook"}, headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["hook"] == "Hook line"


def test_cannot_edit_published_post(db, make_run, auth_headers):
    _, post, _ = make_run()
    post.linkedin_post_urn = "urn:li:share:1"
    db.commit()
    resp = client.patch(f"/api/posts/{post.id}", json={"hook": "New"}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json() == {"error": "Cannot edit a published post"}


def test_update_article_recomposes_full_text(make_run, auth_headers):
    _, _, article = make_run()
    resp = client.patch(f"/api/articles/{article.id}", json={"title": "Better title", "sections": ["## B\nMore"]},
                        headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["full_text"].startswith("# Better title")
    assert "## B\nMore" in resp.json()["full_text"]


def test_update_article_rejects_empty_title(make_run, auth_headers):
    _, _, article = make_run()
    resp = client.patch(f"/api/articles/{article.id}", json={"title": "  "}, headers=auth_headers())
    assert resp.status_code == 400


def test_manual_post_needs_login():
    resp = client.post("/api/posts", json={"full_text": "Hello"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


def test_manual_post(auth_headers):
    resp = client.post("/api/posts", json={"full_text": "First line\nSecond"}, headers=auth_headers("user-9"))
    assert resp.status_code == 200
    post = resp.json()["post"]
    assert post["hook"] == "First line"
    assert post["is_manual_draft"] is True
    assert post["run_id"] is None


def test_delete_post(db, make_run, auth_headers):
    _, post, _ = make_run()
    assert client.delete(f"/api/posts/{post.id}", headers=auth_headers()).json() == {"deleted": True}
    db.expire_all()
    assert db.query(models.ImageIntent).filter(models.ImageIntent.post_id == post.id).count() == 0
    assert client.get(f"/api/posts/{post.id}", headers=auth_headers()).status_code == 404


def test_delete_article_removes_intent_and_carousel(db, make_run, auth_headers):
    _, _, article = make_run()
    carousel = models.ArticleCarouselIntent(article_id=article.id, status="ready")
    db.add(carousel)
    db.flush()
    db.add(models.CarouselSlideVersion(carousel_intent_id=carousel.id, slide_number=1))
    db.commit()

    resp = client.delete(f"/api/articles/{article.id}", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Article deleted successfully"}
    db.expire_all()
    assert crud.get_article(db, article.id) is None
    assert db.query(models.ArticleImageIntent).count() == 0
    assert db.query(models.ArticleCarouselIntent).count() == 0
    assert db.query(models.CarouselSlideVersion).count() == 0
    assert client.delete(f"/api/articles/{article.id}", headers=auth_headers()).status_code == 404


# --- image prompt regeneration ---

def test_regenerate_prompt_without_feedback_writes_fresh_direction(db, make_run, fake_llm):
    _, post, _ = make_run()
    intent = crud.get_post_intent(db, post.id)
    intent.generated_image_url = "/media/old.png"
    db.commit()

    resp = client.post(f"/api/posts/{post.id}/regenerate-prompt", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert body["intent_id"] == intent.id
    assert body["intent"]["prompt"] == "layered shapes"
    assert body["intent"]["generated_image_url"] is None
    assert fake_llm.calls == [prompts.IMAGE_INTENT_PROMPT]


def test_regenerate_prompt_with_feedback_revises_existing(make_run, fake_llm):
    _, post, _ = make_run()
    resp = client.post(f"/api/posts/{post.id}/regenerate-prompt", json={"feedback": "darker please"})
    assert resp.status_code == 200
    assert resp.json()["intent"]["prompt"] == "darker layered shapes"
    assert fake_llm.calls == [prompts.REGENERATE_IMAGE_INTENT_PROMPT]


def test_regenerate_prompt_creates_missing_article_intent(db, make_run, fake_llm):
    _, _, article = make_run()
    db.query(models.ArticleImageIntent).delete()
    db.commit()

    resp = client.post(f"/api/articles/{article.id}/regenerate-prompt", json={"feedback": "ignored without an intent"})
    assert resp.status_code == 200
    assert fake_llm.calls == [prompts.IMAGE_INTENT_PROMPT]
    db.expire_all()
    intent = crud.get_article_intent(db, article.id)
    assert intent.id == resp.json()["intent_id"]
    assert intent.include_in_post is True


def test_regenerate_prompt_unknown_post(fake_llm):
    resp = client.post("/api/posts/nope/regenerate-prompt", json={})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Post not found"}


def test_regenerate_prompt_without_llm_key_fails(make_run):
    _, post, _ = make_run()
    resp = client.post(f"/api/posts/{post.id}/regenerate-prompt", json={"feedback": "brighter"})
    assert resp.status_code == 500
    assert "OPENAI_API_KEY" in resp.json()["error"]


# --- scheduling ---

def test_schedule_post(make_run):
    _, post, _ = make_run(approved=True)
    resp = client.patch(f"/api/posts/{post.id}/schedule", json={"scheduled_at": "2030-01-01T09:00:00Z"})
    assert resp.status_code == 200
    assert resp.json()["scheduled_at"] == "2030-01-01T09:00:00"

    resp = client.patch(f"/api/posts/{post.id}/schedule", json={"auto_publish": False})
    assert resp.json()["auto_publish"] is False
    assert resp.json()["scheduled_at"] == "2030-01-01T09:00:00"

    resp = client.patch(f"/api/posts/{post.id}/schedule", json={"scheduled_at": None})
    assert resp.json()["scheduled_at"] is None


def test_schedule_rejects_bad_date(make_run):
    _, _, article = make_run()
    resp = client.patch(f"/api/articles/{article.id}/schedule", json={"scheduled_at": "next tuesday"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid scheduled_at date"}


# --- dashboard ---

def test_dashboard_lists_approved_content(db, make_run):
    run, post, article = make_run(approved=True)
    make_run(approved=False)
    body = client.get("/api/dashboard/approved").json()
    assert [p["id"] for p in body["posts"]] == [post.id]
    assert [a["id"] for a in body["articles"]] == [article.id]
