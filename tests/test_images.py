import base64
import io
from unittest.mock import patch

from fastapi.testclient import TestClient
from PIL import Image

from linwheel.db import crud, models
from linwheel.main import app
from linwheel.services import images, t2i

client = TestClient(app)


def _png_b64(size=(64, 32)):
    buf = io.BytesIO()
    Image.new("RGB", size, (30, 60, 90)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode()


def _ok(request, provider=None):
    return t2i.ImageResult(success=True, provider="openai", image_b64=_png_b64())


def test_update_intent_rejects_unknown_preset(db, make_run):
    _, post, _ = make_run()
    intent = crud.get_post_intent(db, post.id)
    resp = client.patch(f"/api/posts/image-intents/{intent.id}", json={"style_preset": "glitter"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid style preset"}


def test_update_article_intent_include_in_post(db, make_run):
    _, _, article = make_run()
    intent = crud.get_article_intent(db, article.id)
    resp = client.patch(f"/api/articles/image-intents/{intent.id}", json={"include_in_post": False})
    assert resp.status_code == 200
    assert resp.json()["include_in_post"] is False


@patch("linwheel.services.t2i.generate_image", side_effect=_ok)
def test_generate_cover_stores_image_and_version(mock_generate, db, make_run):
    _, post, _ = make_run()
    intent = crud.get_post_intent(db, post.id)

    resp = client.post(f"/api/posts/image-intents/{intent.id}", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["image_url"].startswith("/media/post-cover-")
    assert body["version"]["version_number"] == 1

    resp = client.post(f"/api/posts/image-intents/{intent.id}", json={"include_text": False})
    assert resp.json()["image_url"].endswith("-notext.png")

    versions = client.get(f"/api/posts/image-intents/{intent.id}/versions").json()["versions"]
    assert [v["version_number"] for v in versions] == [2, 1]
    assert [v["is_active"] for v in versions] == [True, False]

    request = mock_generate.call_args.args[0]
    assert request.aspect_ratio == "1.91:1"
    assert request.headline_text == ""


@patch("linwheel.services.t2i.generate_image", side_effect=_ok)
def test_brand_style_shapes_cover_prompt(mock_generate, db, make_run):
    _, post, _ = make_run()
    db.add(models.BrandStyleProfile(user_id="user-1", name="Mine", imagery_approach="abstract",
                                    primary_colors=[{"hex": "#000000"}], style_prefix="Moody", is_active=True))
    db.commit()
    intent = crud.get_post_intent(db, post.id)
    images.generate_for_intent(db, "post", intent)
    assert mock_generate.call_args.args[0].prompt.startswith("Moody. abstract conceptual artwork. p")


def test_generation_failure_is_recorded(db, make_run):
    _, post, _ = make_run()
    intent = crud.get_post_intent(db, post.id)
    resp = client.post(f"/api/posts/image-intents/{intent.id}", json={})
    assert resp.status_code == 500
    assert resp.json()["error"] == "No image provider is configured"
    db.expire_all()
    assert crud.get_post_intent(db, post.id).generation_error == "No image provider is configured"


def test_image_quota(db, make_run, auth_headers):
    _, post, _ = make_run()
    db.add(models.Profile(id="user-1", image_generation_count=25))
    db.commit()
    intent = crud.get_post_intent(db, post.id)
    resp = client.post(f"/api/posts/image-intents/{intent.id}", json={}, headers=auth_headers("user-1"))
    assert resp.status_code == 403
    assert resp.json()["error"] == "Image generation limit reached"


@patch("linwheel.services.t2i.generate_image", side_effect=_ok)
def test_background_job_skips_intents_with_image(mock_generate, db, make_run):
    _, post, _ = make_run()
    intent = crud.get_post_intent(db, post.id)
    images.generate_intent_image_job("post", intent.id)
    images.generate_intent_image_job("post", intent.id)
    assert mock_generate.call_count == 1


def test_providers_endpoint():
    body = client.get("/api/images/providers").json()
    assert body == {"providers": {"openai": False, "fal": False}, "default_provider": None}
