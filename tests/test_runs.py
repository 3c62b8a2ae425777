from fastapi.testclient import TestClient

from linwheel.db import models
from linwheel.main import app

client = TestClient(app)


def test_generate_requires_transcript():
    resp = client.post("/api/generate", json={"transcript": "   "})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Transcript is required"}


def test_generate_runs_pipeline_in_background(fake_llm):
    resp = client.post("/api/generate", json={
        "transcript": "We talked about flaky tests and code review.",
        "source_label": "Episode 12",
        "selected_angles": ["field_note", "not_an_angle"],
        "selected_article_angles": ["deep_dive"],
    })
    assert resp.status_code == 200
    run_id = resp.json()["run_id"]

    body = client.get(f"/api/runs/{run_id}").json()
    run = body["run"]
    assert run["status"] == "complete"
    assert run["source_label"] == "Episode 12"
    assert run["selected_angles"] == ["field_note"]
    assert run["post_count"] == 2 * 5
    assert run["article_count"] == 2
    assert len(body["insights"]) == 2
    # one article per insight, each linked to its own insight
    assert sorted(a["insight_id"] for a in body["articles"]) == sorted(i["id"] for i in body["insights"])
    assert all(p["post_type"] == "field_note" for p in body["posts"])
    assert all(p["approved"] is False for p in body["posts"])
    assert body["posts"][0]["image_intent"]["headline_text"] == "Ship smaller changes"
    assert body["articles"][0]["image_intent"]["include_in_post"] is True


def test_generate_without_llm_key_marks_run_failed():
    resp = client.post("/api/generate", json={"transcript": "hello"})
    run = client.get(f"/api/runs/{resp.json()['run_id']}").json()["run"]
    assert run["status"] == "failed"
    assert "OPENAI_API_KEY" in run["error"]


def test_generate_enforces_free_limit(db, auth_headers):
    db.add(models.Profile(id="user-1", generation_count=25))
    db.commit()
    resp = client.post("/api/generate", json={"transcript": "hello"}, headers=auth_headers("user-1"))
    assert resp.status_code == 403
    assert resp.json()["error"] == "Generation limit reached"
    assert resp.json()["usage"]["remaining"] == 0


def test_generate_counts_usage(db, auth_headers, fake_llm):
    resp = client.post("/api/generate", json={"transcript": "hello", "selected_angles": ["contrarian"]},
                       headers=auth_headers("user-2"))
    assert resp.status_code == 200
    profile = db.query(models.Profile).filter(models.Profile.id == "user-2").one()
    assert profile.generation_count == 1
    run = db.query(models.GenerationRun).filter(models.GenerationRun.id == resp.json()["run_id"]).one()
    assert run.user_id == "user-2"


def test_unknown_run_is_404():
    resp = client.get("/api/runs/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Run not found"}


def test_delete_run_removes_children(db, make_run):
    run, post, article = make_run()
    db.add(models.ImageVersion(intent_id="x", intent_kind="post", image_url="/media/x.png"))
    carousel = models.ArticleCarouselIntent(article_id=article.id)
    db.add(carousel)
    db.flush()
    db.add(models.CarouselSlideVersion(carousel_intent_id=carousel.id, slide_number=1, image_url="/media/s.png"))
    db.commit()

    resp = client.delete(f"/api/runs/{run.id}")
    assert resp.status_code == 200
    db.expire_all()
    assert db.query(models.GenerationRun).count() == 0
    assert db.query(models.Insight).count() == 0
    assert db.query(models.LinkedInPost).count() == 0
    assert db.query(models.ImageIntent).count() == 0
    assert db.query(models.Article).count() == 0
    assert db.query(models.ArticleImageIntent).count() == 0
    assert db.query(models.ArticleCarouselIntent).count() == 0
    assert db.query(models.CarouselSlideVersion).count() == 0


def test_delete_all_runs(make_run):
    make_run()
    make_run(user_id="user-2")
    assert client.delete("/api/runs").json() == {"deleted": 2}
    assert client.get("/api/runs").json() == {"runs": []}


def test_retry_only_failed_runs(make_run):
    run, _, _ = make_run()
    resp = client.post(f"/api/runs/{run.id}/retry")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Can only retry failed runs"


def test_retry_needs_transcript(db):
    run = models.GenerationRun(transcript="", status="failed")
    db.add(run)
    db.commit()
    resp = client.post(f"/api/runs/{run.id}/retry")
    assert resp.status_code == 400
    assert resp.json()["error"] == "No transcript available for retry"


def test_retry_regenerates_with_two_versions(db, fake_llm):
    run = models.GenerationRun(transcript="transcript", status="failed", error="boom", selected_angles=["synthesizer"])
    db.add(run)
    db.commit()
    resp = client.post(f"/api/runs/{run.id}/retry")
    assert resp.json() == {"retrying": True}
    body = client.get(f"/api/runs/{run.id}").json()
    assert body["run"]["status"] == "complete"
    assert body["run"]["error"] is None
    assert body["run"]["post_count"] == 2 * 2


def test_generate_more_continues_version_numbers(make_run, fake_llm):
    run, post, _ = make_run()
    resp = client.post(f"/api/runs/{run.id}/generate-more", json={"angle": "field_note", "count": 2})
    assert resp.status_code == 200
    assert resp.json()["generated"] == 2
    assert [p["version_number"] for p in resp.json()["posts"]] == [2, 3]


def test_generate_more_rejects_unknown_angle(make_run):
    run, _, _ = make_run()
    resp = client.post(f"/api/runs/{run.id}/generate-more", json={"angle": "nonsense"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid angle"


def test_generate_more_articles(make_run, fake_llm):
    run, _, _ = make_run()
    resp = client.post(f"/api/runs/{run.id}/generate-more-articles", json={"angle": "deep_dive"})
    assert resp.status_code == 200
    assert resp.json()["articles"][0]["version_number"] == 2


def test_llm_status_reports_providers():
    body = client.get("/api/llm/status").json()
    assert body["providers"] == {"openai": False, "anthropic": False}
