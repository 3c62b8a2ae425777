import os
import tempfile

from cryptography.fernet import Fernet

# settings are read at import time, so the environment has to be in place
# before anything under linwheel is imported
_TMP = tempfile.mkdtemp(prefix="linwheel-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["MEDIA_DIR"] = os.path.join(_TMP, "media")
os.environ["FERNET_KEY"] = Fernet.generate_key().decode()
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["LINKEDIN_CLIENT_ID"] = "client-id"
os.environ["LINKEDIN_CLIENT_SECRET"] = "client-secret"
os.environ["APP_URL"] = "http://app.test"
os.environ["LLM_PROVIDER"] = "openai"
for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "FAL_KEY", "T2I_PROVIDER",
            "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "VAPID_PUBLIC_KEY", "VAPID_PRIVATE_KEY"):
    os.environ[key] = ""

import pytest
from jose import jwt

from linwheel.db import models
from linwheel.db.base import Base, SessionLocal, engine
from linwheel.services import prompts


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def auth_headers():
    def _make(user_id="user-1", email="user@example.com"):
        token = jwt.encode(
            {"sub": user_id, "email": email, "aud": "authenticated"},
            os.environ["SUPABASE_JWT_SECRET"],
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}
    return _make


class FakeLLM:
    """Answers each pipeline prompt with canned JSON and records the calls."""

    def __init__(self, insights=None):
        self.calls = []
        self.insights = insights or [
            {"topic": "Testing", "claim": "Flaky tests cost more than missing tests",
             "why_it_matters": "Teams stop trusting CI", "professional_implication": "Quarantine flaky tests"},
            {"topic": "Reviews", "claim": "Small pull requests get better reviews",
             "why_it_matters": "Reviewers skim big diffs", "professional_implication": "Split work early"},
        ]

    def generate_json(self, system, user, temperature=0.5):
        self.calls.append(system)
        if system == prompts.CHUNK_TRANSCRIPT_PROMPT:
            return {"chunks": [{"index": 0, "text": user, "topic_hint": "engineering"}]}
        if system == prompts.EXTRACT_INSIGHTS_PROMPT:
            return {"insights": self.insights}
        if system == prompts.SOURCE_PARSER_PROMPT:
            return {"main_claims": ["Docs decay within months"], "key_details": ["Half the wiki pages were stale"],
                    "implied_assumptions": ["Nobody owns the docs"], "relevance": "Onboarding depends on docs"}
        if system == prompts.SOURCE_SUPERVISOR_PROMPT:
            return {"insights": [{"theme": "Documentation", "synthesized_claim": "Docs rot by July unless owned",
                                  "supporting_sources": [], "why_it_matters": "Stale docs mislead new hires",
                                  "common_misread": "Docs are a one-off task"}]}
        if system == prompts.IMAGE_INTENT_PROMPT:
            return {"prompt": "layered shapes", "negative_prompt": "text",
                    "headline_text": "Ship smaller changes", "style_preset": "dark_mode"}
        if system == prompts.REGENERATE_IMAGE_INTENT_PROMPT:
            return {"prompt": "darker layered shapes", "negative_prompt": "text",
                    "headline_text": "Ship smaller changes", "style_preset": "dark_mode"}
        if system == prompts.CAROUSEL_CAPTION_PROMPT:
            return {"slides": [
                {"slide_number": n, "slide_type": "content", "headline": f"Slide {n}", "image_prompt": "shapes"}
                for n in range(1, 6)
            ]}
        if system.startswith("You are a LinkedIn article writer"):
            return {"title": "Why small PRs win", "subtitle": "Notes from review",
                    "introduction": "Intro text.", "sections": ["## One\nBody one", "## Two\nBody two"],
                    "conclusion": "Wrap up."}
        return {"hook": "Most teams review too late.", "body_beats": ["Beat one", "Beat two"],
                "open_question": "How do you review?", "full_text": ""}


@pytest.fixture
def fake_llm(monkeypatch):
    from linwheel.services import generation
    llm = FakeLLM()
    monkeypatch.setattr(generation, "get_llm", lambda: llm)
    return llm


@pytest.fixture
def make_run(db):
    """A completed run with one insight, one post and one article, each with an image intent."""
    def _make(user_id="user-1", approved=False):
        run = models.GenerationRun(user_id=user_id, transcript="some transcript", status="complete",
                                   source_label="Episode 1", post_count=1, article_count=1)
        db.add(run)
        db.flush()
        insight = models.Insight(run_id=run.id, topic="t", claim="c", why_it_matters="w",
                                 professional_implication="p")
        db.add(insight)
        db.flush()
        post = models.LinkedInPost(run_id=run.id, insight_id=insight.id, user_id=user_id, hook="Hook line",
                                   full_text="Hook line\n\nBody", post_type="field_note", approved=approved)
        article = models.Article(run_id=run.id, insight_id=insight.id, article_type="deep_dive",
                                 title="Article title", introduction="Intro", sections=["## A\nText"],
                                 conclusion="End", full_text="# Article title", approved=approved)
        db.add_all([post, article])
        db.flush()
        db.add(models.ImageIntent(post_id=post.id, prompt="p", headline_text="Hook line"))
        db.add(models.ArticleImageIntent(article_id=article.id, prompt="p", headline_text="Article title"))
        db.commit()
        return run, post, article
    return _make
