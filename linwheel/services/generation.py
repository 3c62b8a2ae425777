"""Runs the pipeline against the database: process, retry, generate more."""
import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from linwheel.db import crud, models
from linwheel.deps import session_scope
from linwheel.services import pipeline, sources
from linwheel.services.llm_client import LLMClient
from linwheel.services.voice import get_active_voice_profile, voice_prompt_block

logger = logging.getLogger(__name__)

RETRY_VERSIONS_PER_ANGLE = 2

def get_llm() -> LLMClient:
    return LLMClient()

def _save_post(db: Session, run_id: str, insight_id: Optional[str], item: pipeline.GeneratedPost,
               user_id: Optional[str] = None) -> models.LinkedInPost:
    post = models.LinkedInPost(
        run_id=run_id,
        insight_id=insight_id,
        user_id=user_id,
        hook=item.draft.hook,
        body_beats=item.draft.body_beats,
        open_question=item.draft.open_question,
        post_type=item.angle,
        full_text=item.draft.full_text,
        version_number=item.version_number,
        approved=False,
        auto_publish=True,
    )
    db.add(post)
    db.flush()
    db.add(models.ImageIntent(post_id=post.id, **item.intent.model_dump()))
    return post

def _save_article(db: Session, run_id: str, insight_id: Optional[str], item: pipeline.GeneratedArticle) -> models.Article:
    article = models.Article(
        run_id=run_id,
        insight_id=insight_id,
        article_type=item.angle,
        title=item.draft.title,
        subtitle=item.draft.subtitle,
        introduction=item.draft.introduction,
        sections=item.draft.sections,
        conclusion=item.draft.conclusion,
        full_text=item.draft.full_text,
        version_number=item.version_number,
        approved=False,
        auto_publish=True,
    )
    db.add(article)
    db.flush()
    db.add(models.ArticleImageIntent(article_id=article.id, include_in_post=True, **item.intent.model_dump()))
    return article

def save_pipeline_result(db: Session, run: models.GenerationRun, result: pipeline.PipelineResult) -> None:
    for block in result.insights:
        insight = crud.create_insight(db, run.id, block.insight.model_dump())
        for item in block.posts:
            _save_post(db, run.id, insight.id, item, user_id=run.user_id)
        for item in block.articles:
            _save_article(db, run.id, insight.id, item)
    run.status = "complete"
    run.error = None
    run.post_count = result.post_count
    run.article_count = result.article_count
    db.add(run)
    db.commit()

def prepare_source_insights(db: Session, llm, run: models.GenerationRun) -> List[pipeline.InsightDraft]:
    """Fetch, summarise and distil the run's source links. A failing link is recorded and skipped."""
    summaries = []
    for link in crud.list_source_links(db, run.id):
        try:
            fetched = sources.fetch_source(link.url)
            link.title = fetched.title
            link.raw_content = fetched.content
            link.fetched_at = fetched.fetched_at
            summary = sources.parse_source(llm, fetched)
        except (sources.SourceError, RuntimeError, ValidationError, TypeError) as e:
            logger.warning("run %s: source %s failed: %s", run.id, link.url, e)
            link.status = "failed"
            link.error = str(e)
            db.add(link)
            continue
        link.status = "fetched"
        link.error = None
        db.add(link)
        db.add(models.SourceSummary(source_link_id=link.id, run_id=run.id, **summary.model_dump()))
        summaries.append((link.id, link.title or link.url, link.url, summary))
    db.commit()
    if not summaries:
        return []
    distilled = sources.distill_source_insights(llm, summaries)
    for item in distilled:
        db.add(models.DistilledInsight(run_id=run.id, **item.model_dump()))
    db.commit()
    logger.info("run %s: %d insights distilled from %d sources", run.id, len(distilled), len(summaries))
    return sources.to_insight_drafts(distilled)

def process_run(run_id: str, versions_per_angle: int = pipeline.DEFAULT_VERSIONS_PER_ANGLE) -> None:
    """Background job: run the pipeline for a stored run and persist the outcome."""
    with session_scope() as db:
        run = crud.get_run(db, run_id)
        if not run:
            logger.info("run %s vanished before processing", run_id)
            return
        angles = run.selected_angles or list(models.POST_ANGLES)
        article_angles = run.selected_article_angles or []
        voice_block = voice_prompt_block(get_active_voice_profile(db))
        transcript = run.transcript or ""
        try:
            llm = get_llm()
            source_insights = prepare_source_insights(db, llm, run)
            if not transcript.strip() and not source_insights:
                raise RuntimeError("No source content could be fetched")
            result = pipeline.run_pipeline(
                llm,
                transcript,
                angles,
                article_angles,
                versions_per_angle=versions_per_angle,
                voice_block=voice_block,
                source_insights=source_insights,
            )
        except Exception as e:
            logger.exception("run %s failed", run_id)
            db.rollback()
            run = crud.get_run(db, run_id)
            if run:
                run.status = "failed"
                run.error = str(e) or e.__class__.__name__
                db.add(run)
                db.commit()
            return

        # the run may have been deleted while the LLM calls were in flight
        db.expire_all()
        run = crud.get_run(db, run_id)
        if not run:
            logger.info("run %s deleted during processing, discarding results", run_id)
            return
        save_pipeline_result(db, run, result)
        logger.info("run %s complete: %d posts, %d articles", run_id, result.post_count, result.article_count)

def reset_for_retry(db: Session, run: models.GenerationRun) -> None:
    crud.clear_run_content(db, run.id)
    for link in crud.list_source_links(db, run.id):
        link.status = "pending"
        link.error = None
        db.add(link)
    run.status = "processing"
    run.error = None
    run.post_count = 0
    run.article_count = 0
    db.add(run)
    db.commit()

def retry_run(run_id: str) -> None:
    process_run(run_id, versions_per_angle=RETRY_VERSIONS_PER_ANGLE)

def _insight_draft(row: models.Insight) -> pipeline.InsightDraft:
    return pipeline.InsightDraft(
        topic=row.topic or "",
        claim=row.claim or "",
        why_it_matters=row.why_it_matters or "",
        misconception=row.misconception,
        professional_implication=row.professional_implication or "",
    )

def generate_more_posts(db: Session, run: models.GenerationRun, insight: models.Insight, angle: str, count: int) -> List[models.LinkedInPost]:
    start = crud.max_post_version(db, run.id, angle)
    voice_block = voice_prompt_block(get_active_voice_profile(db))
    items = pipeline.generate_posts_for_insight(
        get_llm(), _insight_draft(insight), [angle], count, voice_block, start_versions={angle: start}
    )
    posts = [_save_post(db, run.id, insight.id, item, user_id=run.user_id) for item in items]
    run.post_count = (run.post_count or 0) + len(posts)
    db.add(run)
    db.commit()
    return posts

def generate_more_articles(db: Session, run: models.GenerationRun, insight: models.Insight, angle: str, count: int) -> List[models.Article]:
    start = crud.max_article_version(db, run.id, angle)
    voice_block = voice_prompt_block(get_active_voice_profile(db))
    items = pipeline.generate_articles(
        get_llm(), [_insight_draft(insight)], [angle], count, voice_block, start_versions={angle: start}
    )
    articles = [_save_article(db, run.id, insight.id, item) for item in items]
    run.article_count = (run.article_count or 0) + len(articles)
    db.add(run)
    db.commit()
    return articles
