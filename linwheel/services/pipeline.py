"""
Transcript -> insights -> posts/articles -> image intents.

Every step is one JSON call through an LLMClient (or anything with the same
generate_json(system, user, temperature) method). Responses are validated with
pydantic; a malformed chunk/insight response fails the run, a malformed single
post or article version is logged and skipped.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from linwheel.db.models import STYLE_PRESETS
from linwheel.services import prompts

logger = logging.getLogger(__name__)

DEFAULT_MAX_INSIGHTS = 3
DEFAULT_VERSIONS_PER_ANGLE = 5
DEFAULT_ARTICLE_VERSIONS = 1
DUPLICATE_THRESHOLD = 0.7
MAX_HEADLINE_WORDS = 9


class Chunk(BaseModel):
    index: int = 0
    text: str
    topic_hint: str = ""


class InsightDraft(BaseModel):
    topic: str = ""
    claim: str
    why_it_matters: str = ""
    misconception: Optional[str] = None
    professional_implication: str = ""


class PostDraft(BaseModel):
    hook: str = ""
    body_beats: List[str] = []
    open_question: str = ""
    full_text: str = ""


class ArticleDraft(BaseModel):
    title: str
    subtitle: Optional[str] = None
    introduction: str = ""
    sections: List[str] = []
    conclusion: str = ""
    full_text: str = ""


class ImageIntentDraft(BaseModel):
    prompt: str
    negative_prompt: str = ""
    headline_text: str = ""
    style_preset: str = "typographic_minimal"


class GeneratedPost(BaseModel):
    angle: str
    version_number: int
    draft: PostDraft
    intent: ImageIntentDraft


class GeneratedArticle(BaseModel):
    angle: str
    version_number: int
    draft: ArticleDraft
    intent: ImageIntentDraft


class InsightResult(BaseModel):
    insight: InsightDraft
    posts: List[GeneratedPost] = []
    articles: List[GeneratedArticle] = []


class PipelineResult(BaseModel):
    insights: List[InsightResult] = []

    @property
    def articles(self) -> List[GeneratedArticle]:
        return [a for i in self.insights for a in i.articles]

    @property
    def post_count(self) -> int:
        return sum(len(i.posts) for i in self.insights)

    @property
    def article_count(self) -> int:
        return sum(len(i.articles) for i in self.insights)


def _items(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        value = data.get("items")
    return value if isinstance(value, list) else []

# --- step 1 ---

def chunk_transcript(llm, transcript: str) -> List[Chunk]:
    data = llm.generate_json(prompts.CHUNK_TRANSCRIPT_PROMPT, transcript, temperature=0.3)
    chunks = [Chunk(**c) for c in _items(data, "chunks") if isinstance(c, dict) and c.get("text")]
    if not chunks:
        # short transcripts sometimes come back unchunked
        chunks = [Chunk(index=0, text=transcript, topic_hint="")]
    logger.info("chunked transcript into %d chunks", len(chunks))
    return chunks

# --- step 2 ---

def extract_insights(llm, chunk: Chunk) -> List[InsightDraft]:
    user = f"TOPIC HINT: {chunk.topic_hint}\n\nCHUNK:\n{chunk.text}"
    data = llm.generate_json(prompts.EXTRACT_INSIGHTS_PROMPT, user, temperature=0.5)
    out = []
    for raw in _items(data, "insights"):
        if not isinstance(raw, dict):
            continue
        try:
            out.append(InsightDraft(**raw))
        except ValidationError as e:
            logger.warning("dropping malformed insight from chunk %s: %s", chunk.index, e)
    return out

# --- step 3 ---

def normalize_claim(claim: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (claim or "").lower())

def jaccard_similarity(a: str, b: str) -> float:
    sa, sb = set(a), set(b)
    if not sa and not sb:
        return 1.0
    union = sa | sb
    return len(sa & sb) / len(union)

def deduplicate_insights(
    insights: List[InsightDraft],
    max_insights: int = DEFAULT_MAX_INSIGHTS,
    threshold: float = DUPLICATE_THRESHOLD,
) -> List[InsightDraft]:
    kept: List[InsightDraft] = []
    kept_norm: List[str] = []
    for ins in insights:
        norm = normalize_claim(ins.claim)
        if any(jaccard_similarity(norm, k) > threshold for k in kept_norm):
            continue
        kept.append(ins)
        kept_norm.append(norm)
        if len(kept) >= max_insights:
            break
    return kept

# --- step 4 ---

def normalize_post(draft: PostDraft) -> Optional[PostDraft]:
    """Fill hook/full_text from each other; None when the model gave us nothing usable."""
    full_text = (draft.full_text or "").strip()
    hook = (draft.hook or "").strip()
    if not full_text and not hook:
        return None
    if not full_text:
        parts = [hook] + [b for b in draft.body_beats if b] + ([draft.open_question] if draft.open_question else [])
        full_text = "\n\n".join(parts)
    if not hook:
        hook = full_text.split("\n", 1)[0].strip()
    return draft.model_copy(update={"hook": hook, "full_text": full_text})

def write_posts(llm, insight: InsightDraft, angle: str, versions: int, voice_block: str = "") -> List[PostDraft]:
    system = prompts.post_system_prompt(angle, voice_block)
    brief = prompts.insight_brief(insight.model_dump())
    drafts = []
    for v in range(versions):
        user = f"{brief}\n\nWrite version {v + 1} of {versions}. Make it distinct from other versions."
        try:
            draft = normalize_post(PostDraft(**llm.generate_json(system, user, temperature=0.85)))
        except (RuntimeError, ValidationError, TypeError) as e:
            logger.warning("post writer failed (angle=%s version=%d): %s", angle, v + 1, e)
            continue
        if draft is not None:
            drafts.append(draft)
    return drafts

# --- step 5 ---

def write_articles(llm, insights: List[InsightDraft], angle: str, versions: int, voice_block: str = "") -> List[ArticleDraft]:
    system = prompts.article_system_prompt(angle, voice_block)
    brief = "\n\n".join(prompts.insight_brief(i.model_dump()) for i in insights)
    drafts = []
    for v in range(versions):
        user = f"INSIGHTS:\n{brief}\n\nWrite version {v + 1} of {versions}."
        try:
            draft = ArticleDraft(**llm.generate_json(system, user, temperature=0.7))
        except (RuntimeError, ValidationError, TypeError) as e:
            logger.warning("article writer failed (angle=%s version=%d): %s", angle, v + 1, e)
            continue
        if not draft.full_text:
            draft = draft.model_copy(update={"full_text": compose_article_text(draft)})
        drafts.append(draft)
    return drafts

def compose_article_text(draft: ArticleDraft) -> str:
    parts = [f"# {draft.title}"]
    if draft.subtitle:
        parts.append(f"*{draft.subtitle}*")
    parts.append(draft.introduction)
    parts.extend(draft.sections)
    parts.append(draft.conclusion)
    return "\n\n".join(p for p in parts if p)

# --- step 6 ---

def clamp_headline(text: str, max_words: int = MAX_HEADLINE_WORDS) -> str:
    words = (text or "").split()
    return " ".join(words[:max_words])

def fallback_image_intent(headline: str) -> ImageIntentDraft:
    return ImageIntentDraft(
        prompt="Abstract editorial composition, soft gradients, layered geometric shapes, professional and calm",
        negative_prompt="text, people, clutter, stock photo, lightbulb, gears, brain",
        headline_text=clamp_headline(headline),
        style_preset="typographic_minimal",
    )

def generate_image_intent(llm, content: str, headline_hint: str = "") -> ImageIntentDraft:
    try:
        raw = llm.generate_json(prompts.IMAGE_INTENT_PROMPT, content, temperature=0.6)
        intent = ImageIntentDraft(**raw)
    except (RuntimeError, ValidationError, TypeError) as e:
        logger.warning("image intent generation failed, using fallback: %s", e)
        return fallback_image_intent(headline_hint)
    preset = intent.style_preset if intent.style_preset in STYLE_PRESETS else "typographic_minimal"
    headline = clamp_headline(intent.headline_text or headline_hint)
    return intent.model_copy(update={"style_preset": preset, "headline_text": headline})

def regenerate_image_intent(llm, content: str, previous: ImageIntentDraft, feedback: str) -> ImageIntentDraft:
    """Revise an existing intent with user feedback. LLM and validation errors propagate."""
    user = (
        f"CONTENT:\n{content}\n\n"
        f"PREVIOUS IMAGE DIRECTION:\n{previous.model_dump_json(indent=2)}\n\n"
        f"FEEDBACK:\n{feedback}"
    )
    intent = ImageIntentDraft(**llm.generate_json(prompts.REGENERATE_IMAGE_INTENT_PROMPT, user, temperature=0.7))
    preset = intent.style_preset if intent.style_preset in STYLE_PRESETS else previous.style_preset
    headline = clamp_headline(intent.headline_text or previous.headline_text)
    return intent.model_copy(update={"style_preset": preset, "headline_text": headline})

# --- orchestration ---

def filter_angles(requested: Optional[List[str]], allowed: Tuple[str, ...], default_all: bool) -> List[str]:
    if not requested:
        return list(allowed) if default_all else []
    return [a for a in requested if a in allowed]

def generate_posts_for_insight(
    llm,
    insight: InsightDraft,
    angles: List[str],
    versions: int,
    voice_block: str = "",
    start_versions: Optional[Dict[str, int]] = None,
) -> List[GeneratedPost]:
    out = []
    for angle in angles:
        base = (start_versions or {}).get(angle, 0)
        for i, draft in enumerate(write_posts(llm, insight, angle, versions, voice_block), start=1):
            intent = generate_image_intent(llm, draft.full_text, headline_hint=draft.hook)
            out.append(GeneratedPost(angle=angle, version_number=base + i, draft=draft, intent=intent))
    return out

def generate_articles(
    llm,
    insights: List[InsightDraft],
    angles: List[str],
    versions: int,
    voice_block: str = "",
    start_versions: Optional[Dict[str, int]] = None,
) -> List[GeneratedArticle]:
    out = []
    # sequential per angle, articles are long calls
    for angle in angles:
        base = (start_versions or {}).get(angle, 0)
        for i, draft in enumerate(write_articles(llm, insights, angle, versions, voice_block), start=1):
            content = f"{draft.title}\n\n{draft.introduction}"
            intent = generate_image_intent(llm, content, headline_hint=draft.title)
            out.append(GeneratedArticle(angle=angle, version_number=base + i, draft=draft, intent=intent))
    return out

def run_pipeline(
    llm,
    transcript: str,
    angles: List[str],
    article_angles: List[str],
    versions_per_angle: int = DEFAULT_VERSIONS_PER_ANGLE,
    article_versions: int = DEFAULT_ARTICLE_VERSIONS,
    max_insights: int = DEFAULT_MAX_INSIGHTS,
    voice_block: str = "",
    source_insights: Optional[List[InsightDraft]] = None,
) -> PipelineResult:
    """Source insights are appended after the transcript's own, minus near-duplicates."""
    raw_insights: List[InsightDraft] = []
    if (transcript or "").strip():
        for chunk in chunk_transcript(llm, transcript):
            raw_insights.extend(extract_insights(llm, chunk))
    insights = deduplicate_insights(raw_insights, max_insights=max_insights)
    logger.info("kept %d of %d insights", len(insights), len(raw_insights))
    if source_insights:
        insights = deduplicate_insights(insights + list(source_insights), max_insights=len(insights) + len(source_insights))
        logger.info("%d insights after adding %d from sources", len(insights), len(source_insights))
    if not insights:
        raise RuntimeError("No insights could be extracted from the transcript")

    result = PipelineResult()
    for insight in insights:
        posts = generate_posts_for_insight(llm, insight, angles, versions_per_angle, voice_block)
        articles = generate_articles(llm, [insight], article_angles, article_versions, voice_block)
        result.insights.append(InsightResult(insight=insight, posts=posts, articles=articles))
    return result
