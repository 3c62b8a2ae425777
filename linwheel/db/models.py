from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON, UniqueConstraint, func,
)
from linwheel.db.base import Base, new_id

POST_ANGLES = (
    "contrarian",
    "field_note",
    "demystification",
    "identity_validation",
    "provocateur",
    "synthesizer",
    "curious_cat",
)
ARTICLE_ANGLES = ("deep_dive", "contrarian", "how_to", "case_study")
STYLE_PRESETS = ("typographic_minimal", "gradient_text", "dark_mode", "accent_bar", "abstract_shapes")

RUN_STATUSES = ("pending", "processing", "complete", "failed")
CAROUSEL_STATUSES = ("pending", "ready", "scheduled", "published", "failed")


class GenerationRun(Base):
    __tablename__ = "generation_runs"
    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    user_id = Column(String(64), index=True, nullable=True)
    source_label = Column(String(256), nullable=False, default="Untitled")
    transcript = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="pending")
    post_count = Column(Integer, default=0)
    article_count = Column(Integer, default=0)
    error = Column(Text, nullable=True)
    selected_angles = Column(JSON, nullable=True)
    selected_article_angles = Column(JSON, nullable=True)


class Insight(Base):
    __tablename__ = "insights"
    id = Column(String(36), primary_key=True, default=new_id)
    run_id = Column(String(36), ForeignKey("generation_runs.id"), index=True, nullable=False)
    topic = Column(String(512))
    claim = Column(Text)
    why_it_matters = Column(Text)
    misconception = Column(Text, nullable=True)
    professional_implication = Column(Text)


class SourceLink(Base):
    """A web page supplied alongside (or instead of) the transcript."""
    __tablename__ = "source_links"
    id = Column(String(36), primary_key=True, default=new_id)
    run_id = Column(String(36), ForeignKey("generation_runs.id"), index=True, nullable=False)
    url = Column(String(2048), nullable=False)
    title = Column(String(512), nullable=True)
    raw_content = Column(Text, nullable=True)
    fetched_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(16), nullable=False, default="pending")  # pending | fetched | failed
    error = Column(Text, nullable=True)


class SourceSummary(Base):
    __tablename__ = "source_summaries"
    id = Column(String(36), primary_key=True, default=new_id)
    source_link_id = Column(String(36), ForeignKey("source_links.id"), index=True, nullable=False)
    run_id = Column(String(36), ForeignKey("generation_runs.id"), index=True, nullable=False)
    main_claims = Column(JSON, nullable=False, default=list)
    key_details = Column(JSON, nullable=False, default=list)
    implied_assumptions = Column(JSON, nullable=False, default=list)
    relevance = Column(Text, nullable=True)


class DistilledInsight(Base):
    """Cross-source synthesis; each one also becomes a regular insight of the run."""
    __tablename__ = "distilled_insights"
    id = Column(String(36), primary_key=True, default=new_id)
    run_id = Column(String(36), ForeignKey("generation_runs.id"), index=True, nullable=False)
    theme = Column(String(512))
    synthesized_claim = Column(Text)
    supporting_sources = Column(JSON, nullable=True)
    why_it_matters = Column(Text)
    common_misread = Column(Text, nullable=True)
    professional_implication = Column(Text)


class LinkedInPost(Base):
    __tablename__ = "linkedin_posts"
    id = Column(String(36), primary_key=True, default=new_id)
    # both null for manual drafts
    insight_id = Column(String(36), ForeignKey("insights.id"), nullable=True)
    run_id = Column(String(36), ForeignKey("generation_runs.id"), index=True, nullable=True)
    user_id = Column(String(64), index=True, nullable=True)
    hook = Column(Text)
    body_beats = Column(JSON, nullable=True)
    open_question = Column(Text, nullable=True)
    post_type = Column(String(32), default="field_note")
    full_text = Column(Text)
    version_number = Column(Integer, default=1)
    approved = Column(Boolean, nullable=False, default=False)
    is_manual_draft = Column(Boolean, nullable=False, default=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    scheduled_position = Column(Integer, nullable=True)
    auto_publish = Column(Boolean, nullable=False, default=True)
    linkedin_post_urn = Column(String(128), nullable=True)
    linkedin_published_at = Column(DateTime(timezone=True), nullable=True)
    linkedin_publish_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Article(Base):
    __tablename__ = "articles"
    id = Column(String(36), primary_key=True, default=new_id)
    insight_id = Column(String(36), ForeignKey("insights.id"), nullable=True)
    run_id = Column(String(36), ForeignKey("generation_runs.id"), index=True, nullable=True)
    article_type = Column(String(32))
    title = Column(String(512))
    subtitle = Column(String(512), nullable=True)
    introduction = Column(Text)
    sections = Column(JSON)  # list of markdown sections
    conclusion = Column(Text)
    full_text = Column(Text)
    version_number = Column(Integer, default=1)
    approved = Column(Boolean, nullable=False, default=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    scheduled_position = Column(Integer, nullable=True)
    auto_publish = Column(Boolean, nullable=False, default=True)
    linkedin_post_urn = Column(String(128), nullable=True)
    linkedin_published_at = Column(DateTime(timezone=True), nullable=True)
    linkedin_publish_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ImageIntent(Base):
    __tablename__ = "image_intents"
    id = Column(String(36), primary_key=True, default=new_id)
    post_id = Column(String(36), ForeignKey("linkedin_posts.id"), index=True, nullable=False)
    prompt = Column(Text)
    negative_prompt = Column(Text, default="")
    headline_text = Column(String(256), default="")
    style_preset = Column(String(32), default="typographic_minimal")
    generated_image_url = Column(String(1024), nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=True)
    generation_provider = Column(String(32), nullable=True)
    generation_error = Column(Text, nullable=True)


class ArticleImageIntent(Base):
    __tablename__ = "article_image_intents"
    id = Column(String(36), primary_key=True, default=new_id)
    article_id = Column(String(36), ForeignKey("articles.id"), index=True, nullable=False)
    prompt = Column(Text)
    negative_prompt = Column(Text, default="")
    headline_text = Column(String(256), default="")
    style_preset = Column(String(32), default="typographic_minimal")
    include_in_post = Column(Boolean, nullable=False, default=True)
    generated_image_url = Column(String(1024), nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=True)
    generation_provider = Column(String(32), nullable=True)
    generation_error = Column(Text, nullable=True)


class ImageVersion(Base):
    """History of generated covers for one post or article image intent."""
    __tablename__ = "image_versions"
    id = Column(String(36), primary_key=True, default=new_id)
    intent_id = Column(String(36), index=True, nullable=False)
    intent_kind = Column(String(16), nullable=False)  # 'post' | 'article'
    version_number = Column(Integer, nullable=False, default=1)
    prompt = Column(Text)
    headline_text = Column(String(256), nullable=True)
    image_url = Column(String(1024))
    include_text = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)
    generation_provider = Column(String(32), nullable=True)
    generated_at = Column(DateTime(timezone=True), server_default=func.now())


class ArticleCarouselIntent(Base):
    __tablename__ = "article_carousel_intents"
    id = Column(String(36), primary_key=True, default=new_id)
    article_id = Column(String(36), ForeignKey("articles.id"), index=True, nullable=False)
    page_count = Column(Integer, nullable=False, default=5)
    pages = Column(JSON, nullable=True)
    style_preset = Column(String(32), default="typographic_minimal")
    generated_pdf_url = Column(String(1024), nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=True)
    generation_provider = Column(String(32), nullable=True)
    generation_error = Column(Text, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    offset_days = Column(Integer, nullable=True)
    auto_publish = Column(Boolean, nullable=False, default=True)
    status = Column(String(16), nullable=False, default="pending")
    published_at = Column(DateTime(timezone=True), nullable=True)
    linkedin_post_urn = Column(String(128), nullable=True)
    publish_error = Column(Text, nullable=True)


class CarouselSlideVersion(Base):
    """Every rendered version of one carousel slide; the active one is in the carousel's pages and PDF."""
    __tablename__ = "carousel_slide_versions"
    id = Column(String(36), primary_key=True, default=new_id)
    carousel_intent_id = Column(String(36), ForeignKey("article_carousel_intents.id"), index=True, nullable=False)
    slide_number = Column(Integer, nullable=False)
    version_number = Column(Integer, nullable=False, default=1)
    slide_type = Column(String(16), nullable=True)
    prompt = Column(Text, nullable=True)
    headline_text = Column(String(256), nullable=True)
    image_url = Column(String(1024), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    generation_provider = Column(String(32), nullable=True)
    generation_error = Column(Text, nullable=True)
    generated_at = Column(DateTime(timezone=True), server_default=func.now())


class LinkedInConnection(Base):
    __tablename__ = "linkedin_connections"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), unique=True, nullable=False)
    access_token = Column(Text, nullable=False)    # Fernet ciphertext
    refresh_token = Column(Text, nullable=True)    # Fernet ciphertext
    expires_at = Column(DateTime(timezone=True), nullable=True)
    linkedin_profile_id = Column(String(128), nullable=True)
    linkedin_profile_name = Column(String(256), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"
    __table_args__ = (UniqueConstraint("user_id", "endpoint", name="uq_push_user_endpoint"),)
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), index=True, nullable=False)
    endpoint = Column(Text, nullable=False)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VoiceProfile(Base):
    __tablename__ = "voice_profiles"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    samples = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class BrandStyleProfile(Base):
    __tablename__ = "brand_style_profiles"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), index=True, nullable=False)
    name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    primary_colors = Column(JSON, nullable=False, default=list)    # [{hex, name, usage}]
    secondary_colors = Column(JSON, nullable=True)
    color_mood = Column(String(256), nullable=True)
    typography_style = Column(String(64), nullable=True)
    headline_weight = Column(String(32), nullable=True)
    imagery_approach = Column(String(64), nullable=False)
    artistic_references = Column(JSON, nullable=True)
    lighting_preference = Column(String(256), nullable=True)
    composition_style = Column(String(256), nullable=True)
    mood_descriptors = Column(JSON, nullable=True)
    texture_preference = Column(String(256), nullable=True)
    aspect_ratio_preference = Column(String(16), nullable=True)
    depth_of_field = Column(String(32), nullable=True)
    style_prefix = Column(Text, nullable=True)
    style_suffix = Column(Text, nullable=True)
    negative_concepts = Column(JSON, nullable=True)
    reference_image_urls = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String(64), primary_key=True)  # identity provider user id
    email = Column(String(320), nullable=True)
    full_name = Column(String(256), nullable=True)
    generation_count = Column(Integer, nullable=False, default=0)
    image_generation_count = Column(Integer, nullable=False, default=0)
    subscription_status = Column(String(16), nullable=False, default="free")
    interested_in_pro = Column(Boolean, nullable=False, default=False)
    interested_at = Column(DateTime(timezone=True), nullable=True)
    stripe_customer_id = Column(String(128), nullable=True)
    stripe_subscription_id = Column(String(128), nullable=True)
    stripe_current_period_end = Column(DateTime(timezone=True), nullable=True)
