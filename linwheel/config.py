import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./linwheel.db")
    app_url: str = os.getenv("APP_URL", "http://localhost:3000")
    fernet_key: str = os.getenv("FERNET_KEY", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Supabase issues the session JWTs; we only verify them
    supabase_jwt_secret: str = os.getenv("SUPABASE_JWT_SECRET", "")
    supabase_jwt_audience: str = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")

    linkedin_client_id: str = os.getenv("LINKEDIN_CLIENT_ID", "")
    linkedin_client_secret: str = os.getenv("LINKEDIN_CLIENT_SECRET", "")
    linkedin_redirect_uri: str = os.getenv("LINKEDIN_REDIRECT_URI", "http://localhost:8000/api/auth/linkedin/callback")
    linkedin_scopes: str = os.getenv("LINKEDIN_SCOPES", "openid profile email w_member_social")
    linkedin_api_version: str = os.getenv("LINKEDIN_API_VERSION", "202411")

    llm_provider: str = os.getenv("LLM_PROVIDER", "openai").lower()
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    anthropic_model: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

    # text-to-image; empty provider means "pick whichever key is configured"
    t2i_provider: str = os.getenv("T2I_PROVIDER", "").lower()
    openai_image_model: str = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")
    fal_key: str = os.getenv("FAL_KEY", "")
    fal_model: str = os.getenv("FAL_MODEL", "fal-ai/flux/dev")

    media_dir: str = os.getenv("MEDIA_DIR", "./media")
    media_base_url: str = os.getenv("MEDIA_BASE_URL", "/media")

    cron_secret: str = os.getenv("CRON_SECRET", "dev-secret-change-in-production")
    auto_publish_cron: str = os.getenv("AUTO_PUBLISH_CRON", "*/15 * * * *")

    vapid_public_key: str = os.getenv("VAPID_PUBLIC_KEY", "")
    vapid_private_key: str = os.getenv("VAPID_PRIVATE_KEY", "")
    vapid_subject: str = os.getenv("VAPID_SUBJECT", "mailto:support@linwheel.io")

    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    stripe_webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    stripe_pro_monthly_price_id: str = os.getenv("STRIPE_PRO_MONTHLY_PRICE_ID", "")
    stripe_pro_yearly_price_id: str = os.getenv("STRIPE_PRO_YEARLY_PRICE_ID", "")

    free_content_limit: int = int(os.getenv("FREE_CONTENT_LIMIT", "25"))
    free_image_limit: int = int(os.getenv("FREE_IMAGE_LIMIT", "25"))

settings = Settings()
