import logging
import sys
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from linwheel.config import settings
from linwheel.deps import init_db

# Routers
from linwheel.routers import image_intents, runs, posts, articles, carousels
from linwheel.routers import auth_linkedin, cron, scheduler_api, dashboard
from linwheel.routers import brand_styles, voice_profiles, push, billing

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LinWheel API", version="1.0.0")

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: HTTPException):
    # every client-visible failure is {"error": message}
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
    return JSONResponse(status_code=400, content={"error": message})

@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})

@app.on_event("startup")
def _startup():
    init_db()
    logger.info("database ready (%s)", settings.database_url.split("://", 1)[0])

@app.get("/")
def root():
    return {"message": "LinWheel API is running!"}

media_dir = Path(settings.media_dir)
media_dir.mkdir(parents=True, exist_ok=True)
# MEDIA_BASE_URL may point at a CDN; files are still served locally under /media
media_path = settings.media_base_url if settings.media_base_url.startswith("/") else "/media"
app.mount(media_path, StaticFiles(directory=str(media_dir)), name="media")

# Mount routes (image intents before posts/articles so their paths win)
app.include_router(image_intents.router)    # /api/{posts,articles}/image-intents/*, /api/images/*
app.include_router(runs.router)             # /api/generate, /api/runs/*, /api/llm/*
app.include_router(posts.router)            # /api/posts/*
app.include_router(articles.router)         # /api/articles/*
app.include_router(carousels.router)        # /api/articles/{id}/carousel*
app.include_router(auth_linkedin.router)    # /api/auth/linkedin/*
app.include_router(cron.router)             # /api/cron/*
app.include_router(scheduler_api.router)    # /scheduler/*
app.include_router(dashboard.router)        # /api/dashboard/*
app.include_router(brand_styles.router)     # /api/brand-styles/*
app.include_router(voice_profiles.router)   # /api/voice-profiles/*
app.include_router(push.router)             # /api/push/*
app.include_router(billing.router)          # /api/stripe/*, /api/usage, /api/upgrade-interest, /api/me
