"""
Text-to-image providers.

Providers never raise for provider-side failures: generate() returns an
ImageResult with success=False and the error text, so callers can persist it.
"""
import base64
import logging
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from linwheel.config import settings

logger = logging.getLogger(__name__)

OPENAI_IMAGES_URL = "https://api.openai.com/v1/images/generations"
FAL_RUN_URL = "https://fal.run/"

STYLE_PROMPTS = {
    "typographic_minimal": "Clean, minimalist design with bold typography. White space, simple geometric shapes. Professional LinkedIn cover image style.",
    "gradient_text": "Modern gradient background transitioning between purple, blue, and pink. Tech-forward aesthetic.",
    "dark_mode": "Dark background (#1a1a2e or #16213e). Bright accent colors for contrast. Sleek, modern professional appearance.",
    "accent_bar": "Clean design with a bold colored accent bar (orange, teal, or purple). Corporate but creative feel.",
    "abstract_shapes": "Abstract geometric shapes in the background. Soft gradients. Professional yet creative LinkedIn style.",
}

OPENAI_SIZES = {
    "1.91:1": "1792x1024",
    "16:9": "1792x1024",
    "1:1": "1024x1024",
    "4:5": "1024x1792",
}

FAL_SIZES = {
    "1.91:1": "landscape_16_9",
    "16:9": "landscape_16_9",
    "1:1": "square_hd",
    "4:5": "portrait_4_3",
}


class ImageRequest(BaseModel):
    prompt: str
    negative_prompt: str = ""
    headline_text: str = ""
    style_preset: str = "typographic_minimal"
    aspect_ratio: str = "1.91:1"
    quality: str = "hd"


class ImageResult(BaseModel):
    success: bool
    provider: str
    image_url: Optional[str] = None
    image_b64: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = {}

    def image_bytes(self) -> Optional[bytes]:
        return base64.b64decode(self.image_b64) if self.image_b64 else None


def build_prompt(request: ImageRequest) -> str:
    parts = ["Create a professional LinkedIn cover image.", STYLE_PROMPTS.get(request.style_preset, STYLE_PROMPTS["typographic_minimal"])]
    if request.headline_text:
        parts.append(f'The image should prominently display the text: "{request.headline_text}". Make the text highly legible.')
    parts.append(request.prompt)
    if request.negative_prompt:
        parts.append(f"Avoid: {request.negative_prompt}")
    return "\n\n".join(parts)


class OpenAIImageProvider:
    name = "openai"

    def __init__(self, model: Optional[str] = None, timeout: float = 120.0):
        self.model = model or settings.openai_image_model
        self.timeout = timeout

    def is_available(self) -> bool:
        return bool(settings.openai_api_key)

    def generate(self, request: ImageRequest) -> ImageResult:
        started = time.time()
        payload = {
            "model": self.model,
            "prompt": build_prompt(request),
            "n": 1,
            "size": OPENAI_SIZES.get(request.aspect_ratio, "1792x1024"),
            "quality": "hd" if request.quality == "hd" else "standard",
            "response_format": "url",
        }
        try:
            with httpx.Client(timeout=self.timeout) as c:
                r = c.post(OPENAI_IMAGES_URL, headers={"Authorization": f"Bearer {settings.openai_api_key}"}, json=payload)
            if r.status_code != 200:
                return ImageResult(success=False, provider=self.name, error=f"OpenAI images error {r.status_code}: {r.text[:300]}")
            item = (r.json().get("data") or [{}])[0]
        except (httpx.HTTPError, ValueError) as e:
            logger.error("openai image generation failed: %s", e)
            return ImageResult(success=False, provider=self.name, error=str(e))
        if not item.get("url") and not item.get("b64_json"):
            return ImageResult(success=False, provider=self.name, error="No image returned from OpenAI")
        return ImageResult(
            success=True,
            provider=self.name,
            image_url=item.get("url"),
            image_b64=item.get("b64_json"),
            metadata={
                "model": self.model,
                "generation_ms": int((time.time() - started) * 1000),
                "revised_prompt": item.get("revised_prompt"),
            },
        )


class FalImageProvider:
    name = "fal"

    def __init__(self, model: Optional[str] = None, timeout: float = 120.0):
        self.model = model or settings.fal_model
        self.timeout = timeout

    def is_available(self) -> bool:
        return bool(settings.fal_key)

    def generate(self, request: ImageRequest) -> ImageResult:
        started = time.time()
        prompt = f"{STYLE_PROMPTS.get(request.style_preset, '')} {request.prompt}".strip()
        payload = {
            "prompt": prompt,
            "image_size": FAL_SIZES.get(request.aspect_ratio, "landscape_16_9"),
            "num_images": 1,
            "num_inference_steps": 28 if request.quality == "hd" else 20,
            "enable_safety_checker": True,
        }
        if request.negative_prompt:
            payload["negative_prompt"] = request.negative_prompt
        try:
            with httpx.Client(timeout=self.timeout) as c:
                r = c.post(f"{FAL_RUN_URL}{self.model}", headers={"Authorization": f"Key {settings.fal_key}"}, json=payload)
            if r.status_code != 200:
                return ImageResult(success=False, provider=self.name, error=f"FAL error {r.status_code}: {r.text[:300]}")
            images = r.json().get("images") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error("fal image generation failed: %s", e)
            return ImageResult(success=False, provider=self.name, error=str(e))
        if not images or not images[0].get("url"):
            return ImageResult(success=False, provider=self.name, error="No image returned from FAL")
        return ImageResult(
            success=True,
            provider=self.name,
            image_url=images[0]["url"],
            metadata={"model": self.model, "generation_ms": int((time.time() - started) * 1000)},
        )


PROVIDERS = {
    "openai": OpenAIImageProvider,
    "fal": FalImageProvider,
}


def default_provider_name() -> Optional[str]:
    if settings.t2i_provider in PROVIDERS:
        return settings.t2i_provider
    if settings.openai_api_key:
        return "openai"
    if settings.fal_key:
        return "fal"
    return None


def generate_image(request: ImageRequest, provider: Optional[str] = None) -> ImageResult:
    name = (provider or default_provider_name() or "").lower()
    cls = PROVIDERS.get(name)
    if cls is None:
        return ImageResult(success=False, provider=name or "none", error="No image provider is configured")
    impl = cls()
    if not impl.is_available():
        return ImageResult(success=False, provider=name, error=f"Image provider '{name}' is not configured")
    logger.info("generating image with %s (%s)", name, request.aspect_ratio)
    return impl.generate(request)


def providers_status() -> Dict[str, Any]:
    return {
        "providers": {name: cls().is_available() for name, cls in PROVIDERS.items()},
        "default_provider": default_provider_name(),
    }
