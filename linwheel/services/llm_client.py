import json
import logging
import re
from typing import Optional, Dict, Any

import httpx
from linwheel.config import settings

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")

class LLMClient:
    """JSON-in/JSON-out chat client for OpenAI or Anthropic."""

    def __init__(self, provider: Optional[str] = None, timeout: float = 120.0):
        self.provider = (provider or settings.llm_provider or "openai").lower()
        if self.provider == "openai":
            self.api_key = settings.openai_api_key
            self.model = settings.openai_model
            if not self.api_key:
                raise RuntimeError("OPENAI_API_KEY is not set. Put it in .env or set it in the environment.")
            self.headers = {"Authorization": f"Bearer {self.api_key}"}
        elif self.provider == "anthropic":
            self.api_key = settings.anthropic_api_key
            self.model = settings.anthropic_model
            if not self.api_key:
                raise RuntimeError("ANTHROPIC_API_KEY is not set. Put it in .env or set it in the environment.")
            self.headers = {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION}
        else:
            raise RuntimeError(f"Unknown LLM provider: {self.provider}")
        self.client = httpx.Client(timeout=timeout)

    def generate_json(self, system: str, user: str, temperature: float = 0.5) -> Dict[str, Any]:
        if self.provider == "openai":
            text = self._openai(system, user, temperature)
        else:
            text = self._anthropic(system, user, temperature)
        return parse_json_payload(text)

    def _openai(self, system: str, user: str, temperature: float) -> str:
        payload = {
            "model": self.model,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        r = self.client.post(OPENAI_CHAT_URL, headers=self.headers, json=payload)
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RuntimeError(f"OpenAI API error {r.status_code}: {r.text[:500]}") from e
        data = r.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise RuntimeError(f"Unexpected OpenAI response shape: {str(data)[:300]}") from e

    def _anthropic(self, system: str, user: str, temperature: float) -> str:
        payload = {
            "model": self.model,
            "max_tokens": 4096,
            "temperature": temperature,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }
        r = self.client.post(ANTHROPIC_MESSAGES_URL, headers=self.headers, json=payload)
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RuntimeError(f"Anthropic API error {r.status_code}: {r.text[:500]}") from e
        data = r.json()
        for block in data.get("content") or []:
            if block.get("type") == "text":
                return block.get("text", "")
        raise RuntimeError("No text response from Anthropic")

def parse_json_payload(text: str) -> Dict[str, Any]:
    """Parse the model output; tolerates prose or code fences around the JSON."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        m = _JSON_BLOCK.search(text or "")
        if not m:
            raise RuntimeError("No JSON found in model response")
        try:
            data = json.loads(m.group(0))
        except ValueError as e:
            raise RuntimeError(f"Malformed JSON in model response: {e}") from e
    if isinstance(data, list):
        # some models answer with the bare array
        return {"items": data}
    if not isinstance(data, dict):
        raise RuntimeError("Model response is not a JSON object")
    return data

def provider_status() -> Dict[str, Any]:
    return {
        "providers": {
            "openai": bool(settings.openai_api_key),
            "anthropic": bool(settings.anthropic_api_key),
        },
        "default_provider": settings.llm_provider or "openai",
        "current_models": {
            "openai": settings.openai_model,
            "anthropic": settings.anthropic_model,
        },
    }
