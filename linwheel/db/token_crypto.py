import json
import logging
from typing import Any, Dict, Optional
from cryptography.fernet import Fernet, InvalidToken
from linwheel.config import settings

logger = logging.getLogger(__name__)

def _fernet() -> Fernet:
    if not settings.fernet_key:
        raise RuntimeError("FERNET_KEY is missing in .env")
    return Fernet(settings.fernet_key.encode())

def encrypt_token(plain: str) -> str:
    return _fernet().encrypt(plain.encode()).decode()

def decrypt_token(cipher: str) -> str:
    try:
        return _fernet().decrypt(cipher.encode()).decode()
    except (TypeError, InvalidToken) as e:
        # caller decides how to surface it
        logger.error("decrypt error: %s", e.__class__.__name__)
        raise

def seal_json(payload: Dict[str, Any]) -> str:
    """Encrypt a small JSON document into an opaque url-safe string."""
    return encrypt_token(json.dumps(payload, separators=(",", ":")))

def open_json(cipher: str, max_age_seconds: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """Inverse of seal_json. Returns None for tampered or expired input."""
    try:
        if max_age_seconds is None:
            raw = _fernet().decrypt(cipher.encode())
        else:
            raw = _fernet().decrypt(cipher.encode(), ttl=max_age_seconds)
        data = json.loads(raw.decode())
    except (TypeError, ValueError, InvalidToken):
        return None
    return data if isinstance(data, dict) else None
