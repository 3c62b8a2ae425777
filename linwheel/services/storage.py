import logging
from pathlib import Path
from typing import Optional

import httpx

from linwheel.config import settings

logger = logging.getLogger(__name__)


class MediaStorage:
    """
    Local file storage for generated media (covers, carousel slides, PDFs).

    Files live under MEDIA_DIR and are served by the app at MEDIA_BASE_URL.
    """

    def __init__(self, base_path: Optional[str] = None, base_url: Optional[str] = None):
        self.base_path = Path(base_path or settings.media_dir)
        self.base_url = (base_url or settings.media_base_url).rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def save_bytes(self, data: bytes, filename: str) -> str:
        # never trust a caller-supplied directory component
        safe_name = Path(filename).name
        target = self.base_path / safe_name
        target.write_bytes(data)
        logger.info("saved %s (%d bytes)", target, len(data))
        return f"{self.base_url}/{safe_name}"

    def local_path(self, url: str) -> Optional[Path]:
        prefix = self.base_url + "/"
        if not url.startswith(prefix):
            return None
        path = self.base_path / Path(url[len(prefix):]).name
        return path if path.exists() else None

    def read(self, url: str, timeout: float = 60.0) -> bytes:
        """Bytes for a stored media URL, or a remote URL (provider CDN)."""
        path = self.local_path(url)
        if path is not None:
            return path.read_bytes()
        with httpx.Client(timeout=timeout, follow_redirects=True) as c:
            r = c.get(url)
            r.raise_for_status()
            return r.content

    def delete(self, url: Optional[str]) -> None:
        if not url:
            return
        path = self.local_path(url)
        if path is not None:
            path.unlink()


_storage: Optional[MediaStorage] = None

def get_storage() -> MediaStorage:
    global _storage
    if _storage is None:
        _storage = MediaStorage()
    return _storage
