"""
Local filesystem storage provider.
Incident photos are written under STORAGE_DIR and served through /uploads/{key}.
"""
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import structlog

from ..config import settings
from .provider import StorageProvider


logger = structlog.get_logger(__name__)


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        # Keys are relative; strip anything that could climb out of base_dir
        clean_key = key.replace("\\", "/").lstrip("/")
        parts = [p for p in clean_key.split("/") if p not in ("", ".", "..")]
        return self.base_dir.joinpath(*parts)

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def get_url(self, key: str) -> str:
        return f"/uploads/{quote(key.lstrip('/'))}"

    def exists(self, key: str) -> bool:
        return self._get_path(key).is_file()

    def open(self, key: str) -> Path:
        path = self._get_path(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return path

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("storage_delete_failed", key=key, error=str(e))


_provider: Optional[StorageProvider] = None


def get_storage() -> StorageProvider:
    """FastAPI dependency returning the process-wide storage provider."""
    global _provider
    if _provider is None:
        _provider = LocalStorageProvider()
    return _provider
