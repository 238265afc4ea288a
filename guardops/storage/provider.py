from pathlib import Path
from typing import Optional


class StorageProvider:
    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    def get_url(self, key: str) -> str:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def open(self, key: str) -> Path:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError
