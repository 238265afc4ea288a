from mimetypes import guess_type

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ..errors import NotFoundError
from ..storage.local_provider import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.get("/{key:path}")
def serve_upload(key: str, storage: StorageProvider = Depends(get_storage)):
    """Serve a stored incident photo."""
    try:
        path = storage.open(key)
    except FileNotFoundError:
        raise NotFoundError("File not found")
    content_type = guess_type(str(path))[0] or "application/octet-stream"
    return FileResponse(path=str(path), media_type=content_type, filename=path.name)
