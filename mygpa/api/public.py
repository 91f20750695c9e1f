import mimetypes
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool
from ..core.dependencies import get_storage_client
from ..core.errors import StorageError
from ..core.storage import PUBLIC_BUCKETS, StorageClient
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{bucket}/{path:path}")
async def get_public_object(bucket: str, path: str, storage: StorageClient = Depends(get_storage_client)):
    """Serve objects from public buckets (avatars) stored by the local backend"""
    if bucket not in PUBLIC_BUCKETS:
        raise HTTPException(status_code=404, detail="Not found")

    try:
        data = await run_in_threadpool(storage.download, bucket, path)
    except StorageError as e:
        logger.warning(f"Public object {bucket}/{path} unavailable: {e}")
        raise HTTPException(status_code=404, detail="Not found")

    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type, headers={"Cache-Control": "public, max-age=3600"})
