"""
Object storage for uploaded documents and avatars.

Buckets are logical names (``user-documents``, ``avatars``). The local backend
maps them to directories, the Firebase backend to prefixes inside a single
Cloud Storage bucket.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Protocol
from urllib.parse import quote
import logging

from firebase_admin import storage as firebase_storage
from google.api_core import exceptions as google_exceptions

from .errors import StorageError

logger = logging.getLogger(__name__)

DOCUMENTS_BUCKET = "user-documents"
AVATARS_BUCKET = "avatars"
PUBLIC_BUCKETS = {AVATARS_BUCKET}


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload(self, bucket: str, path: str, data: bytes, content_type: str, upsert: bool = False) -> str:
        ...

    def download(self, bucket: str, path: str) -> bytes:
        ...

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...


class LocalStorageClient:
    """Stores objects on the local filesystem under ``root/<bucket>/<path>``."""

    def __init__(self, root: str, public_base_url: str = "http://localhost:8000"):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        bucket_root = (self.root / bucket).resolve()
        target = (bucket_root / path).resolve()
        if bucket_root not in target.parents:
            raise StorageError(f"Invalid object path: {path}")
        return target

    def upload(self, bucket, path, data, content_type, upsert=False):
        target = self._resolve(bucket, path)
        if target.exists() and not upsert:
            raise StorageError("The resource already exists")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"Stored {len(data)} bytes at {bucket}/{path}")
        return path

    def download(self, bucket, path):
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")
        return target.read_bytes()

    def remove(self, bucket, paths):
        for path in paths:
            target = self._resolve(bucket, path)
            if target.is_file():
                target.unlink()
                logger.info(f"Removed {bucket}/{path}")

    def public_url(self, bucket, path):
        return f"{self.public_base_url}/public/{bucket}/{quote(path)}"


class FirebaseStorageClient:
    """Cloud Storage for Firebase; logical buckets become object prefixes."""

    def __init__(self, app=None):
        self._bucket = firebase_storage.bucket(app=app)

    def _blob(self, bucket: str, path: str):
        return self._bucket.blob(f"{bucket}/{path}")

    def upload(self, bucket, path, data, content_type, upsert=False):
        blob = self._blob(bucket, path)
        if not upsert and blob.exists():
            raise StorageError("The resource already exists")
        try:
            blob.upload_from_string(data, content_type=content_type)
        except google_exceptions.GoogleAPIError as e:
            raise StorageError(str(e)) from e
        return path

    def download(self, bucket, path):
        try:
            return self._blob(bucket, path).download_as_bytes()
        except google_exceptions.NotFound as e:
            raise StorageError(f"Object not found: {path}") from e
        except google_exceptions.GoogleAPIError as e:
            raise StorageError(str(e)) from e

    def remove(self, bucket, paths):
        for path in paths:
            try:
                self._blob(bucket, path).delete()
            except google_exceptions.NotFound:
                logger.info(f"{bucket}/{path} already removed")
            except google_exceptions.GoogleAPIError as e:
                raise StorageError(str(e)) from e

    def public_url(self, bucket, path):
        blob = self._blob(bucket, path)
        try:
            blob.make_public()
        except google_exceptions.GoogleAPIError as e:
            raise StorageError(str(e)) from e
        return blob.public_url
