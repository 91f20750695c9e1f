"""
Dependency wiring for the auth provider and object storage.
"""

from __future__ import annotations

from .config import settings
from .firebase import get_firebase_app
from .providers import AuthProvider, FirebaseAuthProvider, LocalAuthProvider
from .storage import FirebaseStorageClient, LocalStorageClient, StorageClient

_auth_provider: AuthProvider | None = None
_storage_client: StorageClient | None = None


def get_auth_provider() -> AuthProvider:
    """Return a singleton auth provider selected by ``AUTH_PROVIDER``."""
    global _auth_provider
    if _auth_provider:
        return _auth_provider

    if settings.auth_provider == "firebase":
        _auth_provider = FirebaseAuthProvider(
            api_key=settings.firebase_api_key or "",
            app=get_firebase_app(),
        )
    else:
        _auth_provider = LocalAuthProvider(
            min_password_length=settings.min_password_length,
            frontend_url=settings.frontend_url,
        )
    return _auth_provider


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    if settings.storage_backend == "firebase":
        _storage_client = FirebaseStorageClient(app=get_firebase_app())
    else:
        _storage_client = LocalStorageClient(
            root=settings.storage_root,
            public_base_url=settings.public_base_url,
        )
    return _storage_client
