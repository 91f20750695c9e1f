import firebase_admin
from firebase_admin import credentials
from .config import settings
import logging

logger = logging.getLogger(__name__)

_firebase_app = None


def get_firebase_app() -> firebase_admin.App:
    """Initialize the Firebase Admin app once and reuse it."""
    global _firebase_app
    if _firebase_app:
        return _firebase_app

    if settings.firebase_credentials_file:
        cred = credentials.Certificate(settings.firebase_credentials_file)
    else:
        cred = credentials.ApplicationDefault()

    options = {}
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket

    _firebase_app = firebase_admin.initialize_app(cred, options)
    logger.info(f"Firebase app initialized (project: {_firebase_app.project_id})")
    return _firebase_app
