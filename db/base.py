import logging
import threading
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from shared.config import ChatSettings

logger = logging.getLogger(__name__)

_app: Optional[firebase_admin.App] = None
_lock = threading.Lock()


def get_app(settings: ChatSettings) -> firebase_admin.App:
    """Initialize the default firebase app once, from SECRETS_DIR/firebase.json."""
    global _app
    with _lock:
        if _app is None:
            if not settings.database_url:
                raise ValueError("Missing required environment variable: FIREBASE_DATABASE_URL")
            cred = credentials.Certificate(settings.firebase_credentials_path)
            options = {"databaseURL": settings.database_url}
            if settings.storage_bucket:
                options["storageBucket"] = settings.storage_bucket
            _app = firebase_admin.initialize_app(cred, options)
            logger.info("[DB] firebase app initialized for %s", settings.database_url)
        return _app
