from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from urllib.parse import quote

import firebase_admin
from firebase_admin import storage
from google.api_core.exceptions import GoogleAPIError

from store.errors import BackendError

logger = logging.getLogger(__name__)

DOWNLOAD_TOKENS_KEY = "firebaseStorageDownloadTokens"
DOWNLOAD_HOST = "https://firebasestorage.googleapis.com"


@dataclass
class StoredObject:
    data: bytes
    content_type: str


class ObjectStore:
    """Binary blobs addressed by path. `download_url` returns None when the object is missing."""

    def put(self, path: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    def download_url(self, path: str) -> Optional[str]:
        raise NotImplementedError


class FirebaseObjectStore(ObjectStore):
    """Firebase Storage (a GCS bucket) through firebase_admin."""

    def __init__(self, app: Optional[firebase_admin.App] = None, bucket=None, signed_url_minutes: int = 60):
        self.bucket = bucket if bucket is not None else storage.bucket(app=app)
        self.signed_url_ttl = timedelta(minutes=signed_url_minutes)

    def put(self, path: str, data: bytes, content_type: str) -> None:
        blob = self.bucket.blob(path)
        # same token scheme the client SDKs use for their download urls
        blob.metadata = {DOWNLOAD_TOKENS_KEY: str(uuid.uuid4())}
        try:
            blob.upload_from_string(data, content_type=content_type)
        except GoogleAPIError as e:
            logger.error("[MEDIA] upload of '%s' failed: %s", path, e)
            raise BackendError("put", path) from e

    def download_url(self, path: str) -> Optional[str]:
        try:
            blob = self.bucket.get_blob(path)
            if blob is None:
                return None

            tokens = (blob.metadata or {}).get(DOWNLOAD_TOKENS_KEY)
            if tokens:
                token = tokens.split(",")[0]
                return (
                    f"{DOWNLOAD_HOST}/v0/b/{self.bucket.name}/o/"
                    f"{quote(path, safe='')}?alt=media&token={token}"
                )

            return blob.generate_signed_url(version="v4", expiration=self.signed_url_ttl, method="GET")
        except GoogleAPIError as e:
            logger.error("[MEDIA] url lookup for '%s' failed: %s", path, e)
            raise BackendError("download_url", path) from e
