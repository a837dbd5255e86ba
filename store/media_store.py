import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Union

from db.object_store import ObjectStore
from store.errors import BackendError, DownloadUrlUnavailableError, UploadFailedError

logger = logging.getLogger(__name__)


class MediaCategory(str, Enum):
    PROFILE_PICTURE = "profile_picture"
    MESSAGE_PHOTO = "message_photo"
    MESSAGE_VIDEO = "message_video"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]

    @property
    def content_type(self) -> str:
        return "video/quicktime" if self is MediaCategory.MESSAGE_VIDEO else "image/png"


_PREFIXES = {
    MediaCategory.PROFILE_PICTURE: "images",
    MediaCategory.MESSAGE_PHOTO: "message_images",
    MediaCategory.MESSAGE_VIDEO: "message_videos",
}


class MediaStore:
    def __init__(self, objects: ObjectStore):
        self.objects = objects

    async def upload(self, data: bytes, file_name: str, category: MediaCategory) -> str:
        """Put the bytes at <prefix>/<file_name>, then return that path's download url."""
        path = f"{category.prefix}/{file_name}"
        try:
            await asyncio.to_thread(self.objects.put, path, data, category.content_type)
        except BackendError as e:
            logger.error("[MEDIA] failed to upload data for %s", path)
            raise UploadFailedError(path) from e

        url = await self.download_url(path)
        logger.info("[MEDIA] download url return: %s", url)
        return url

    async def upload_profile_picture(self, data: bytes, file_name: str) -> str:
        return await self.upload(data, file_name, MediaCategory.PROFILE_PICTURE)

    async def upload_message_photo(self, data: bytes, file_name: str) -> str:
        return await self.upload(data, file_name, MediaCategory.MESSAGE_PHOTO)

    async def upload_message_video(self, file_path: Union[str, Path], file_name: str) -> str:
        path = f"{MediaCategory.MESSAGE_VIDEO.prefix}/{file_name}"
        try:
            data = await asyncio.to_thread(Path(file_path).read_bytes)
        except OSError as e:
            logger.error("[MEDIA] cannot read video file %s: %s", file_path, e)
            raise UploadFailedError(path) from e
        return await self.upload(data, file_name, MediaCategory.MESSAGE_VIDEO)

    async def download_url(self, path: str) -> str:
        try:
            url = await asyncio.to_thread(self.objects.download_url, path)
        except BackendError as e:
            raise DownloadUrlUnavailableError(path) from e
        if not url:
            logger.error("[MEDIA] Failed to get download url for %s", path)
            raise DownloadUrlUnavailableError(path)
        return url
