"""
Image storage backed by Cloudinary.

Uploads are synchronous relative to the request: the returned secure URL is
stored verbatim on the catalog item or user profile.
"""
import io
import logging
from typing import List

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from fastapi import UploadFile

import config
from errors import DependencyFailure, InvalidInput

logger = logging.getLogger(__name__)

MAX_IMAGES = 5


class CloudinaryStorage:
    def __init__(self, cloud_name, api_key, api_secret):
        self.configured = bool(cloud_name and api_key and api_secret)
        if self.configured:
            cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    def upload(self, content: bytes, filename: str, folder: str) -> str:
        if not self.configured:
            raise DependencyFailure("Image storage not configured", status_code=500)
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(content), folder=folder, filename=filename, use_filename=True,
                unique_filename=True, overwrite=False, resource_type="auto",
            )
        except cloudinary.exceptions.Error as e:
            logger.error("Cloudinary upload of %s failed: %s", filename, e)
            raise DependencyFailure("Failed to upload image")
        url = result["secure_url"]
        logger.info("Image uploaded: %s", url)
        return url


_storage = None


def get_storage() -> CloudinaryStorage:
    global _storage
    if _storage is None:
        _storage = CloudinaryStorage(
            config.CLOUDINARY_CLOUD_NAME, config.CLOUDINARY_API_KEY, config.CLOUDINARY_API_SECRET
        )
    return _storage


def upload_images(storage, files: List[UploadFile], folder: str) -> List[str]:
    files = [f for f in files or [] if f.filename]
    if len(files) > MAX_IMAGES:
        raise InvalidInput(f"At most {MAX_IMAGES} images are allowed")
    return [storage.upload(f.file.read(), f.filename, folder) for f in files]
