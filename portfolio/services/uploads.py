"""Hero image storage on local disk."""
import logging
import os
import secrets
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from portfolio import config

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
CHUNK_SIZE = 64 * 1024

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class UploadRejected(Exception):
    pass


def upload_dir() -> Path:
    path = config.get_upload_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_local_upload(url: Optional[str]) -> bool:
    return isinstance(url, str) and url.startswith(UPLOAD_URL_PREFIX)


def local_path(url: str) -> Path:
    # basename only; a stored URL can never point outside the upload dir
    return upload_dir() / os.path.basename(url)


def remove_local_upload(url: Optional[str]) -> None:
    """Delete the file behind a /uploads/ URL. Other URLs are left alone."""
    if not is_local_upload(url):
        return
    try:
        local_path(url).unlink()
        logger.info(f"Removed upload {url}")
    except OSError as e:
        logger.warning(f"Could not remove upload {url}: {e}")


async def store_hero_image(upload: UploadFile) -> str:
    """Validate and save an uploaded image, returning its public URL.

    Nothing is left on disk when the upload is rejected.
    """
    ext = MIME_EXTENSIONS.get(upload.content_type or "")
    if not ext:
        raise UploadRejected("Unsupported image type")
    if upload.size is not None and upload.size > MAX_UPLOAD_BYTES:
        raise UploadRejected("Image is larger than 10 MB")

    filename = f"{secrets.token_hex(16)}{ext}"
    target = upload_dir() / filename
    size = 0
    try:
        with open(target, "wb") as f:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > MAX_UPLOAD_BYTES:
                    raise UploadRejected("Image is larger than 10 MB")
                f.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    if size == 0:
        target.unlink(missing_ok=True)
        raise UploadRejected("Empty file")

    logger.info(f"Stored hero image {filename} ({size} bytes)")
    return f"{UPLOAD_URL_PREFIX}{filename}"
