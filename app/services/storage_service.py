# app/services/storage_service.py
"""
Object storage for uploaded files — booking supporting documents and
vehicle photos. Only the returned URL is persisted.

Backends (settings.STORAGE_BACKEND):
  local       → writes under settings.UPLOAD_DIR, served by the app at /uploads
  cloudinary  → signed upload to the Cloudinary REST API
"""

import base64
import hashlib
import os
import time
import uuid
from dataclasses import dataclass

import httpx

from app.config import settings
from app.services.errors import UpstreamError, invalid
from app.utils.logger import get_logger

logger = get_logger(__name__)

DOCUMENT_TYPES = {"application/pdf", "image/jpeg", "image/png"}
VEHICLE_IMAGE_TYPES = {"image/jpeg", "image/png", "image/tiff"}

_EXTENSIONS = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/tiff": "tiff",
}

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud}/auto/upload"


@dataclass
class UploadedFile:
    """A file received from the client, already read into memory."""
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def validate_upload(upload: UploadedFile, allowed_types: set[str], field: str):
    """Raise ValidationFailed if the upload's mime type or size is not acceptable."""
    if upload.content_type not in allowed_types:
        allowed = ", ".join(sorted(_EXTENSIONS[t].upper() for t in allowed_types))
        raise invalid(field, f"Invalid file type. Allowed types: {allowed}")
    if upload.size == 0:
        raise invalid(field, "File is empty")
    if upload.size > settings.MAX_UPLOAD_BYTES:
        raise invalid(field, f"File size too large. Maximum size: {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB")


async def upload_file(upload: UploadedFile, folder: str, prefix: str) -> str:
    """Store the file and return its retrieval URL. Raises UpstreamError on failure."""
    public_id = f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
    if settings.STORAGE_BACKEND == "cloudinary":
        return await _upload_cloudinary(upload, folder, public_id)
    return _upload_local(upload, folder, public_id)


def _upload_local(upload: UploadedFile, folder: str, public_id: str) -> str:
    filename = f"{public_id}.{_EXTENSIONS.get(upload.content_type, 'bin')}"
    directory = os.path.join(settings.UPLOAD_DIR, folder)
    try:
        os.makedirs(directory, exist_ok=True)
        with open(os.path.join(directory, filename), "wb") as f:
            f.write(upload.content)
    except OSError as e:
        logger.error(f"[STORAGE] Local write failed for {filename}: {e}")
        raise UpstreamError("Failed to store uploaded file")

    logger.info(f"[STORAGE] Saved {folder}/{filename} ({upload.size} bytes)")
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/uploads/{folder}/{filename}"


def cloudinary_signature(params: dict, api_secret: str) -> str:
    """SHA-1 over the alphabetically sorted `key=value` pairs followed by the API secret."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


async def _upload_cloudinary(upload: UploadedFile, folder: str, public_id: str) -> str:
    if not (settings.CLOUDINARY_CLOUD_NAME and settings.CLOUDINARY_API_KEY and settings.CLOUDINARY_API_SECRET):
        logger.error("[STORAGE] Cloudinary backend selected but credentials are not configured")
        raise UpstreamError("File storage is not configured")

    params = {
        "folder": f"{settings.CLOUDINARY_FOLDER}/{folder}",
        "public_id": public_id,
        "timestamp": int(time.time()),
    }
    data_uri = f"data:{upload.content_type};base64,{base64.b64encode(upload.content).decode('ascii')}"
    form = {
        **params,
        "file": data_uri,
        "api_key": settings.CLOUDINARY_API_KEY,
        "signature": cloudinary_signature(params, settings.CLOUDINARY_API_SECRET),
    }
    url = CLOUDINARY_UPLOAD_URL.format(cloud=settings.CLOUDINARY_CLOUD_NAME)

    try:
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.post(url, data=form)
    except httpx.HTTPError as e:
        logger.error(f"[STORAGE] Cloudinary upload failed: {e}")
        raise UpstreamError("Failed to upload file")

    if response.status_code != 200:
        logger.error(f"[STORAGE] Cloudinary returned HTTP {response.status_code}: {response.text[:200]}")
        raise UpstreamError("Failed to upload file")

    secure_url = response.json().get("secure_url")
    if not secure_url:
        logger.error("[STORAGE] Cloudinary response had no secure_url")
        raise UpstreamError("Failed to upload file")

    logger.info(f"[STORAGE] Uploaded {public_id} to Cloudinary ({upload.size} bytes)")
    return secure_url


def discard_upload(url: str):
    """Best-effort removal of a stored file whose database row was never written."""
    prefix = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/uploads/"
    if settings.STORAGE_BACKEND != "local" or not url.startswith(prefix):
        logger.warning(f"[STORAGE] Orphaned upload left in place: {url}")
        return

    path = os.path.join(settings.UPLOAD_DIR, *url[len(prefix):].split("/"))
    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"[STORAGE] Could not remove orphaned upload {path}: {e}")
        return
    logger.info(f"[STORAGE] Removed orphaned upload {path}")
