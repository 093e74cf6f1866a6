"""
Content-addressed storage for uploaded media.

A ContentStore wraps exactly one backend: Pinata (IPFS pinning), Cloudinary,
or the local-disk fallback used when no remote credentials are configured.
Callers can always ask which one is active via ``ContentStore.mode``.
"""
import hashlib
import io
import logging
from enum import Enum
from pathlib import Path

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import requests

from .config import Settings
from .errors import StorageUnavailable, UploadRejected

logger = logging.getLogger(__name__)

PINATA_PIN_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
CLOUDINARY_FOLDER = "truthchain"
LOCAL_PREFIX = "local-"


class StorageMode(str, Enum):
    PINATA = "pinata"
    CLOUDINARY = "cloudinary"
    LOCAL = "local"


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class PinataBackend:
    mode = StorageMode.PINATA

    def __init__(self, jwt: str, timeout: float, session: requests.Session | None = None):
        self._jwt = jwt
        self._timeout = timeout
        self._session = session or requests.Session()

    def upload(self, data: bytes, original_name: str) -> str:
        try:
            resp = self._session.post(
                PINATA_PIN_URL,
                headers={"Authorization": f"Bearer {self._jwt}"},
                files={"file": (original_name, data)},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise StorageUnavailable(f"Pinata unreachable: {e}") from e

        if resp.status_code in (400, 413, 415, 422):
            raise UploadRejected(f"Pinata rejected the upload ({resp.status_code}): {resp.text[:200]}")
        if resp.status_code >= 300:
            raise StorageUnavailable(f"Pinata returned HTTP {resp.status_code}")

        try:
            cid = resp.json()["IpfsHash"]
        except (ValueError, KeyError) as e:
            raise StorageUnavailable("Pinata response did not include an IPFS hash") from e
        return cid


class CloudinaryBackend:
    """
    Cloudinary is not content-addressed by itself, so the public id is the
    SHA-256 of the bytes: the same file always maps to the same identifier
    and re-uploads are no-ops (overwrite=False).
    """
    mode = StorageMode.CLOUDINARY

    def __init__(self, cloudinary_url: str, timeout: float):
        cloudinary.config(cloudinary_url=cloudinary_url)
        self._timeout = timeout

    def upload(self, data: bytes, original_name: str) -> str:
        digest = content_digest(data)
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(data),
                folder=CLOUDINARY_FOLDER,
                public_id=digest,
                resource_type="auto",
                filename=original_name,
                overwrite=False,
                timeout=self._timeout,
            )
        except cloudinary.exceptions.BadRequest as e:
            raise UploadRejected(f"Cloudinary rejected the upload: {e}") from e
        except (cloudinary.exceptions.Error, requests.RequestException, OSError) as e:
            raise StorageUnavailable(f"Cloudinary upload failed: {e}") from e
        return result.get("public_id") or f"{CLOUDINARY_FOLDER}/{digest}"


class LocalBackend:
    """Fallback: files land in a local directory, served back under /uploads."""
    mode = StorageMode.LOCAL

    def __init__(self, upload_dir: Path):
        self.upload_dir = Path(upload_dir)

    def upload(self, data: bytes, original_name: str) -> str:
        digest = content_digest(data)
        suffix = Path(original_name or "").suffix.lower()
        target = self.upload_dir / f"{digest}{suffix}"
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            if not target.exists():
                target.write_bytes(data)
        except OSError as e:
            raise StorageUnavailable(f"Local storage write failed: {e}") from e
        return f"{LOCAL_PREFIX}{digest}"


class ContentStore:
    def __init__(self, backend=None, max_bytes: int | None = None):
        self.backend = backend
        self.max_bytes = max_bytes

    @property
    def mode(self) -> StorageMode | None:
        return self.backend.mode if self.backend is not None else None

    @property
    def is_local(self) -> bool:
        return self.mode is StorageMode.LOCAL

    def store(self, data: bytes, original_name: str) -> str:
        """Upload `data` and return its content identifier."""
        if self.backend is None:
            raise StorageUnavailable("No content storage backend is configured")
        if not data:
            raise UploadRejected("Uploaded file is empty")
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise UploadRejected(
                f"File is {len(data)} bytes; the limit is {self.max_bytes} bytes"
            )

        logger.info("[STORAGE] Uploading %s (%d bytes) via %s", original_name, len(data), self.mode.value)
        content_id = self.backend.upload(data, original_name)
        logger.info("[STORAGE] Stored as %s", content_id)
        return content_id


def build_content_store(settings: Settings) -> ContentStore:
    """Pinata when a JWT is set, else Cloudinary, else the local fallback."""
    if settings.pinata_jwt:
        backend = PinataBackend(settings.pinata_jwt, settings.storage_timeout)
    elif settings.cloudinary_url:
        backend = CloudinaryBackend(settings.cloudinary_url, settings.storage_timeout)
    elif settings.allow_local_storage:
        logger.warning("[STORAGE] No remote credentials configured; using local fallback in %s", settings.upload_dir)
        backend = LocalBackend(settings.upload_dir)
    else:
        backend = None
    return ContentStore(backend, max_bytes=settings.max_upload_bytes)
