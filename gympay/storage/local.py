"""Receipt images on the local filesystem, served by the /uploads static mount."""
import logging
import os
import re
import secrets
import time

from gympay.core.config import settings
from gympay.core.errors import ValidationError
from gympay.storage.base import Storage

logger = logging.getLogger(__name__)

RECEIPTS_SUBDIR = "bank-receipts"
ALLOWED_RECEIPT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def safe_name_part(value: str | None, fallback: str = "anonymous") -> str:
    """Reduce caller-supplied text to a slug usable inside a file name."""
    return _UNSAFE_NAME_CHARS.sub("", value or "")[:64] or fallback


class LocalStorage(Storage):
    def __init__(self, root: str | None = None, url_prefix: str | None = None) -> None:
        self.root = root or settings.uploads_dir
        self.url_prefix = (url_prefix or settings.uploads_url_prefix).rstrip("/")

    @property
    def receipts_dir(self) -> str:
        return os.path.join(self.root, RECEIPTS_SUBDIR)

    def _validate(self, filename: str | None, content_type: str | None, content: bytes) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in settings.allowed_extensions_set:
            raise ValidationError("Only image files (jpeg, jpg, png, gif, webp) are allowed")
        if content_type and content_type.lower() not in ALLOWED_RECEIPT_TYPES:
            raise ValidationError("Only image files (jpeg, jpg, png, gif, webp) are allowed")
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > settings.receipt_max_file_size_mb * 1024 * 1024:
            raise ValidationError(f"File too large (max {settings.receipt_max_file_size_mb} MB)")
        return ext

    def save_receipt(self, user_id: str, filename: str | None, content_type: str | None, content: bytes) -> str:
        ext = self._validate(filename, content_type, content)
        os.makedirs(self.receipts_dir, exist_ok=True)
        name = f"{safe_name_part(user_id)}_{int(time.time() * 1000)}_{secrets.randbelow(10**9)}{ext}"
        path = os.path.join(self.receipts_dir, name)
        with open(path, "wb") as f:
            f.write(content)
        logger.info("receipt_saved", extra={"user_id": user_id, "path": path})
        return f"{self.url_prefix}/{RECEIPTS_SUBDIR}/{name}"

    def delete(self, url: str) -> None:
        prefix = f"{self.url_prefix}/{RECEIPTS_SUBDIR}/"
        if not url or not url.startswith(prefix):
            return
        path = os.path.join(self.receipts_dir, os.path.basename(url))
        if os.path.isfile(path):
            try:
                os.remove(path)
            except OSError as e:
                logger.warning("receipt_delete_failed", extra={"path": path, "error": str(e)})
