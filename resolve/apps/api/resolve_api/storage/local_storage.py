"""Local disk storage for user uploads.

Uploads are streamed to a temporary ``.part`` file and renamed into place only
after the size limit check passes, so a rejected upload leaves nothing behind.
"""

import logging
import os
import re
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from resolve_api.config import env

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

ALLOWED_UPLOAD_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
    }
)


class UploadTooLargeError(Exception):
    """Upload exceeded the configured byte limit."""

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        super().__init__(f"Upload exceeds {max_bytes} bytes")


@dataclass(frozen=True)
class StoredFile:
    filename: str
    path: Path
    size: int


def is_image(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def _safe_suffix(original_name: Optional[str]) -> str:
    suffix = Path(original_name or "").suffix.lower()
    return suffix if re.fullmatch(r"\.[a-z0-9]{1,8}", suffix) else ""


class LocalStorage:
    """Stores files under a single root directory."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else env.get_uploads_dir()

    async def save_upload(self, upload: UploadFile, max_bytes: int) -> StoredFile:
        """Stream an upload to disk.

        Args:
            upload: Incoming multipart file
            max_bytes: Size limit; exceeding it aborts and removes the partial file

        Returns:
            StoredFile with the generated filename and absolute path

        Raises:
            UploadTooLargeError: File larger than max_bytes
            OSError: Disk errors (propagated)
        """
        self.root.mkdir(parents=True, exist_ok=True)
        filename = f"{secrets.token_hex(16)}{_safe_suffix(upload.filename)}"
        final_path = self.root / filename
        part_path = self.root / f"{filename}.part"

        size = 0
        try:
            with open(part_path, "wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        raise UploadTooLargeError(max_bytes)
                    out.write(chunk)
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise

        os.replace(part_path, final_path)
        logger.info(
            "storage.upload.saved",
            extra={"event": "storage.upload.saved", "stored_filename": filename, "size": size},
        )
        return StoredFile(filename=filename, path=final_path.resolve(), size=size)

    def delete(self, path: str) -> bool:
        """Remove a stored file. Missing files are not an error.

        Returns:
            True if a file was removed
        """
        target = Path(path)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning(
                "storage.delete.missing",
                extra={"event": "storage.delete.missing", "stored_filename": target.name},
            )
            return False

        logger.info(
            "storage.delete.done",
            extra={"event": "storage.delete.done", "stored_filename": target.name},
        )
        return True


def get_local_storage() -> LocalStorage:
    """Storage rooted at UPLOADS_DIR (read per call so tests can redirect it)."""
    return LocalStorage()
