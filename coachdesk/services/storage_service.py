"""
File storage service for club logos and profile pictures.

Files are written below a root directory, one folder per owner. The returned
path is relative to the root and is treated as opaque by callers.
"""
import logging
import os
import re
import uuid
from typing import BinaryIO, Optional

from ..utils.constants import (
    ALLOWED_UPLOAD_EXTENSIONS, DEFAULT_STORAGE_DIR, MAX_UPLOAD_BYTES
)
from .backend import FileStorage, UploadResult

logger = logging.getLogger(__name__)

_OWNER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class LocalFileStorage(FileStorage):
    """
    Service for storing uploaded files on the local filesystem.

    Args:
        root_dir: Directory uploads are written below
        max_bytes: Largest accepted upload
        allowed_extensions: Accepted file extensions (lower case, with dot)
    """

    def __init__(self, root_dir: str = DEFAULT_STORAGE_DIR,
                 max_bytes: int = MAX_UPLOAD_BYTES,
                 allowed_extensions=ALLOWED_UPLOAD_EXTENSIONS):
        self.root_dir = root_dir
        self.max_bytes = max_bytes
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}

    def upload(self, file: BinaryIO, owner_id: str,
               filename: Optional[str] = None) -> UploadResult:
        """
        Store a file for an owner.

        Args:
            file: Binary file object, read to the end
            owner_id: Club, coach or player the file belongs to
            filename: Original file name, used for its extension

        Returns:
            UploadResult with the stored path, or an error message
        """
        if not owner_id or not _OWNER_ID_PATTERN.match(owner_id):
            return UploadResult(error=f"Invalid owner id: {owner_id!r}")

        name = filename or getattr(file, "name", "") or ""
        extension = os.path.splitext(str(name))[1].lower()
        if extension not in self.allowed_extensions:
            return UploadResult(error=f"Unsupported file type: {extension or 'none'}")

        data = file.read(self.max_bytes + 1)
        if len(data) > self.max_bytes:
            return UploadResult(
                error=f"File is larger than {self.max_bytes // (1024 * 1024)} MB"
            )
        if not data:
            return UploadResult(error="File is empty")

        relative_path = f"{owner_id}/{uuid.uuid4().hex}{extension}"
        full_path = self.resolve(relative_path)

        try:
            directory = os.path.dirname(full_path)
            if not os.path.exists(directory):
                os.makedirs(directory)
            with open(full_path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("Upload for %s failed: %s", owner_id, e)
            return UploadResult(error=f"Upload failed: {e}")

        logger.info("Stored %d bytes for %s at %s", len(data), owner_id, relative_path)
        return UploadResult(path=relative_path)

    def resolve(self, path: str) -> str:
        """Absolute filesystem location of a stored path."""
        return os.path.join(self.root_dir, *path.split("/"))

    def exists(self, path: str) -> bool:
        return os.path.isfile(self.resolve(path))
