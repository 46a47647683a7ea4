"""
File Storage

Directory-backed store for generated PDFs, professor images and student
documents.
Deletion is best-effort.
"""
import logging
import os
import secrets
from pathlib import Path
from typing import Optional, Union

from ..config import UPLOAD_DIR

logger = logging.getLogger(__name__)


class FileStore:
    """Writes files under a root directory, one subdirectory per kind."""

    def __init__(self, root: Union[str, Path] = UPLOAD_DIR):
        self.root = Path(root)

    def unique_name(self, prefix: str, suffix: str) -> str:
        return f"{prefix}{secrets.token_urlsafe(8)}{suffix}"

    def write(self, subdir: str, filename: str, data: bytes) -> str:
        """Write bytes and return the stored path."""
        directory = self.root / subdir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_bytes(data)
        return str(path)

    def exists(self, path: Optional[str]) -> bool:
        return bool(path) and os.path.isfile(path)

    def read(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def delete(self, path: Optional[str]) -> bool:
        """Remove a file if present. Failures are logged, never raised."""
        if not path:
            return False
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not delete {path}: {e}")
            return False
