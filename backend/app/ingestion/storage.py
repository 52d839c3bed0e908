"""
UploadStore: writes upload bytes to local durable storage.

Each upload gets a fresh random identifier (not derived from the digest)
and is written to `<root>/<id>.xlsx`.  The SHA-256 digest is returned for
integrity and dedup checks; it is not a uniqueness constraint.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass

from app.core.constants import XLSX_EXTENSION
from app.core.logging import get_logger
from app.ingestion.errors import StorageError
from app.ingestion.file_fingerprint import compute_bytes_hash

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredFile:
    """Where an upload landed and what it hashed to."""

    upload_id: uuid.UUID
    path: str
    sha256: str
    size_bytes: int


class UploadStore:
    """Filesystem-backed store namespaced by upload ID."""

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def path_for(self, upload_id: uuid.UUID) -> str:
        return os.path.join(self.root, f"{upload_id}{XLSX_EXTENSION}")

    def save(self, data: bytes) -> StoredFile:
        """
        Persist `data` under a new identifier.

        Raises StorageError on any filesystem failure; a partially written
        file is removed first.
        """
        upload_id = uuid.uuid4()
        sha256 = compute_bytes_hash(data)
        path = self.path_for(upload_id)

        try:
            os.makedirs(self.root, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            self.discard(path)
            logger.error("Upload write failed", upload_id=str(upload_id), path=path, error=str(exc))
            raise StorageError(
                f"Failed to write upload: {exc}",
                upload_id=str(upload_id),
            ) from exc

        logger.info(
            "Upload stored",
            upload_id=str(upload_id),
            path=path,
            size_bytes=len(data),
            sha256=sha256,
        )
        return StoredFile(upload_id=upload_id, path=path, sha256=sha256, size_bytes=len(data))

    def discard(self, path: str) -> None:
        """Remove a stored file that no ledger row points at."""
        try:
            if os.path.exists(path):
                os.remove(path)
                logger.info("Orphaned upload file removed", path=path)
        except OSError as exc:
            logger.warning("Could not remove orphaned upload file", path=path, error=str(exc))
