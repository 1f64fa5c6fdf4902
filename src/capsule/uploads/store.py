"""Transient on-disk store for uploaded files.

Each upload is written under a freshly generated identifier and handed
to exactly one downstream consumer. ``consume()`` releases the file on
every exit path, so callers never have to remember the cleanup.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator

from capsule.domain.models import ArtifactRef

logger = logging.getLogger(__name__)


class UploadStore:
    """Owns the upload directory and the artifacts written into it.

    Example usage::

        store = UploadStore(Path("uploads"))
        await store.open()
        ref = await store.store(data, "photo.png")
        async with store.consume(ref) as payload:
            ...  # payload is the file's bytes; the file is gone afterwards
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)
        self._is_open = False

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def is_open(self) -> bool:
        return self._is_open

    async def open(self) -> None:
        """Create the upload directory if it does not exist yet."""
        try:
            await _run_blocking(self._directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise UploadStoreError(f"Cannot create upload directory {self._directory}: {e}") from e
        self._is_open = True
        logger.info("Upload store ready at %s", self._directory)

    async def close(self) -> None:
        self._is_open = False

    async def store(self, data: bytes, original_name: str = "") -> ArtifactRef:
        """Persist ``data`` and return a reference to it.

        The client-supplied name is recorded on the reference but never
        used to build the on-disk path.
        """
        artifact_id = uuid.uuid4().hex
        path = self._directory / artifact_id
        try:
            await _run_blocking(path.write_bytes, data)
        except OSError as e:
            raise UploadStoreError(f"Failed to write upload {artifact_id}: {e}") from e

        ref = ArtifactRef(
            artifact_id=artifact_id,
            path=path,
            original_name=original_name,
            size_bytes=len(data),
            created_at=datetime.now(),
        )
        logger.debug(
            "Stored artifact %s (%d bytes, original name %r)",
            artifact_id, ref.size_bytes, original_name,
        )
        return ref

    async def read(self, ref: ArtifactRef) -> bytes:
        try:
            return await _run_blocking(ref.path.read_bytes)
        except OSError as e:
            raise UploadStoreError(f"Failed to read artifact {ref.artifact_id}: {e}") from e

    async def exists(self, ref: ArtifactRef) -> bool:
        return await _run_blocking(ref.path.exists)

    async def release(self, ref: ArtifactRef | None) -> None:
        """Delete the artifact's file.

        Idempotent: releasing an already-released artifact is a no-op.
        Filesystem failures are logged and never raised.
        """
        if ref is None:
            return
        try:
            await _run_blocking(ref.path.unlink)
            logger.debug("Released artifact %s", ref.artifact_id)
        except FileNotFoundError:
            logger.debug("Artifact %s already released", ref.artifact_id)
        except OSError as e:
            logger.error("Cleanup failed for artifact %s: %s", ref.artifact_id, e)

    @asynccontextmanager
    async def consume(self, ref: ArtifactRef | None) -> AsyncIterator[bytes | None]:
        """Read an artifact for one downstream use, then release it.

        Yields the payload bytes (``None`` when no artifact was given).
        The release runs whether the body returns, raises, or is
        cancelled.
        """
        try:
            yield await self.read(ref) if ref is not None else None
        finally:
            await self.release(ref)


async def _run_blocking(func, *args, **kwargs):  # type: ignore[no-untyped-def]
    """Run a blocking filesystem call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(*args, **kwargs))


class UploadStoreError(Exception):
    """Raised when an upload cannot be written or read."""
