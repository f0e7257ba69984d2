"""Blob stores for rendered report artifacts.

Stores are append-only: ``put`` refuses to overwrite an existing key and a
new artifact always gets a new key. Locations are opaque strings with a
scheme prefix (``memory://``, ``file://``); ``get`` returns None for a
location the store does not hold, including pointer locations written by
the indexer.
"""

import asyncio
from pathlib import Path
from typing import Protocol, runtime_checkable

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sitedoc.core.exceptions import StorageError
from sitedoc.core.logging import get_logger
from sitedoc.utils.exceptions import ConfigurationError

logger = get_logger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    """Opaque artifact storage."""

    async def put(self, key: str, content: bytes, content_type: str) -> str:
        """Store ``content`` under ``key`` and return its location."""
        ...

    async def get(self, location: str) -> bytes | None:
        """Bytes at ``location``, or None if the store does not hold it."""
        ...

    async def delete(self, location: str) -> None:
        """Remove ``location``; unknown locations are ignored."""
        ...


def artifact_key(
    organization_id: object, project_id: object, report_id: object, file_name: str
) -> str:
    """``<organization>/<project>/reports/<report id>/<file name>``."""
    return f"{organization_id}/{project_id}/reports/{report_id}/{file_name}"


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryBlobStore:
    """Blob store held in process memory, for development and tests."""

    scheme = "memory://"

    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}
        self._lock = asyncio.Lock()

    async def put(self, key: str, content: bytes, content_type: str) -> str:
        location = f"{self.scheme}{key}"
        async with self._lock:
            if location in self._blobs:
                raise StorageError("Artifact already exists", details={"location": location})
            self._blobs[location] = (content, content_type)
        return location

    async def get(self, location: str) -> bytes | None:
        blob = self._blobs.get(location)
        return blob[0] if blob else None

    async def delete(self, location: str) -> None:
        async with self._lock:
            self._blobs.pop(location, None)

    def __contains__(self, location: str) -> bool:
        return location in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


# =============================================================================
# Filesystem store
# =============================================================================


def _transient(exc: BaseException) -> bool:
    return isinstance(exc, OSError) and not isinstance(
        exc, (FileExistsError, FileNotFoundError, PermissionError)
    )


_io_retry = retry(
    retry=retry_if_exception(_transient),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    reraise=True,
)


class LocalFileBlobStore:
    """Blob store writing artifacts below a root directory.

    File I/O runs in a worker thread. Transient ``OSError`` failures are
    retried; an existing file is never replaced.
    """

    scheme = "file://"

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()

    def _path_for(self, location: str) -> Path | None:
        if not location.startswith(self.scheme):
            return None
        path = (self.root / location.removeprefix(self.scheme)).resolve()
        if not path.is_relative_to(self.root):
            return None
        return path

    @_io_retry
    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("xb") as fh:
            fh.write(content)

    @_io_retry
    def _read(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    @_io_retry
    def _remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)

    async def put(self, key: str, content: bytes, content_type: str) -> str:
        location = f"{self.scheme}{key}"
        path = self._path_for(location)
        if path is None:
            raise StorageError("Invalid artifact key", details={"key": key})
        try:
            await asyncio.to_thread(self._write, path, content)
        except FileExistsError as e:
            raise StorageError("Artifact already exists", details={"location": location}) from e
        except OSError as e:
            logger.error("Artifact write failed", location=location, error=str(e))
            raise StorageError("Failed to store artifact", details={"location": location}) from e
        return location

    async def get(self, location: str) -> bytes | None:
        path = self._path_for(location)
        if path is None:
            return None
        try:
            return await asyncio.to_thread(self._read, path)
        except OSError as e:
            raise StorageError("Failed to read artifact", details={"location": location}) from e

    async def delete(self, location: str) -> None:
        path = self._path_for(location)
        if path is None:
            return
        try:
            await asyncio.to_thread(self._remove, path)
        except OSError as e:
            raise StorageError(
                "Failed to delete artifact", details={"location": location}
            ) from e


def create_blob_store(backend: str, storage_dir: Path | str) -> BlobStore:
    """Blob store for the configured backend (``memory`` or ``filesystem``)."""
    if backend == "filesystem":
        return LocalFileBlobStore(storage_dir)
    if backend == "memory":
        return InMemoryBlobStore()
    raise ConfigurationError(f"Unknown storage backend: {backend}")
