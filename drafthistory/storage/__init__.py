"""
State Storage
=============

The persistence primitive the commit store consumes: save and load an
opaque blob under a key. The real backend (file system, key-value store,
host-side storage service) belongs to an external collaborator; the two
implementations here are reference backends for tests and local use.

BOUNDARY ENFORCEMENT:
=====================
- Blobs are stored byte-for-byte, never inspected
- A failed write never leaves a truncated blob behind
"""

from __future__ import annotations
import os
import re
import tempfile
from typing import Dict, List, Optional

from loguru import logger

from ..config import StorageConfig


_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


class StateStore:
    """
    Abstract blob store interface.

    Implementations may use any storage system as long as save/load
    round-trip the exact bytes.
    """

    def save(self, key: str, blob: bytes) -> None:
        raise NotImplementedError

    def load(self, key: str) -> Optional[bytes]:
        """Return the blob, or None if nothing was saved under key."""
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError


class InMemoryStateStore(StateStore):
    """Dictionary-backed store, suitable for tests."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    def save(self, key: str, blob: bytes) -> None:
        self._blobs[key] = bytes(blob)

    def load(self, key: str) -> Optional[bytes]:
        return self._blobs.get(key)

    def delete(self, key: str) -> bool:
        return self._blobs.pop(key, None) is not None

    def keys(self) -> List[str]:
        return sorted(self._blobs)


class FileStateStore(StateStore):
    """
    One file per key under storage_dir.

    Writes go to a temporary file in the same directory and are moved
    into place with os.replace.
    """

    SUFFIX = ".dhstate"

    def __init__(self, storage_dir: str):
        self._storage_dir = storage_dir
        os.makedirs(storage_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self._storage_dir, key + self.SUFFIX)

    def save(self, key: str, blob: bytes) -> None:
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self._storage_dir, prefix=".tmp-")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(blob)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug("Saved {} bytes to {}", len(blob), path)

    def load(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, 'rb') as f:
            return f.read()

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not os.path.exists(path):
            return False
        os.unlink(path)
        return True

    def keys(self) -> List[str]:
        return sorted(
            name[:-len(self.SUFFIX)]
            for name in os.listdir(self._storage_dir)
            if name.endswith(self.SUFFIX)
        )


def create_state_store(config: Optional[StorageConfig] = None) -> StateStore:
    """Create storage backend based on configuration."""
    config = config or StorageConfig()
    if config.backend_type == "file" and config.storage_dir:
        return FileStateStore(config.storage_dir)
    return InMemoryStateStore()


__all__ = [
    'StateStore',
    'InMemoryStateStore',
    'FileStateStore',
    'create_state_store',
]
