"""Durable key-value storage for session partitions.

A partition is the whole session collection of one user type, stored as a
single JSON document. Writes replace the document atomically.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from internmatch.config import settings
from internmatch.errors import PersistenceUnavailable
from internmatch.models.session import UserType

logger = logging.getLogger(__name__)


class PartitionStorage:
    """Interface for partition backends.

    ``read`` returns the raw document (text or undecoded bytes) or None when
    nothing was stored yet.
    Both methods raise ``PersistenceUnavailable`` when the medium fails.
    """

    def read(self, user_type: UserType) -> str | bytes | None:
        raise NotImplementedError

    def write(self, user_type: UserType, payload: str) -> None:
        raise NotImplementedError


class JsonFileStorage(PartitionStorage):
    def __init__(self, base_dir: Path | None = None, key: str | None = None):
        self.base_dir = base_dir or settings.storage_dir
        self.key = key or settings.storage_key

    def path_for(self, user_type: UserType) -> Path:
        return self.base_dir / f"{self.key}_{user_type.value}.json"

    def read(self, user_type: UserType) -> bytes | None:
        path = self.path_for(user_type)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceUnavailable(f"Cannot read {path}: {exc}") from exc

    def write(self, user_type: UserType, payload: str) -> None:
        path = self.path_for(user_type)
        tmp_name: str | None = None
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceUnavailable(f"Cannot write {path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)


class MemoryStorage(PartitionStorage):
    """Process-local storage, mainly for tests and ephemeral deployments."""

    def __init__(self, documents: dict[UserType, str] | None = None):
        self.documents: dict[UserType, str] = dict(documents or {})

    def read(self, user_type: UserType) -> str | None:
        return self.documents.get(user_type)

    def write(self, user_type: UserType, payload: str) -> None:
        self.documents[user_type] = payload
