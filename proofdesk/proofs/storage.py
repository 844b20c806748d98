"""Binary storage for proof files."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Iterable, Protocol

from proofdesk.core.config import get_settings
from proofdesk.core.logger import get_logger


logger = get_logger("proofdesk.proofs.storage")


class ProofStorageError(RuntimeError):
    pass


class ProofStorage(Protocol):
    def put(self, key: str, data: bytes, *, content_type: str) -> str:
        """Store data under key and return the stored location."""

    def delete_many(self, keys: Iterable[str]) -> None:
        """Remove stored objects; missing keys are ignored."""

    def open(self, key: str) -> bytes:
        """Return stored bytes or raise FileNotFoundError."""


class LocalProofStorage:
    """Filesystem storage rooted at a single directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        candidate = (self._root / key).resolve()
        if candidate != self._root and self._root not in candidate.parents:
            raise ProofStorageError("Storage key escapes the storage root")
        return candidate

    def put(self, key: str, data: bytes, *, content_type: str) -> str:
        del content_type
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise ProofStorageError(f"Failed to store {key}") from exc
        return key

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            try:
                self._path(key).unlink(missing_ok=True)
            except (OSError, ProofStorageError) as exc:
                logger.warning("proof_storage_delete_failed", key=key, error_type=exc.__class__.__name__)

    def open(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return path.read_bytes()


@lru_cache(maxsize=1)
def get_proof_storage() -> ProofStorage:
    return LocalProofStorage(get_settings().proof_storage_path)
