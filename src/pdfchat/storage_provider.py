"""
Blob storage abstraction for uploaded documents.
Default implementation uses the local filesystem; the interface allows cloud backends later.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

_META_SUFFIX = ".meta.json"


@dataclass(frozen=True)
class StoredBlob:
    key: str
    content: bytes
    content_type: str


def safe_key(key: str) -> str:
    """Reduces a client-supplied file name to a single path component."""
    name = Path(str(key or "").replace("\\", "/")).name.strip()
    if not name or name in {".", ".."} or name.endswith(_META_SUFFIX):
        raise ValueError(f"invalid blob key: {key!r}")
    return name


class BlobStorageProvider(Protocol):
    @property
    def root(self) -> Path:
        ...

    def ensure_ready(self):
        ...

    def save_blob(self, key: str, content: bytes, content_type: str) -> Path:
        ...

    def read_blob(self, key: str) -> StoredBlob:
        ...


class LocalBlobStorageProvider:
    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def ensure_ready(self):
        self._root.mkdir(parents=True, exist_ok=True)

    def save_blob(self, key: str, content: bytes, content_type: str) -> Path:
        self.ensure_ready()
        name = safe_key(key)
        destination = self._root / name
        destination.write_bytes(content)
        meta_path = self._root / f"{name}{_META_SUFFIX}"
        meta_path.write_text(json.dumps({"content_type": str(content_type or "")}), encoding="utf-8")
        return destination

    def read_blob(self, key: str) -> StoredBlob:
        """Raises FileNotFoundError when nothing was stored under key."""
        name = safe_key(key)
        path = self._root / name
        content = path.read_bytes()
        meta_path = self._root / f"{name}{_META_SUFFIX}"
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            meta = {}
        return StoredBlob(key=name, content=content, content_type=str(meta.get("content_type") or ""))
