"""
Key-Value Store

The device-local persistence the vector store sits on: get/set/remove of
string blobs by key. FileKeyValueStore keeps one file per key under
~/.studyrag/store; InMemoryKeyValueStore serves tests and ephemeral use.
"""

import os
import re
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger("studyrag.common.kv_store")

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, blob: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, blob: str) -> None:
        self._data[key] = blob

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore:
    """
    One file per key.

    Writes go to a temp file that is renamed over the target, so a crash
    mid-write leaves the previous blob intact.
    """

    def __init__(self, directory: Path):
        self._dir = Path(directory).expanduser()

    def _path_for(self, key: str) -> Path:
        return self._dir / (_UNSAFE_KEY_CHARS.sub("_", key) + ".json")

    async def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            return None

    async def set(self, key: str, blob: str) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(blob, encoding="utf-8")
        os.replace(tmp_path, path)

    async def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
