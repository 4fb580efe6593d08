"""File-backed key-value slots."""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path

from znap_sync.services.camera_store import KeyValueStorage


@dataclass
class FileKeyValueStorage(KeyValueStorage):
    """Stores each slot as `<directory>/<key>.json`."""

    directory: Path

    async def get_item(self, key: str) -> str | None:
        """Return a slot's contents, or None when it was never written."""
        path = self._path(key)
        if not path.exists():
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def set_item(self, key: str, value: str) -> None:
        """Replace a slot's contents atomically."""
        await asyncio.to_thread(self._write, self._path(key), value)

    async def remove_item(self, key: str) -> None:
        """Delete a slot if it exists."""
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def _write(self, path: Path, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)
