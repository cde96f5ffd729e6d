"""Side-channel storage of canvas metadata and the authoritative release entries."""

import os
import re
from typing import Dict, List, Optional

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from releasebeacon.models.release import CanvasMetadata, ReleaseEntry

METADATA_FILE = "metadata.json"
RELEASES_FILE = "releases.json"
UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

_entries_adapter = TypeAdapter(List[ReleaseEntry])


def scope_key(channel_id: str, repository_name: Optional[str] = None) -> str:
    """Storage key: the channel id, or ``channel_id:repository`` for per-repository canvases."""
    if repository_name:
        return f"{channel_id}:{repository_name}"
    return channel_id


class InMemoryStateStore:
    """Process-local store, used for tests and when no state directory is configured."""

    def __init__(self):
        self._metadata: Dict[str, CanvasMetadata] = {}
        self._entries: Dict[str, List[ReleaseEntry]] = {}

    def get(self, key: str) -> Optional[CanvasMetadata]:
        return self._metadata.get(key)

    def put(self, key: str, metadata: CanvasMetadata) -> None:
        self._metadata[key] = metadata

    def load_entries(self, key: str) -> Optional[List[ReleaseEntry]]:
        entries = self._entries.get(key)
        return list(entries) if entries is not None else None

    def save_entries(self, key: str, entries: List[ReleaseEntry]) -> None:
        self._entries[key] = list(entries)


class JsonFileStateStore:
    """One directory per key under ``root`` holding metadata.json and releases.json.

    Unreadable files are treated as absent. Writes replace the whole file.
    """

    def __init__(self, root: str):
        self.root = root

    def _key_dir(self, key: str) -> str:
        return os.path.join(self.root, UNSAFE_KEY_CHARS.sub("_", key))

    def _read(self, key: str, filename: str) -> Optional[str]:
        path = os.path.join(self._key_dir(key), filename)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            logger.warning(f"Could not read {path}: {str(e)}")
            return None

    def _write(self, key: str, filename: str, content: str) -> None:
        directory = self._key_dir(key)
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, filename)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
        logger.debug(f"Wrote {path}")

    def get(self, key: str) -> Optional[CanvasMetadata]:
        raw = self._read(key, METADATA_FILE)
        if raw is None:
            return None
        try:
            return CanvasMetadata.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed canvas metadata for {key}: {str(e)}")
            return None

    def put(self, key: str, metadata: CanvasMetadata) -> None:
        self._write(key, METADATA_FILE, metadata.model_dump_json(indent=2))

    def load_entries(self, key: str) -> Optional[List[ReleaseEntry]]:
        raw = self._read(key, RELEASES_FILE)
        if raw is None:
            return None
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed release history for {key}: {str(e)}")
            return None

    def save_entries(self, key: str, entries: List[ReleaseEntry]) -> None:
        self._write(key, RELEASES_FILE, _entries_adapter.dump_json(entries, indent=2).decode("utf-8"))
