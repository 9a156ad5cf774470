import json
import logging
import os
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .errors import StorageError
from .models import ImportedPlaylist


logger = logging.getLogger(__name__)

DEFAULT_IMPORTED_PLAYLISTS_PATH = os.path.join("data", "imported_playlists.json")

# Fields an update may touch; id and content provenance stay fixed.
UPDATABLE_FIELDS = ("name", "image_url", "tracks")


class PlaylistStore:
    """The imported-playlist collection, in insertion order.

    Records are immutable; `update` swaps a record for a modified copy.
    Pass `path=None` for a purely in-memory store.
    """

    def __init__(self, path: Optional[str] = DEFAULT_IMPORTED_PLAYLISTS_PATH):
        self.path = path
        self._lock = threading.RLock()
        self._items: List[ImportedPlaylist] = self._read_file()

    def _read_file(self) -> List[ImportedPlaylist]:
        if not self.path or not os.path.exists(self.path):
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable playlist file %s: %s", self.path, e)
            return []

        raw = data.get("playlists") if isinstance(data, dict) else data
        if not isinstance(raw, list):
            return []
        return [ImportedPlaylist.from_dict(p) for p in raw if isinstance(p, dict)]

    def _save(self) -> bool:
        if not self.path:
            return True

        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"playlists": [p.to_dict() for p in self._items]}, f, indent=2)
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            logger.error("Failed to write playlist file %s: %s", self.path, e)
            return False

    def list(self) -> List[ImportedPlaylist]:
        with self._lock:
            return list(self._items)

    def get(self, playlist_id: str) -> Optional[ImportedPlaylist]:
        with self._lock:
            for p in self._items:
                if p.id == playlist_id:
                    return p
        return None

    def add(self, playlist: ImportedPlaylist) -> ImportedPlaylist:
        with self._lock:
            if any(p.id == playlist.id for p in self._items):
                raise ValueError(f"Imported playlist already exists: {playlist.id}")
            self._items.append(playlist)
            if not self._save():
                self._items.pop()
                raise StorageError(f"Could not save imported playlist to {self.path}")
        return playlist

    def update(self, playlist_id: str, **changes: Any) -> Optional[ImportedPlaylist]:
        """Replace fields of a stored playlist; returns the new record or None if unknown."""

        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(unknown)}")
        if "tracks" in changes:
            changes["tracks"] = tuple(changes["tracks"])

        with self._lock:
            for i, p in enumerate(self._items):
                if p.id == playlist_id:
                    updated = replace(p, **changes)
                    self._items[i] = updated
                    self._save()
                    return updated
        return None

    def remove(self, playlist_id: str) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [p for p in self._items if p.id != playlist_id]
            if len(self._items) == before:
                return False
            self._save()
            return True

    def to_dict(self) -> Dict[str, Any]:
        return {"playlists": [p.to_dict() for p in self.list()]}
