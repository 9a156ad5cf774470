import json
import logging
import os
import threading
from typing import Any, Callable, Dict, List, Optional

from .models import AuthState, PlatformId, PlaylistInfo


logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = os.path.join("data", "credentials.json")


def _key(platform: Any) -> str:
    return PlatformId(platform).value


class CredentialStore:
    """Durable per-platform auth state (tokens, profile, expiry).

    Each platform key has its own lock; `update` is an atomic
    read-modify-write for that key. Concurrent writers to the same key are
    serialized and the latest write wins. The file is rewritten as a whole
    (temp file + rename) on every change.

    Pass `path=None` for a purely in-memory store.
    """

    def __init__(self, path: Optional[str] = DEFAULT_CREDENTIALS_PATH):
        self.path = path
        self._io_lock = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {p.value: threading.RLock() for p in PlatformId}
        self._data: Dict[str, Dict[str, Any]] = self._read_file()

    # -----------------
    # File I/O
    # -----------------

    def _read_file(self) -> Dict[str, Dict[str, Any]]:
        if not self.path or not os.path.exists(self.path):
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable credential file %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, dict)}

    def _write(self, key: str, entry: Optional[Dict[str, Any]]) -> bool:
        """Replace (or drop, when `entry` is None) one platform entry and persist."""

        with self._io_lock:
            if entry is None:
                self._data.pop(key, None)
            else:
                self._data[key] = entry
            if not self.path:
                return True

            snapshot = json.loads(json.dumps(self._data))
            try:
                directory = os.path.dirname(self.path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                tmp_path = f"{self.path}.tmp"
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(snapshot, f, indent=2)
                os.replace(tmp_path, self.path)
                return True
            except OSError as e:
                logger.error("Failed to write credential file %s: %s", self.path, e)
                return False

    # -----------------
    # Auth state
    # -----------------

    def get(self, platform: PlatformId) -> AuthState:
        key = _key(platform)
        with self._locks[key]:
            entry = self._data.get(key) or {}
            return AuthState.from_dict(entry.get("auth") or {})

    def set(self, platform: PlatformId, state: AuthState) -> AuthState:
        key = _key(platform)
        with self._locks[key]:
            entry = dict(self._data.get(key) or {})
            entry["auth"] = state.to_dict()
            self._write(key, entry)
        return state

    def update(self, platform: PlatformId, fn: Callable[[AuthState], AuthState]) -> AuthState:
        """Apply `fn` to the current state and store the result, atomically per platform."""

        key = _key(platform)
        with self._locks[key]:
            return self.set(platform, fn(self.get(platform)))

    def clear(self, platform: PlatformId) -> None:
        """Reset a platform to disconnected and drop its cached playlist list."""

        key = _key(platform)
        with self._locks[key]:
            if key in self._data:
                self._write(key, None)

    def is_connected(self, platform: PlatformId) -> bool:
        return self.get(platform).connected

    # -----------------
    # Cached platform playlists
    # -----------------

    def get_playlists(self, platform: PlatformId) -> List[PlaylistInfo]:
        key = _key(platform)
        with self._locks[key]:
            raw = (self._data.get(key) or {}).get("playlists") or []
            return [PlaylistInfo.from_dict(p) for p in raw if isinstance(p, dict)]

    def set_playlists(self, platform: PlatformId, playlists: List[PlaylistInfo]) -> None:
        key = _key(platform)
        with self._locks[key]:
            entry = dict(self._data.get(key) or {})
            entry["playlists"] = [p.to_dict() for p in playlists]
            self._write(key, entry)
