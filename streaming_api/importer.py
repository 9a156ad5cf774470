import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence

from .auth import AuthSession
from .client import ApiClient, SpotifyClient
from .errors import InvalidUrl, NoMatch, StreamingError
from .models import ImportedPlaylist, PlatformId, StreamingTrack
from .platforms import detect_platform, extract_playlist_id, parse_spotify_entity
from .playlist_store import PlaylistStore
from .resolver import CrossPlatformResolver, ImportDraft
from .status import SessionStatus


logger = logging.getLogger(__name__)

FALLBACK_PLAYLIST_NAMES = {
    PlatformId.SPOTIFY: "Spotify Playlist",
    PlatformId.DEEZER: "Deezer Playlist",
    PlatformId.QOBUZ: "Qobuz Playlist",
}


class DirectImporter:
    """Imports from the platforms that have an API client."""

    def __init__(self, *, spotify: SpotifyClient, deezer: ApiClient, qobuz: ApiClient):
        self.spotify = spotify
        self.clients: Dict[PlatformId, ApiClient] = {
            PlatformId.SPOTIFY: spotify,
            PlatformId.DEEZER: deezer,
            PlatformId.QOBUZ: qobuz,
        }

    def supports(self, platform: PlatformId) -> bool:
        return platform in self.clients

    def import_url(self, platform: PlatformId, url: str) -> ImportDraft:
        if platform == PlatformId.SPOTIFY:
            return self.import_spotify(url)
        if platform in (PlatformId.DEEZER, PlatformId.QOBUZ):
            return self._import_playlist(platform, url)
        raise InvalidUrl(f"No direct import for {platform.value} links")

    def import_spotify(self, url: str) -> ImportDraft:
        """Import a Spotify playlist, album or single track link (or spotify: URI)."""

        entity = parse_spotify_entity(url)
        if entity is None:
            raise InvalidUrl("Invalid Spotify playlist URL")

        kind, entity_id = entity
        if kind == "playlist":
            return self._import_playlist(PlatformId.SPOTIFY, url, playlist_id=entity_id)

        if kind == "album":
            info, tracks = self.spotify.fetch_album(entity_id)
            return ImportDraft(
                source=PlatformId.SPOTIFY.value,
                source_url=url,
                source_id=entity_id,
                name=info.name,
                image_url=info.image_url,
                tracks=tuple(tracks),
            )

        track = self.spotify.fetch_track(entity_id)
        if track is None:
            raise NoMatch(f"Spotify track {entity_id} was not found")
        return ImportDraft(
            source=PlatformId.SPOTIFY.value,
            source_url=url,
            source_id=entity_id,
            name=track.name,
            image_url=track.image_url,
            tracks=(track,),
        )

    def _import_playlist(self, platform: PlatformId, url: str, *, playlist_id: Optional[str] = None) -> ImportDraft:
        client = self.clients[platform]
        playlist_id = playlist_id or extract_playlist_id(url, platform)
        if not playlist_id:
            raise InvalidUrl(f"Invalid {client.display_name} playlist URL")

        # Metadata is best effort: the tracks decide whether the import works.
        meta = client.fetch_playlist_metadata(playlist_id)
        tracks = client.fetch_playlist_tracks(playlist_id)

        return ImportDraft(
            source=platform.value,
            source_url=url,
            source_id=playlist_id,
            name=meta.name if meta else FALLBACK_PLAYLIST_NAMES[platform],
            image_url=meta.image_url if meta else None,
            tracks=tuple(tracks),
        )


class ImportOrchestrator:
    """Entry point for pasted links, manual search and auth redirects.

    Never raises: failures end up in the shared status error slot and the
    call returns None / [] / False.
    """

    def __init__(
        self,
        *,
        direct: DirectImporter,
        resolver: CrossPlatformResolver,
        spotify: SpotifyClient,
        playlists: PlaylistStore,
        status: SessionStatus,
        auth_sessions: Sequence[AuthSession] = (),
        search_limit: int = 20,
        clock: Callable[[], float] = time.time,
    ):
        self.direct = direct
        self.resolver = resolver
        self.spotify = spotify
        self.playlists = playlists
        self.status = status
        self.auth_sessions = list(auth_sessions)
        self.search_limit = int(search_limit)
        self.clock = clock
        self._stamp_lock = threading.Lock()
        self._last_stamp = 0

    def _next_stamp(self) -> int:
        # Epoch ms, bumped so two imports in the same millisecond still get distinct ids.
        with self._stamp_lock:
            stamp = max(int(self.clock() * 1000), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def _assemble(self, draft: ImportDraft) -> ImportedPlaylist:
        stamp = self._next_stamp()
        return ImportedPlaylist(
            id=ImportedPlaylist.build_id(draft.source, draft.source_id, stamp),
            name=draft.name,
            source=draft.source,
            source_url=draft.source_url,
            tracks=tuple(draft.tracks),
            image_url=draft.image_url,
            imported_at=stamp,
        )

    def _resolve(self, url: str) -> ImportDraft:
        text = str(url or "").strip()
        if not text:
            raise InvalidUrl("Paste a playlist or track link to import")

        platform = detect_platform(text)
        logger.info("[Import] Detected platform: %s", platform.value)

        if self.direct.supports(platform):
            return self.direct.import_url(platform, text)

        if platform == PlatformId.UNKNOWN and not text.lower().startswith(("http://", "https://")):
            raise InvalidUrl(f"Not a link: {text[:80]}")
        return self.resolver.resolve(text, platform)

    # -----------------
    # Public operations
    # -----------------

    def import_from_url(self, url: str) -> Optional[ImportedPlaylist]:
        with self.status.busy():
            try:
                playlist = self._assemble(self._resolve(url))
                self.playlists.add(playlist)
            except StreamingError as e:
                logger.error("[Import] Import failed: %s", e)
                self.status.set_error(str(e) or "Import failed")
                return None
            except Exception as e:
                logger.exception("[Import] Unexpected import failure")
                self.status.set_error(f"Import failed: {e}")
                return None

            logger.info("[Import] Imported %r (%d track(s))", playlist.name, playlist.track_count)
            return playlist

    def search_and_import(self, query: str) -> List[StreamingTrack]:
        """Spotify search for manual import; always a list."""

        if not str(query or "").strip():
            return []
        with self.status.busy():
            return self.spotify.search_tracks(query, self.search_limit)

    def import_tracks(self, name: str, tracks: Sequence[StreamingTrack], *, query: str = "") -> Optional[ImportedPlaylist]:
        """Save hand-picked search results as an imported playlist."""

        if not tracks:
            self.status.set_error("Select at least one track to import")
            return None

        draft = ImportDraft(
            source=PlatformId.SPOTIFY.value,
            source_url=f"spotify:search:{query}" if query else "",
            name=str(name or "").strip() or (query or "Search Import"),
            tracks=tuple(tracks),
            image_url=tracks[0].image_url,
        )
        playlist = self._assemble(draft)
        try:
            self.playlists.add(playlist)
        except StreamingError as e:
            logger.error("[Import] Saving search results failed: %s", e)
            self.status.set_error(str(e))
            return None
        except Exception as e:
            logger.exception("[Import] Unexpected failure saving search results")
            self.status.set_error(f"Import failed: {e}")
            return None
        logger.info("[Import] Saved %d search result(s) as %r", playlist.track_count, playlist.name)
        return playlist

    def handle_auth_callback(self, url: str) -> bool:
        """Route an auth redirect to the session whose redirect URI prefixes it."""

        for session in self.auth_sessions:
            if session.is_auth_callback(url):
                with self.status.busy():
                    return bool(session.handle_auth_callback(url))

        logger.warning("[Import] Pasted URL does not match any configured redirect URI")
        return False

    def list_playlists(self) -> List[ImportedPlaylist]:
        return self.playlists.list()

    def rename_playlist(self, playlist_id: str, name: str) -> Optional[ImportedPlaylist]:
        name = str(name or "").strip()
        if not name:
            self.status.set_error("Playlist name cannot be empty")
            return None
        updated = self.playlists.update(playlist_id, name=name)
        if updated is None:
            self.status.set_error(f"No imported playlist with id {playlist_id}")
        return updated

    def remove_playlist(self, playlist_id: str) -> bool:
        return self.playlists.remove(playlist_id)
