import logging
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .auth import SPOTIFY_API_BASE_URL, AuthSession, SpotifyPKCEAuth
from .credential_store import CredentialStore
from .errors import ApiError, AuthExpired, StreamingError
from .http import body_excerpt, build_http_client, decode_json
from .models import PlatformId, PlaylistInfo, StreamingTrack
from .normalizers import explicitly_unplayable, spotify_playlist, spotify_track
from .status import SessionStatus


logger = logging.getLogger(__name__)

# A fetched page: (raw items, total reported by the platform or None).
Page = Tuple[List[Any], Optional[int]]


class ApiClient:
    """Authenticated calls against one platform plus the shared fetch contract.

    Subclasses implement `_fetch_playlists`, `_fetch_playlist_metadata`,
    `fetch_playlist_tracks` and `_search_tracks`. The public wrappers below
    own the status slot and the "never raise" behaviour of listing, metadata
    and search. `fetch_playlist_tracks` raises, since an import without
    tracks has nothing to fall back to.
    """

    platform: PlatformId = PlatformId.UNKNOWN
    display_name: str = "Unknown"
    base_url: str = ""

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        auth: AuthSession,
        store: CredentialStore,
        status: Optional[SessionStatus] = None,
        http: Optional[httpx.Client] = None,
    ):
        self.config = config or {}
        self.auth = auth
        self.store = store
        self.status = status or SessionStatus()
        self.http = http or build_http_client(self.config)

    # -----------------
    # HTTP helpers
    # -----------------

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.http.request(method.upper(), f"{self.base_url}{endpoint}", **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(self.display_name, f"{self.display_name} API request failed: {e}") from e

    def _decode(self, resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            raise ApiError(
                self.display_name,
                f"{self.display_name} API error {resp.status_code}: {body_excerpt(resp)}",
                status=resp.status_code,
            )
        return decode_json(resp, platform=self.display_name)

    def _collect_pages(self, fetch_page: Callable[[int], Page]) -> List[Any]:
        """Walk offset-paged results until the reported total is reached."""

        out: List[Any] = []
        offset = 0
        while True:
            items, total = fetch_page(offset)
            out.extend(items)
            offset += len(items)
            if not items or total is None or offset >= int(total):
                break
        return out

    def _playable(self, raw_tracks: List[Any], normalize: Callable[[Any], Optional[StreamingTrack]]) -> List[StreamingTrack]:
        out: List[StreamingTrack] = []
        for raw in raw_tracks:
            if explicitly_unplayable(self.platform, raw):
                continue
            track = normalize(raw)
            if track is not None:
                out.append(track)
        return out

    # -----------------
    # Public fetch contract
    # -----------------

    def fetch_playlists(self) -> List[PlaylistInfo]:
        """The user's playlists; cached in the CredentialStore. [] on failure."""

        with self.status.busy():
            try:
                playlists = self._fetch_playlists()
            except StreamingError as e:
                logger.error("[%s] Failed to fetch playlists: %s", self.display_name, e)
                self.status.set_error(str(e))
                return []

            self.store.set_playlists(self.platform, playlists)
            self.status.mark_synced()
            logger.info("[%s] Fetched %d playlist(s)", self.display_name, len(playlists))
            return playlists

    def fetch_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistInfo]:
        try:
            return self._fetch_playlist_metadata(playlist_id)
        except StreamingError as e:
            logger.warning("[%s] Failed to fetch playlist metadata for %s: %s", self.display_name, playlist_id, e)
            return None

    def fetch_playlist_tracks(self, playlist_id: str) -> List[StreamingTrack]:
        raise NotImplementedError

    def search_tracks(self, query: str, limit: Optional[int] = None) -> List[StreamingTrack]:
        """Search results, unplayable tracks included (flagged). [] on failure."""

        query = str(query or "").strip()
        if not query:
            return []

        limit = int(limit if limit is not None else self.config.get("search_limit", 20))
        try:
            return self._search_tracks(query, limit)
        except StreamingError as e:
            logger.error("[%s] Search failed: %s", self.display_name, e)
            self.status.set_error(str(e))
            return []

    def _fetch_playlists(self) -> List[PlaylistInfo]:
        raise NotImplementedError

    def _fetch_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistInfo]:
        raise NotImplementedError

    def _search_tracks(self, query: str, limit: int) -> List[StreamingTrack]:
        raise NotImplementedError


@dataclass(frozen=True)
class PlaybackState:
    is_playing: bool
    progress_ms: int
    device_name: Optional[str] = None
    track: Optional[StreamingTrack] = None


class SpotifyClient(ApiClient):
    """Spotify Web API client.

    Requests carry a bearer token. An expired token is refreshed before the
    request is sent; a 401 triggers one refresh and one retry, unless this
    call already refreshed.
    """

    platform = PlatformId.SPOTIFY
    display_name = "Spotify"
    base_url = SPOTIFY_API_BASE_URL

    auth: SpotifyPKCEAuth

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        auth: SpotifyPKCEAuth,
        opener: Optional[Callable[[str], Any]] = None,
        **kwargs: Any,
    ):
        super().__init__(config, auth=auth, **kwargs)
        self.opener = opener or webbrowser.open

    def api_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        method: str = "GET",
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        refreshed = self.auth.needs_refresh()
        token = self.auth.get_access_token()

        resp = self._authorized(method, endpoint, token, params=params, json=json)
        if resp.status_code == 401 and not refreshed:
            logger.info("[Spotify] Got 401, refreshing token")
            token = str(self.auth.refresh_access_token().access_token)
            resp = self._authorized(method, endpoint, token, params=params, json=json)

        if resp.status_code == 401:
            raise AuthExpired(self.display_name, "Spotify authentication expired")
        return self._decode(resp)

    def _authorized(self, method: str, endpoint: str, token: str, **kwargs: Any) -> httpx.Response:
        params = kwargs.pop("params", None)
        json = kwargs.pop("json", None)
        request_kwargs: Dict[str, Any] = {"headers": {"Authorization": f"Bearer {token}"}}
        if params:
            request_kwargs["params"] = {k: str(v) for k, v in params.items() if v is not None}
        if json is not None:
            request_kwargs["json"] = json
        return self._send(method, endpoint, **request_kwargs)

    def _page(self, endpoint: str, offset: int, limit: int, *, params: Optional[Dict[str, Any]] = None) -> Page:
        page = self.api_request(endpoint, {**(params or {}), "limit": limit, "offset": offset}) or {}
        items = page.get("items") or []
        total = page.get("total")
        return [x for x in items if isinstance(x, dict)], (int(total) if total is not None else None)

    # -----------------
    # Library
    # -----------------

    def _fetch_playlists(self) -> List[PlaylistInfo]:
        raw = self._collect_pages(lambda offset: self._page("/me/playlists", offset, 50))
        return [p for p in (spotify_playlist(x) for x in raw) if p is not None]

    def _fetch_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistInfo]:
        return spotify_playlist(self.api_request(f"/playlists/{playlist_id}"))

    def fetch_playlist_tracks(self, playlist_id: str) -> List[StreamingTrack]:
        # Endpoint shape: {items: [{added_at, track: {...}}], total, ...}
        items = self._collect_pages(
            lambda offset: self._page(
                f"/playlists/{playlist_id}/tracks",
                offset,
                100,
                params={"additional_types": "track"},
            )
        )
        raw_tracks = [item.get("track") for item in items if isinstance(item.get("track"), dict)]
        return self._playable(raw_tracks, spotify_track)

    def fetch_album(self, album_id: str) -> Tuple[PlaylistInfo, List[StreamingTrack]]:
        """Album summary plus its playable tracks."""

        album = self.api_request(f"/albums/{album_id}") or {}
        first_page = album.get("tracks") or {}
        album_ref = {k: v for k, v in album.items() if k != "tracks"}

        raw_tracks = [x for x in (first_page.get("items") or []) if isinstance(x, dict)]
        total = int(first_page.get("total") or 0)
        while len(raw_tracks) < total:
            items, _ = self._page(f"/albums/{album_id}/tracks", len(raw_tracks), 50)
            if not items:
                break
            raw_tracks.extend(items)

        # Album track objects omit the album itself.
        tracks = self._playable([{**t, "album": album_ref} for t in raw_tracks], spotify_track)
        artists = ", ".join(str(a.get("name")) for a in (album.get("artists") or []) if isinstance(a, dict) and a.get("name"))
        info = PlaylistInfo(
            id=str(album.get("id") or album_id),
            name=str(album.get("name") or "Spotify Album"),
            image_url=((album.get("images") or [{}])[0] or {}).get("url") or None,
            owner_name=artists or "Unknown",
            track_count=len(tracks),
            link=str(album.get("uri") or f"spotify:album:{album_id}"),
        )
        return info, tracks

    def fetch_track(self, track_id: str) -> Optional[StreamingTrack]:
        return spotify_track(self.api_request(f"/tracks/{track_id}"))

    def _search_tracks(self, query: str, limit: int) -> List[StreamingTrack]:
        data = self.api_request("/search", {"q": query, "type": "track", "limit": max(1, min(50, limit))}) or {}
        items = (data.get("tracks") or {}).get("items") or []
        return [t for t in (spotify_track(x) for x in items) if t is not None]

    # -----------------
    # Playback transport
    # -----------------

    def _transport(self, label: str, endpoint: str, *, method: str = "PUT", **kwargs: Any) -> bool:
        try:
            self.api_request(endpoint, method=method, **kwargs)
            return True
        except StreamingError as e:
            logger.warning("[Spotify] %s failed: %s", label, e)
            return False

    def play(self, uri: Optional[str] = None, position_ms: int = 0) -> bool:
        """Start `uri` on the active device, or open it in the Spotify app on failure.

        Returns True when playback was started either way.
        """

        body: Dict[str, Any] = {}
        if uri:
            if uri.startswith("spotify:track:"):
                body["uris"] = [uri]
            else:
                body["context_uri"] = uri
        if position_ms > 0:
            body["position_ms"] = int(position_ms)

        if self._transport("Play", "/me/player/play", json=body or None):
            return True
        if not uri:
            return False

        logger.info("[Spotify] Opening %s in the Spotify app", uri)
        try:
            return bool(self.opener(uri))
        except Exception as e:
            logger.error("[Spotify] Could not open %s: %s", uri, e)
            return False

    def pause(self) -> bool:
        return self._transport("Pause", "/me/player/pause")

    def resume(self) -> bool:
        return self._transport("Resume", "/me/player/play")

    def seek(self, position_ms: int) -> bool:
        return self._transport("Seek", "/me/player/seek", params={"position_ms": max(0, int(position_ms))})

    def skip_next(self) -> bool:
        return self._transport("Skip next", "/me/player/next", method="POST")

    def skip_previous(self) -> bool:
        return self._transport("Skip previous", "/me/player/previous", method="POST")

    def get_playback_state(self) -> Optional[PlaybackState]:
        try:
            data = self.api_request("/me/player")
        except StreamingError as e:
            logger.warning("[Spotify] Get playback state failed: %s", e)
            return None

        # 204 No Content: nothing is playing.
        if not data:
            return None
        return PlaybackState(
            is_playing=bool(data.get("is_playing")),
            progress_ms=int(data.get("progress_ms") or 0),
            device_name=(data.get("device") or {}).get("name"),
            track=spotify_track(data.get("item")),
        )
