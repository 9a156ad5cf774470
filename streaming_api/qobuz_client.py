import logging
from typing import Any, Dict, List, Optional

import httpx

from .client import ApiClient, Page
from .errors import AuthExpired, NotAuthenticated
from .models import PlatformId, PlaylistInfo, StreamingTrack
from .normalizers import qobuz_playlist, qobuz_track
from .qobuz_auth import QOBUZ_API_BASE_URL, QobuzAuth


logger = logging.getLogger(__name__)

QOBUZ_PLAYLISTS_PAGE_SIZE = 100
QOBUZ_TRACKS_PAGE_SIZE = 500


class QobuzClient(ApiClient):
    """Qobuz API client.

    Every request carries X-App-Id and X-User-Auth-Token headers plus the
    app_id query parameter. A 401 re-validates the session once; a second
    401 (or a failed re-validation) drops the session.
    """

    platform = PlatformId.QOBUZ
    display_name = "Qobuz"
    base_url = QOBUZ_API_BASE_URL

    auth: QobuzAuth

    @property
    def app_id(self) -> str:
        return self.auth.app_id

    def api_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        state = self.store.get(self.platform)
        if not state.connected:
            raise NotAuthenticated(self.display_name)

        resp = self._authorized(endpoint, str(state.access_token), params)
        if resp.status_code == 401:
            logger.info("[Qobuz] Got 401, re-validating session")
            token = str(self.auth.refresh_session().access_token)
            resp = self._authorized(endpoint, token, params)

        if resp.status_code == 401:
            self.auth.invalidate("rejected after re-validation")
            raise AuthExpired(self.display_name, "Qobuz session expired. Please log in again.")
        return self._decode(resp)

    def _authorized(self, endpoint: str, token: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}
        query["app_id"] = self.app_id
        return self._send(
            "GET",
            endpoint,
            params=query,
            headers={"X-App-Id": self.app_id, "X-User-Auth-Token": token},
        )

    def _user_id(self) -> str:
        profile = self.store.get(self.platform).user_profile
        return profile.id if profile else ""

    def _fetch_playlists(self) -> List[PlaylistInfo]:
        def page(offset: int) -> Page:
            data = self.api_request(
                "/playlist/getUserPlaylists",
                {"user_id": self._user_id() or None, "limit": QOBUZ_PLAYLISTS_PAGE_SIZE, "offset": offset},
            )
            block = data.get("playlists") or {}
            return [x for x in (block.get("items") or []) if isinstance(x, dict)], block.get("total")

        return [p for p in (qobuz_playlist(x) for x in self._collect_pages(page)) if p is not None]

    def _fetch_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistInfo]:
        return qobuz_playlist(self.api_request("/playlist/get", {"playlist_id": playlist_id}))

    def fetch_playlist_tracks(self, playlist_id: str) -> List[StreamingTrack]:
        def page(offset: int) -> Page:
            data = self.api_request(
                "/playlist/get",
                {"playlist_id": playlist_id, "extra": "tracks", "limit": QOBUZ_TRACKS_PAGE_SIZE, "offset": offset},
            )
            block = data.get("tracks") or {}
            return [x for x in (block.get("items") or []) if isinstance(x, dict)], block.get("total")

        return self._playable(self._collect_pages(page), qobuz_track)

    def _search_tracks(self, query: str, limit: int) -> List[StreamingTrack]:
        data = self.api_request("/track/search", {"query": query, "limit": limit})
        items = (data.get("tracks") or {}).get("items") or []
        return [t for t in (qobuz_track(x) for x in items) if t is not None]
