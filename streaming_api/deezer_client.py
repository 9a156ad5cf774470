import logging
from typing import Any, Dict, List, Optional

from .client import ApiClient, Page
from .deezer_auth import DEEZER_API_BASE_URL, DeezerAuth
from .errors import ApiError, AuthExpired, NotAuthenticated
from .models import PlatformId, PlaylistInfo, StreamingTrack
from .normalizers import deezer_playlist, deezer_track


logger = logging.getLogger(__name__)

# Embedded error code for an invalid or expired OAuth token.
DEEZER_INVALID_SESSION_CODE = 300
DEEZER_PAGE_SIZE = 100


class DeezerClient(ApiClient):
    """Deezer API client.

    The token travels as the `access_token` query parameter. Deezer reports
    errors inside HTTP 200 bodies ({"error": {"type", "message", "code"}}).
    Playlist and search reads are public and work without a token.
    """

    platform = PlatformId.DEEZER
    display_name = "Deezer"
    base_url = DEEZER_API_BASE_URL

    auth: DeezerAuth

    def api_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        auth_required: bool = False,
    ) -> Any:
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}

        token = self.store.get(self.platform).access_token
        if token:
            query["access_token"] = token
        elif auth_required:
            raise NotAuthenticated(self.display_name)

        data = self._decode(self._send("GET", endpoint, params=query))
        error = data.get("error") if isinstance(data, dict) else None
        if error:
            self._raise_embedded(error)
        return data

    def _raise_embedded(self, error: Any) -> None:
        error = error if isinstance(error, dict) else {"message": str(error)}
        try:
            code: Optional[int] = int(error.get("code"))
        except (TypeError, ValueError):
            code = None

        if code == DEEZER_INVALID_SESSION_CODE:
            self.auth.invalidate("invalid session (code 300)")
            raise AuthExpired(self.display_name, "Deezer session expired. Please reconnect.")

        message = error.get("message") or "Unknown error"
        raise ApiError(self.display_name, f"Deezer API error: {message}", status=200, code=code)

    def _page(self, endpoint: str, index: int, *, auth_required: bool = False) -> Page:
        page = self.api_request(endpoint, {"limit": DEEZER_PAGE_SIZE, "index": index}, auth_required=auth_required)
        items = [x for x in (page.get("data") or []) if isinstance(x, dict)]
        total = page.get("total")
        if total is None:
            # No total reported: keep going only while Deezer links a next page.
            total = index + len(items) + (1 if page.get("next") else 0)
        return items, int(total)

    def _fetch_playlists(self) -> List[PlaylistInfo]:
        raw = self._collect_pages(lambda index: self._page("/user/me/playlists", index, auth_required=True))
        return [p for p in (deezer_playlist(x) for x in raw) if p is not None]

    def _fetch_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistInfo]:
        return deezer_playlist(self.api_request(f"/playlist/{playlist_id}"))

    def fetch_playlist_tracks(self, playlist_id: str) -> List[StreamingTrack]:
        raw = self._collect_pages(lambda index: self._page(f"/playlist/{playlist_id}/tracks", index))
        return self._playable(raw, deezer_track)

    def _search_tracks(self, query: str, limit: int) -> List[StreamingTrack]:
        data = self.api_request("/search/track", {"q": query, "limit": limit})
        return [t for t in (deezer_track(x) for x in (data.get("data") or [])) if t is not None]
