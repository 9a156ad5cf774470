import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from .auth import AuthSession, SpotifyPKCEAuth
from .client import ApiClient, SpotifyClient
from .credential_store import DEFAULT_CREDENTIALS_PATH, CredentialStore
from .deezer_auth import DeezerAuth
from .deezer_client import DeezerClient
from .http import build_http_client
from .importer import DirectImporter, ImportOrchestrator
from .models import PlatformId
from .playlist_store import DEFAULT_IMPORTED_PLAYLISTS_PATH, PlaylistStore
from .qobuz_auth import QobuzAuth
from .qobuz_client import QobuzClient
from .resolver import CrossPlatformResolver, OdesliClient, SpotifyLinkStrategy, TextSearchStrategy
from .status import SessionStatus


logger = logging.getLogger(__name__)


@dataclass
class StreamingServices:
    """One instance of every streaming service, built once at start-up."""

    config: Dict[str, Any]
    http: httpx.Client
    credentials: CredentialStore
    playlists: PlaylistStore
    status: SessionStatus
    spotify_auth: SpotifyPKCEAuth
    deezer_auth: DeezerAuth
    qobuz_auth: QobuzAuth
    spotify: SpotifyClient
    deezer: DeezerClient
    qobuz: QobuzClient
    odesli: OdesliClient
    resolver: CrossPlatformResolver
    importer: ImportOrchestrator

    def auth_for(self, platform: PlatformId) -> AuthSession:
        return {
            PlatformId.SPOTIFY: self.spotify_auth,
            PlatformId.DEEZER: self.deezer_auth,
            PlatformId.QOBUZ: self.qobuz_auth,
        }[PlatformId(platform)]

    def client_for(self, platform: PlatformId) -> ApiClient:
        return {
            PlatformId.SPOTIFY: self.spotify,
            PlatformId.DEEZER: self.deezer,
            PlatformId.QOBUZ: self.qobuz,
        }[PlatformId(platform)]

    def close(self) -> None:
        self.http.close()


def build_services(
    config: Dict[str, Any],
    *,
    credentials: Optional[CredentialStore] = None,
    playlists: Optional[PlaylistStore] = None,
    http: Optional[httpx.Client] = None,
    opener: Optional[Callable[[str], Any]] = None,
    clock: Optional[Callable[[], float]] = None,
) -> StreamingServices:
    """Wire every service together around one CredentialStore, status slot and HTTP client."""

    config = config or {}
    http = http or build_http_client(config)
    credentials = credentials or CredentialStore(config.get("credentials_file") or DEFAULT_CREDENTIALS_PATH)
    playlists = playlists or PlaylistStore(config.get("imported_playlists_file") or DEFAULT_IMPORTED_PLAYLISTS_PATH)
    status = SessionStatus()

    shared: Dict[str, Any] = {"store": credentials, "status": status, "http": http}
    session_kwargs = dict(shared, opener=opener)
    if clock is not None:
        session_kwargs["clock"] = clock

    spotify_auth = SpotifyPKCEAuth(config, **session_kwargs)
    deezer_auth = DeezerAuth(config, **session_kwargs)
    qobuz_auth = QobuzAuth(config, **session_kwargs)

    spotify = SpotifyClient(config, auth=spotify_auth, opener=opener, **shared)
    deezer = DeezerClient(config, auth=deezer_auth, **shared)
    qobuz = QobuzClient(config, auth=qobuz_auth, **shared)

    direct = DirectImporter(spotify=spotify, deezer=deezer, qobuz=qobuz)
    odesli = OdesliClient(config, http=http)
    resolver = CrossPlatformResolver(
        odesli,
        [
            SpotifyLinkStrategy(direct.import_spotify),
            TextSearchStrategy(spotify, limit=int(config.get("resolver_search_limit", 5))),
        ],
    )

    importer_kwargs: Dict[str, Any] = {}
    if clock is not None:
        importer_kwargs["clock"] = clock
    importer = ImportOrchestrator(
        direct=direct,
        resolver=resolver,
        spotify=spotify,
        playlists=playlists,
        status=status,
        auth_sessions=[spotify_auth, deezer_auth, qobuz_auth],
        search_limit=int(config.get("search_limit", 20)),
        **importer_kwargs,
    )

    logger.debug("Streaming services ready")
    return StreamingServices(
        config=config,
        http=http,
        credentials=credentials,
        playlists=playlists,
        status=status,
        spotify_auth=spotify_auth,
        deezer_auth=deezer_auth,
        qobuz_auth=qobuz_auth,
        spotify=spotify,
        deezer=deezer,
        qobuz=qobuz,
        odesli=odesli,
        resolver=resolver,
        importer=importer,
    )
