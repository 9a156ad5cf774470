"""Streaming platform integration and playlist import.

Three platforms with an API client (Spotify, Deezer, Qobuz), each with its
own login handshake, plus link resolution for YouTube Music / Apple Music
links through the song.link service.

Entry point: `build_services(config)` returns one StreamingServices bundle;
its `importer` (ImportOrchestrator) is what the front-end talks to.
"""

from .auth import AuthStatus, SpotifyPKCEAuth, check_platform_credentials
from .client import PlaybackState, SpotifyClient
from .credential_store import CredentialStore
from .deezer_auth import DeezerAuth
from .deezer_client import DeezerClient
from .errors import (
    ApiError,
    AuthExpired,
    AuthFailed,
    InvalidUrl,
    NoMatch,
    NotAuthenticated,
    ResolutionNotFound,
    ResolutionUnreachable,
    StorageError,
    StreamingError,
)
from .importer import DirectImporter, ImportOrchestrator
from .models import AuthState, ImportedPlaylist, PlatformId, PlaylistInfo, StreamingTrack, UserProfile
from .platforms import detect_platform, extract_playlist_id, is_streaming_url, platform_display_name
from .playlist_store import PlaylistStore
from .qobuz_auth import QobuzAuth
from .qobuz_client import QobuzClient
from .resolver import CrossPlatformResolver, OdesliClient
from .services import StreamingServices, build_services
from .status import SessionStatus

__all__ = [
    "ApiError",
    "AuthExpired",
    "AuthFailed",
    "AuthState",
    "AuthStatus",
    "CredentialStore",
    "CrossPlatformResolver",
    "DeezerAuth",
    "DeezerClient",
    "DirectImporter",
    "ImportOrchestrator",
    "ImportedPlaylist",
    "InvalidUrl",
    "NoMatch",
    "NotAuthenticated",
    "OdesliClient",
    "PlatformId",
    "PlaybackState",
    "PlaylistInfo",
    "PlaylistStore",
    "QobuzAuth",
    "QobuzClient",
    "ResolutionNotFound",
    "ResolutionUnreachable",
    "SessionStatus",
    "SpotifyClient",
    "SpotifyPKCEAuth",
    "StorageError",
    "StreamingError",
    "StreamingServices",
    "StreamingTrack",
    "UserProfile",
    "build_services",
    "check_platform_credentials",
    "detect_platform",
    "extract_playlist_id",
    "is_streaming_url",
    "platform_display_name",
]
