from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class PlatformId(str, Enum):
    SPOTIFY = "spotify"
    DEEZER = "deezer"
    QOBUZ = "qobuz"
    YOUTUBE_MUSIC = "youtube_music"
    APPLE_MUSIC = "apple_music"
    UNKNOWN = "unknown"


# Platforms with an API client and a login handshake.
STREAMABLE_PLATFORMS = (PlatformId.SPOTIFY, PlatformId.DEEZER, PlatformId.QOBUZ)

# Source value for imports whose platform could not be detected.
URL_SOURCE = "url"


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


@dataclass(frozen=True)
class UserProfile:
    """Platform-neutral user profile."""

    id: str
    display_name: str
    email: Optional[str] = None
    image_url: Optional[str] = None
    tier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "email": self.email,
            "image_url": self.image_url,
            "tier": self.tier,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "UserProfile":
        return UserProfile(
            id=str(data.get("id", "")),
            display_name=str(data.get("display_name", "")),
            email=_opt_str(data.get("email")),
            image_url=_opt_str(data.get("image_url")),
            tier=_opt_str(data.get("tier")),
        )


@dataclass(frozen=True)
class AuthState:
    """Per-platform auth state as held by the CredentialStore.

    expires_at (epoch seconds) and refresh_token are only used by Spotify.
    Deezer and Qobuz tokens are kept until the server rejects them.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None
    user_profile: Optional[UserProfile] = None

    @property
    def connected(self) -> bool:
        return bool(self.access_token)

    def is_expired(self, *, now: float, skew_seconds: int = 60) -> bool:
        if not self.access_token:
            return True
        if self.expires_at is None:
            return False
        return float(self.expires_at) <= float(now) + float(skew_seconds)

    def with_tokens(
        self,
        access_token: str,
        *,
        refresh_token: Optional[str] = None,
        expires_at: Optional[float] = None,
    ) -> "AuthState":
        # A refresh response may omit the refresh token; keep the one we have.
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            expires_at=expires_at,
        )

    def with_profile(self, profile: Optional[UserProfile]) -> "AuthState":
        return replace(self, user_profile=profile)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user_profile": self.user_profile.to_dict() if self.user_profile else None,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AuthState":
        profile = data.get("user_profile")
        expires_at = data.get("expires_at")
        return AuthState(
            access_token=_opt_str(data.get("access_token")),
            refresh_token=_opt_str(data.get("refresh_token")),
            expires_at=float(expires_at) if expires_at is not None else None,
            user_profile=UserProfile.from_dict(profile) if isinstance(profile, dict) else None,
        )


@dataclass(frozen=True)
class StreamingTrack:
    id: str
    name: str
    artist: str
    album: str
    duration_ms: int
    playable_uri: str
    image_url: Optional[str] = None
    preview_url: Optional[str] = None
    is_playable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "artist": self.artist,
            "album": self.album,
            "duration_ms": self.duration_ms,
            "image_url": self.image_url,
            "playable_uri": self.playable_uri,
            "preview_url": self.preview_url,
            "is_playable": self.is_playable,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "StreamingTrack":
        return StreamingTrack(
            id=str(data.get("id", "")),
            name=str(data.get("name") or "Unknown"),
            artist=str(data.get("artist") or "Unknown"),
            album=str(data.get("album") or "Unknown"),
            duration_ms=int(data.get("duration_ms") or 0),
            playable_uri=str(data.get("playable_uri", "")),
            image_url=_opt_str(data.get("image_url")),
            preview_url=_opt_str(data.get("preview_url")),
            is_playable=bool(data.get("is_playable", True)),
        )


@dataclass(frozen=True)
class PlaylistInfo:
    """A playlist as listed or described by a platform (no tracks)."""

    id: str
    name: str
    description: str = ""
    image_url: Optional[str] = None
    owner_name: str = "Unknown"
    track_count: int = 0
    link: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "owner_name": self.owner_name,
            "track_count": self.track_count,
            "link": self.link,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PlaylistInfo":
        return PlaylistInfo(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            image_url=_opt_str(data.get("image_url")),
            owner_name=str(data.get("owner_name") or "Unknown"),
            track_count=int(data.get("track_count") or 0),
            link=str(data.get("link") or ""),
        )


@dataclass(frozen=True)
class ImportedPlaylist:
    """A playlist imported from a URL.

    `source` is a PlatformId value, or "url" when the platform was not detected.
    `imported_at` is epoch milliseconds.
    """

    id: str
    name: str
    source: str
    source_url: str
    tracks: Tuple[StreamingTrack, ...] = field(default_factory=tuple)
    image_url: Optional[str] = None
    imported_at: int = 0

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    @staticmethod
    def build_id(source: str, source_id: Optional[str], stamp_ms: int) -> str:
        parts = ["import", str(source)]
        if source_id:
            parts.append(str(source_id))
        parts.append(str(int(stamp_ms)))
        return "_".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "source": self.source,
            "source_url": self.source_url,
            "image_url": self.image_url,
            "tracks": [t.to_dict() for t in self.tracks],
            "track_count": self.track_count,
            "imported_at": self.imported_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ImportedPlaylist":
        raw_tracks: List[Any] = list(data.get("tracks") or [])
        return ImportedPlaylist(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            source=str(data.get("source", URL_SOURCE)),
            source_url=str(data.get("source_url", "")),
            image_url=_opt_str(data.get("image_url")),
            tracks=tuple(StreamingTrack.from_dict(t) for t in raw_tracks if isinstance(t, dict)),
            imported_at=int(data.get("imported_at") or 0),
        )
