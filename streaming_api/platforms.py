"""URL classification for pasted streaming links.

Everything here is pure: no network access, no state, no exceptions for
malformed input.
"""

import re
import urllib.parse
from typing import Any, Optional, Tuple

from .models import PlatformId


# Checked in order; the first platform with a matching marker wins.
PLATFORM_MARKERS: Tuple[Tuple[PlatformId, Tuple[str, ...]], ...] = (
    (PlatformId.SPOTIFY, ("open.spotify.com", "spotify:")),
    (PlatformId.DEEZER, ("deezer.com", "deezer.page.link")),
    (PlatformId.QOBUZ, ("qobuz.com", "play.qobuz.com", "open.qobuz.com")),
    (PlatformId.YOUTUBE_MUSIC, ("music.youtube.com", "youtube.com/playlist")),
    (PlatformId.APPLE_MUSIC, ("music.apple.com", "itunes.apple.com")),
)

# Link-resolution service domains (pasted song.link pages are importable too).
RESOLVER_MARKERS: Tuple[str, ...] = ("song.link", "album.link", "odesli.co")

DISPLAY_NAMES = {
    PlatformId.SPOTIFY: "Spotify",
    PlatformId.DEEZER: "Deezer",
    PlatformId.QOBUZ: "Qobuz",
    PlatformId.YOUTUBE_MUSIC: "YouTube Music",
    PlatformId.APPLE_MUSIC: "Apple Music",
    PlatformId.UNKNOWN: "URL",
}

_SPOTIFY_PLAYLIST_RE = re.compile(r"/playlist/([a-zA-Z0-9]+)")
_NUMERIC_PLAYLIST_RE = re.compile(r"/playlist/(\d+)")
_APPLE_PLAYLIST_RE = re.compile(r"/playlist/(?:[^/]+/)?(pl\.[\w\-]+)")
_SPOTIFY_ENTITY_PATH_RE = re.compile(r"/(playlist|album|track)/([a-zA-Z0-9]+)")
_SPOTIFY_ENTITY_URI_RE = re.compile(r"^spotify:(?:user:[^:]+:)?(playlist|album|track):([a-zA-Z0-9]+)$")


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def detect_platform(url: Any) -> PlatformId:
    """Classify a pasted URL. Total: unmatched input yields PlatformId.UNKNOWN."""

    lower = _as_text(url).strip().lower()
    if not lower:
        return PlatformId.UNKNOWN

    for platform, markers in PLATFORM_MARKERS:
        if any(m in lower for m in markers):
            return platform
    return PlatformId.UNKNOWN


def extract_playlist_id(url: Any, platform: PlatformId) -> Optional[str]:
    """Return the platform-native playlist id embedded in `url`, or None."""

    text = _as_text(url).strip()
    if not text:
        return None

    try:
        platform = PlatformId(platform)
    except ValueError:
        return None

    if platform == PlatformId.SPOTIFY:
        entity = parse_spotify_entity(text)
        if entity and entity[0] == "playlist":
            return entity[1]
        return None

    try:
        parsed = urllib.parse.urlparse(text)
    except ValueError:
        return None

    if platform in (PlatformId.DEEZER, PlatformId.QOBUZ):
        match = _NUMERIC_PLAYLIST_RE.search(parsed.path)
        return match.group(1) if match else None

    if platform == PlatformId.YOUTUBE_MUSIC:
        values = urllib.parse.parse_qs(parsed.query).get("list") or []
        return values[0] if values and values[0] else None

    if platform == PlatformId.APPLE_MUSIC:
        match = _APPLE_PLAYLIST_RE.search(parsed.path)
        return match.group(1) if match else None

    return None


def parse_spotify_entity(url: Any) -> Optional[Tuple[str, str]]:
    """Return ("playlist" | "album" | "track", id) for a Spotify link or URI."""

    text = _as_text(url).strip()
    if not text:
        return None

    uri_match = _SPOTIFY_ENTITY_URI_RE.match(text)
    if uri_match:
        return uri_match.group(1), uri_match.group(2)

    try:
        parsed = urllib.parse.urlparse(text)
    except ValueError:
        return None

    if "spotify.com" not in (parsed.netloc or "").lower():
        return None

    match = _SPOTIFY_ENTITY_PATH_RE.search(parsed.path)
    return (match.group(1), match.group(2)) if match else None


def is_streaming_url(text: Any) -> bool:
    """Cheap check used by the front-end to offer pasted text for import."""

    lower = _as_text(text).lower()
    if not lower:
        return False
    if any(m in lower for _, markers in PLATFORM_MARKERS for m in markers):
        return True
    return any(m in lower for m in RESOLVER_MARKERS)


def platform_display_name(url: Any) -> str:
    return DISPLAY_NAMES[detect_platform(url)]
