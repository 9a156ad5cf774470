"""Mapping of raw platform JSON onto the shared models.

One function per platform and shape. No network access: every function takes
the decoded JSON object and returns a model (or None when the object is not
usable at all). Missing names default to "Unknown" and missing durations to 0.
"""

from typing import Any, Dict, List, Optional

from .models import PlatformId, PlaylistInfo, StreamingTrack, UserProfile


UNKNOWN = "Unknown"


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None


def _first_image_url(images: Any) -> Optional[str]:
    first = _first(images)
    if isinstance(first, dict):
        return first.get("url") or None
    return None


def _text(value: Any, default: str = UNKNOWN) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _seconds_to_ms(value: Any) -> int:
    try:
        return int(round(float(value or 0) * 1000))
    except (TypeError, ValueError):
        return 0


def join_artist_names(artists: Any) -> str:
    """Comma-joined, de-duplicated artist names; "" when none are usable."""

    if not isinstance(artists, list):
        return ""
    seen = set()
    names: List[str] = []
    for a in artists:
        name = str(a.get("name") or "").strip() if isinstance(a, dict) else ""
        if not name or name.casefold() in seen:
            continue
        seen.add(name.casefold())
        names.append(name)
    return ", ".join(names)


def explicitly_unplayable(platform: PlatformId, raw: Any) -> bool:
    """True when the platform itself flags the track as not playable."""

    raw = _dict(raw)
    if platform == PlatformId.SPOTIFY:
        return raw.get("is_playable") is False
    if platform == PlatformId.DEEZER:
        return raw.get("readable") is False
    if platform == PlatformId.QOBUZ:
        return raw.get("streamable") is False
    return False


# -----------------
# Spotify
# -----------------

def spotify_track(raw: Any) -> Optional[StreamingTrack]:
    raw = _dict(raw)
    # Local files and removed tracks come back without an id.
    if not raw.get("id") or raw.get("is_local"):
        return None

    album = _dict(raw.get("album"))
    return StreamingTrack(
        id=str(raw["id"]),
        name=_text(raw.get("name")),
        artist=join_artist_names(raw.get("artists")) or UNKNOWN,
        album=_text(album.get("name")),
        duration_ms=_int(raw.get("duration_ms")),
        image_url=_first_image_url(album.get("images")),
        playable_uri=str(raw.get("uri") or f"spotify:track:{raw['id']}"),
        preview_url=raw.get("preview_url") or None,
        is_playable=raw.get("is_playable") is not False,
    )


def spotify_playlist(raw: Any) -> Optional[PlaylistInfo]:
    raw = _dict(raw)
    if not raw.get("id"):
        return None

    return PlaylistInfo(
        id=str(raw["id"]),
        name=_text(raw.get("name")),
        description=str(raw.get("description") or ""),
        image_url=_first_image_url(raw.get("images")),
        owner_name=_text(_dict(raw.get("owner")).get("display_name")),
        track_count=_int(_dict(raw.get("tracks")).get("total")),
        link=str(raw.get("uri") or ""),
    )


def spotify_profile(raw: Any) -> Optional[UserProfile]:
    raw = _dict(raw)
    if not raw.get("id"):
        return None

    return UserProfile(
        id=str(raw["id"]),
        display_name=str(raw.get("display_name") or raw["id"]),
        email=raw.get("email") or None,
        image_url=_first_image_url(raw.get("images")),
        tier=raw.get("product") or None,
    )


# -----------------
# Deezer
# -----------------

def deezer_track(raw: Any) -> Optional[StreamingTrack]:
    raw = _dict(raw)
    if raw.get("id") is None:
        return None

    album = _dict(raw.get("album"))
    return StreamingTrack(
        id=str(raw["id"]),
        name=_text(raw.get("title")),
        artist=_text(_dict(raw.get("artist")).get("name")),
        album=_text(album.get("title")),
        # Deezer durations are in seconds.
        duration_ms=_seconds_to_ms(raw.get("duration")),
        image_url=album.get("cover_medium") or album.get("cover") or None,
        playable_uri=f"deezer:track:{raw['id']}",
        preview_url=raw.get("preview") or None,
        is_playable=raw.get("readable") is not False,
    )


def deezer_playlist(raw: Any) -> Optional[PlaylistInfo]:
    raw = _dict(raw)
    if raw.get("id") is None:
        return None

    return PlaylistInfo(
        id=str(raw["id"]),
        name=_text(raw.get("title")),
        description=str(raw.get("description") or ""),
        image_url=raw.get("picture_medium") or raw.get("picture") or None,
        owner_name=_text(_dict(raw.get("creator")).get("name")),
        track_count=_int(raw.get("nb_tracks")),
        link=str(raw.get("link") or ""),
    )


def deezer_profile(raw: Any) -> Optional[UserProfile]:
    raw = _dict(raw)
    if raw.get("id") is None:
        return None

    return UserProfile(
        id=str(raw["id"]),
        display_name=str(raw.get("name") or raw.get("firstname") or "Deezer User"),
        email=raw.get("email") or None,
        image_url=raw.get("picture_medium") or raw.get("picture") or None,
        tier=None,
    )


# -----------------
# Qobuz
# -----------------

def qobuz_track(raw: Any) -> Optional[StreamingTrack]:
    raw = _dict(raw)
    if raw.get("id") is None:
        return None

    album = _dict(raw.get("album"))
    image = _dict(album.get("image"))
    return StreamingTrack(
        id=str(raw["id"]),
        name=_text(raw.get("title") or _dict(raw.get("work")).get("title")),
        artist=_text(_dict(raw.get("performer")).get("name") or _dict(raw.get("composer")).get("name")),
        album=_text(album.get("title")),
        # Qobuz durations are in seconds.
        duration_ms=_seconds_to_ms(raw.get("duration")),
        image_url=image.get("large") or image.get("small") or None,
        playable_uri=f"qobuz:track:{raw['id']}",
        preview_url=raw.get("sample_url") or None,
        is_playable=raw.get("streamable") is True,
    )


def qobuz_playlist(raw: Any) -> Optional[PlaylistInfo]:
    raw = _dict(raw)
    if raw.get("id") is None:
        return None

    return PlaylistInfo(
        id=str(raw["id"]),
        name=_text(raw.get("name")),
        description=str(raw.get("description") or ""),
        image_url=_first(raw.get("images300")) or _first(raw.get("image_rectangle")) or None,
        owner_name=_text(_dict(raw.get("owner")).get("name")),
        track_count=_int(raw.get("tracks_count")),
        link=f"https://play.qobuz.com/playlist/{raw['id']}",
    )


def qobuz_profile(raw: Any, *, email: str = "") -> UserProfile:
    """Profile from a (possibly partial) Qobuz `user` object.

    The display name falls back to the login name, then to the email used
    to log in.
    """

    raw = _dict(raw)
    credential = _dict(raw.get("credential"))
    subscription = _dict(raw.get("subscription"))
    return UserProfile(
        id=str(raw.get("id") or ""),
        display_name=str(raw.get("display_name") or raw.get("login") or email),
        email=raw.get("email") or email or None,
        image_url=raw.get("avatar") or None,
        tier=credential.get("label") or subscription.get("offer") or "Free",
    )
