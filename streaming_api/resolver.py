"""Cross-platform resolution for links the app cannot stream directly.

A pasted YouTube Music / Apple Music / unknown link is sent to the Odesli
(song.link) service. The answer is then handed to an ordered list of
strategies; the first one that yields tracks wins:

1. SpotifyLinkStrategy: the service knows the Spotify equivalent, import it.
2. TextSearchStrategy: search Spotify for "{title} {artist}" and keep the
   best match as a one-track playlist.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from .client import SpotifyClient
from .errors import ResolutionNotFound, ResolutionUnreachable
from .http import body_excerpt, build_http_client
from .models import URL_SOURCE, PlatformId, StreamingTrack
from .platforms import DISPLAY_NAMES


logger = logging.getLogger(__name__)

DEFAULT_ODESLI_API_URL = "https://api.song.link/v1-alpha.1/links"
DEFAULT_RESOLVER_TIMEOUT = 20.0


@dataclass(frozen=True)
class ImportDraft:
    """Everything an imported playlist needs except its id and timestamp."""

    source: str
    source_url: str
    name: str
    tracks: Tuple[StreamingTrack, ...] = field(default_factory=tuple)
    source_id: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class OdesliEntity:
    id: str
    title: Optional[str] = None
    artist_name: Optional[str] = None
    thumbnail_url: Optional[str] = None


@dataclass(frozen=True)
class LinkResolution:
    """The parts of an Odesli response the strategies use."""

    spotify_url: Optional[str] = None
    entities: Tuple[OdesliEntity, ...] = field(default_factory=tuple)

    @property
    def primary_entity(self) -> Optional[OdesliEntity]:
        return self.entities[0] if self.entities else None

    @staticmethod
    def from_response(data: Dict[str, Any]) -> "LinkResolution":
        links = data.get("linksByPlatform") or {}
        spotify = links.get("spotify") if isinstance(links, dict) else None
        spotify_url = spotify.get("url") if isinstance(spotify, dict) else None

        raw_entities = data.get("entitiesByUniqueId") or {}
        if not isinstance(raw_entities, dict):
            raw_entities = {}

        # The entity the pasted link points at goes first.
        keys = list(raw_entities.keys())
        primary_key = data.get("entityUniqueId")
        if primary_key in raw_entities:
            keys.remove(primary_key)
            keys.insert(0, primary_key)

        entities = []
        for key in keys:
            raw = raw_entities.get(key)
            if not isinstance(raw, dict):
                continue
            entities.append(
                OdesliEntity(
                    id=str(raw.get("id") or key),
                    title=raw.get("title") or None,
                    artist_name=raw.get("artistName") or None,
                    thumbnail_url=raw.get("thumbnailUrl") or None,
                )
            )
        return LinkResolution(spotify_url=spotify_url or None, entities=tuple(entities))


class OdesliClient:
    """Client for the public song.link resolution API."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, *, http: Optional[httpx.Client] = None):
        self.config = config or {}
        self.http = http or build_http_client(self.config)
        self.api_url = str(self.config.get("odesli_api_url") or DEFAULT_ODESLI_API_URL)
        self.timeout = float(self.config.get("resolver_timeout", DEFAULT_RESOLVER_TIMEOUT))

    def resolve(self, url: str) -> LinkResolution:
        params = {"url": url}
        country = str(self.config.get("odesli_user_country") or "").strip()
        if country:
            params["userCountry"] = country

        try:
            resp = self.http.get(self.api_url, params=params, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error("[Resolver] Link service call failed: %s", e)
            raise ResolutionUnreachable("Failed to resolve URL. Please check the link and try again.") from e

        if resp.status_code >= 400:
            logger.warning("[Resolver] Link service returned HTTP %s: %s", resp.status_code, body_excerpt(resp))
            raise ResolutionUnreachable(
                f"Failed to resolve URL (link service returned HTTP {resp.status_code}). "
                "Please check the link and try again."
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ResolutionUnreachable("Failed to resolve URL: the link service sent an unreadable answer.") from e

        return LinkResolution.from_response(data if isinstance(data, dict) else {})


class ResolutionStrategy:
    """One way of turning a LinkResolution into an import."""

    name = "strategy"

    def attempt(self, url: str, platform: PlatformId, resolution: LinkResolution) -> Optional[ImportDraft]:
        raise NotImplementedError


class SpotifyLinkStrategy(ResolutionStrategy):
    name = "spotify-link"

    def __init__(self, import_spotify: Callable[[str], ImportDraft]):
        self.import_spotify = import_spotify

    def attempt(self, url: str, platform: PlatformId, resolution: LinkResolution) -> Optional[ImportDraft]:
        if not resolution.spotify_url:
            return None
        logger.info("[Resolver] Found Spotify equivalent: %s", resolution.spotify_url)
        # One level of indirection only: the Spotify link is imported directly.
        return self.import_spotify(resolution.spotify_url)


class TextSearchStrategy(ResolutionStrategy):
    name = "text-search"

    def __init__(self, spotify: SpotifyClient, *, limit: int = 5):
        self.spotify = spotify
        self.limit = int(limit)

    def attempt(self, url: str, platform: PlatformId, resolution: LinkResolution) -> Optional[ImportDraft]:
        entity = resolution.primary_entity
        if entity is None or not entity.title or not entity.artist_name:
            return None

        results = self.spotify.search_tracks(f"{entity.title} {entity.artist_name}", self.limit)
        if not results:
            logger.info("[Resolver] No Spotify match for %r by %r", entity.title, entity.artist_name)
            return None

        return ImportDraft(
            source=URL_SOURCE if platform == PlatformId.UNKNOWN else platform.value,
            source_url=url,
            name=entity.title,
            tracks=(results[0],),
            image_url=entity.thumbnail_url,
        )


class CrossPlatformResolver:
    def __init__(self, odesli: OdesliClient, strategies: Sequence[ResolutionStrategy]):
        self.odesli = odesli
        self.strategies: List[ResolutionStrategy] = list(strategies)

    def resolve(self, url: str, platform: PlatformId) -> ImportDraft:
        """Map `url` onto Spotify.

        Raises ResolutionUnreachable when the link service fails and
        ResolutionNotFound when no strategy produced any track.
        """

        resolution = self.odesli.resolve(url)

        for strategy in self.strategies:
            draft = strategy.attempt(url, platform, resolution)
            if draft is not None and draft.tracks:
                logger.info("[Resolver] Resolved via %s (%d track(s))", strategy.name, len(draft.tracks))
                return draft

        label = DISPLAY_NAMES.get(platform) if platform in (PlatformId.YOUTUBE_MUSIC, PlatformId.APPLE_MUSIC) else "this"
        raise ResolutionNotFound(
            f"Could not resolve {label} URL. Try pasting individual song links or search for the track instead."
        )
