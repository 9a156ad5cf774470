#!/usr/bin/env python3
"""Link resolution for platforms without an API client."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from streaming_api import PlatformId, ResolutionNotFound, ResolutionUnreachable  # noqa: E402
from streaming_api.normalizers import spotify_track  # noqa: E402
from streaming_api.resolver import CrossPlatformResolver, ImportDraft, LinkResolution, ResolutionStrategy  # noqa: E402
from tests.fakes import NOW, ODESLI_URL, SPOTIFY_API, connect, make_services, spotify_track_json  # noqa: E402


APPLE_SONG = "https://music.apple.com/us/album/blinding-lights/1499378108?i=1499378615"
YTM_SONG = "https://music.youtube.com/watch?v=4NRXx6U8ABQ"

SONG_ENTITIES = {
    "entityUniqueId": "YOUTUBE_VIDEO::4NRXx6U8ABQ",
    "entitiesByUniqueId": {
        "ITUNES_SONG::1": {"id": "1", "title": "Other", "artistName": "Someone"},
        "YOUTUBE_VIDEO::4NRXx6U8ABQ": {
            "id": "4NRXx6U8ABQ",
            "title": "Blinding Lights",
            "artistName": "The Weeknd",
            "thumbnailUrl": "https://i.ytimg.com/x.jpg",
        },
    },
    "linksByPlatform": {"youtubeMusic": {"url": YTM_SONG}},
}


class _Fixed(ResolutionStrategy):
    def __init__(self, name, draft):
        self.name = name
        self.draft = draft
        self.calls = 0

    def attempt(self, url, platform, resolution):
        self.calls += 1
        return self.draft


class _StaticOdesli:
    def resolve(self, url):
        return LinkResolution()


class TestLinkResolution(unittest.TestCase):
    def test_primary_entity_first(self):
        resolution = LinkResolution.from_response(SONG_ENTITIES)
        self.assertIsNone(resolution.spotify_url)
        self.assertEqual(resolution.primary_entity.title, "Blinding Lights")
        self.assertEqual(len(resolution.entities), 2)

    def test_garbage(self):
        resolution = LinkResolution.from_response({"entitiesByUniqueId": [], "linksByPlatform": None})
        self.assertIsNone(resolution.primary_entity)


class TestStrategyOrder(unittest.TestCase):
    def test_first_non_empty_wins(self):
        track = spotify_track_json("t")

        empty = _Fixed("empty", ImportDraft(source="spotify", source_url="u", name="n"))
        none = _Fixed("none", None)
        hit = _Fixed("hit", ImportDraft(source="spotify", source_url="u", name="n", tracks=(spotify_track(track),)))
        never = _Fixed("never", None)

        draft = CrossPlatformResolver(_StaticOdesli(), [none, empty, hit, never]).resolve("u", PlatformId.UNKNOWN)

        self.assertIs(draft, hit.draft)
        self.assertEqual([s.calls for s in (none, empty, hit, never)], [1, 1, 1, 0])

    def test_exhausted(self):
        with self.assertRaises(ResolutionNotFound) as ctx:
            CrossPlatformResolver(_StaticOdesli(), [_Fixed("none", None)]).resolve("u", PlatformId.APPLE_MUSIC)
        self.assertIn("Could not resolve Apple Music URL", str(ctx.exception))


class TestResolverImports(unittest.TestCase):
    def setUp(self):
        self.h = make_services({"odesli_user_country": "DE"})
        connect(self.h.services, PlatformId.SPOTIFY, expires_at=NOW + 3600)

    def test_apple_link_imports_spotify_equivalent(self):
        self.h.api.add(
            "GET",
            ODESLI_URL,
            {"linksByPlatform": {"spotify": {"url": "https://open.spotify.com/track/0VjIjW4GlUZAMYd2vXMi3b"}}},
        )
        self.h.api.add("GET", f"{SPOTIFY_API}/tracks/0VjIjW4GlUZAMYd2vXMi3b", spotify_track_json("0VjIjW4GlUZAMYd2vXMi3b", "Blinding Lights"))

        playlist = self.h.services.importer.import_from_url(APPLE_SONG)

        self.assertEqual(playlist.source, "spotify")
        self.assertEqual(playlist.name, "Blinding Lights")
        self.assertEqual(playlist.source_url, "https://open.spotify.com/track/0VjIjW4GlUZAMYd2vXMi3b")
        odesli = self.h.api.calls("GET", "/v1-alpha.1/links")[0]
        self.assertEqual(odesli.url.params["url"], APPLE_SONG)
        self.assertEqual(odesli.url.params["userCountry"], "DE")

    def test_text_search_fallback(self):
        self.h.api.add("GET", ODESLI_URL, SONG_ENTITIES)
        self.h.api.add(
            "GET",
            f"{SPOTIFY_API}/search",
            {"tracks": {"items": [spotify_track_json("best", "Blinding Lights"), spotify_track_json("second")]}},
        )

        playlist = self.h.services.importer.import_from_url(YTM_SONG)

        self.assertEqual(playlist.source, "youtube_music")
        self.assertEqual(playlist.source_url, YTM_SONG)
        self.assertEqual([t.id for t in playlist.tracks], ["best"])
        self.assertEqual(playlist.image_url, "https://i.ytimg.com/x.jpg")
        search = self.h.api.calls("GET", "/v1/search")[0]
        self.assertEqual(search.url.params["q"], "Blinding Lights The Weeknd")
        self.assertEqual(search.url.params["limit"], "5")

    def test_unknown_link_uses_url_source(self):
        self.h.api.add("GET", ODESLI_URL, SONG_ENTITIES)
        self.h.api.add("GET", f"{SPOTIFY_API}/search", {"tracks": {"items": [spotify_track_json("best")]}})

        playlist = self.h.services.importer.import_from_url("https://song.link/s/abc")

        self.assertEqual(playlist.source, "url")
        self.assertTrue(playlist.id.startswith("import_url_"))

    def test_not_found(self):
        self.h.api.add("GET", ODESLI_URL, SONG_ENTITIES)
        self.h.api.add("GET", f"{SPOTIFY_API}/search", {"tracks": {"items": []}})

        self.assertIsNone(self.h.services.importer.import_from_url(YTM_SONG))
        self.assertEqual(
            self.h.services.status.error,
            "Could not resolve YouTube Music URL. Try pasting individual song links or search for the track instead.",
        )

    def test_not_found_for_unknown_platform(self):
        self.h.api.add("GET", ODESLI_URL, {})
        self.assertIsNone(self.h.services.importer.import_from_url("https://example.com/some/song"))
        self.assertTrue(self.h.services.status.error.startswith("Could not resolve this URL."))

    def test_service_unreachable(self):
        self.h.api.add("GET", ODESLI_URL, httpx.ConnectError("connection refused"))

        with self.assertRaises(ResolutionUnreachable):
            self.h.services.odesli.resolve(APPLE_SONG)
        self.assertIsNone(self.h.services.importer.import_from_url(APPLE_SONG))
        self.assertEqual(self.h.services.status.error, "Failed to resolve URL. Please check the link and try again.")

    def test_service_error_status(self):
        self.h.api.add("GET", ODESLI_URL, (500, {"statusCode": 500}))
        self.assertIsNone(self.h.services.importer.import_from_url(APPLE_SONG))
        self.assertIn("HTTP 500", self.h.services.status.error)
        self.assertEqual(self.h.api.calls("GET", "/v1/search"), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
