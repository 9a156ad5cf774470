#!/usr/bin/env python3
"""Menu wiring with a queued questionary stub and a fake streaming backend.

No prompts are shown and no network calls are made.
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import config as config_module  # noqa: E402
from menus import BACK  # noqa: E402
import menus.config_menu as config_menu_module  # noqa: E402
import menus.import_menu as import_menu_module  # noqa: E402
import menus.main_menu as main_menu_module  # noqa: E402
import menus.playback_menu as playback_menu_module  # noqa: E402
import menus.streaming_menu as streaming_menu_module  # noqa: E402
from streaming_api import PlatformId, PlaylistInfo  # noqa: E402
from streaming_api.normalizers import spotify_track  # noqa: E402
from tests.fakes import (  # noqa: E402
    NOW,
    QOBUZ_API,
    SPOTIFY_API,
    SPOTIFY_TOKEN_URL,
    PatchModuleAttr,
    QuestionaryMock,
    choice_value,
    connect,
    make_services,
    spotify_track_json,
)


class _MenuTest(unittest.TestCase):
    module = None

    def setUp(self):
        self.q = QuestionaryMock()
        self._patch = PatchModuleAttr(self.module, "questionary", self.q)
        self._patch.__enter__()
        self.h = make_services()
        self.services = self.h.services

    def tearDown(self):
        self._patch.__exit__(None, None, None)


class TestMainMenu(_MenuTest):
    module = main_menu_module

    def test_returns_selection(self):
        self.q.queue("Import Menu")
        self.assertEqual(main_menu_module.main_menu(), "Import Menu")
        self.assertIn("Exit", self.q.last_select_choices)


class TestStreamingMenu(_MenuTest):
    module = streaming_menu_module

    def test_connect_spotify_with_pasted_redirect(self):
        self.h.api.add("POST", SPOTIFY_TOKEN_URL, {"access_token": "acc", "refresh_token": "ref", "expires_in": 3600})
        self.h.api.add("GET", f"{SPOTIFY_API}/me", {"id": "u1", "display_name": "Ann"})
        self.q.queue(False, "tunewell://spotify-callback?code=xyz")

        streaming_menu_module.connect_oauth(self.services, PlatformId.SPOTIFY)

        self.assertTrue(self.services.spotify_auth.connected)
        self.assertEqual(self.h.opened, [])
        self.assertIn("Ann", streaming_menu_module._status_line(self.services, PlatformId.SPOTIFY))

    def test_connect_opens_browser_when_confirmed(self):
        self.q.queue(True, "")

        streaming_menu_module.connect_oauth(self.services, PlatformId.DEEZER)

        self.assertEqual(len(self.h.opened), 1)
        self.assertTrue(self.h.opened[0].startswith("https://connect.deezer.com/oauth/auth.php"))
        self.assertFalse(self.services.deezer_auth.connected)

    def test_connect_without_credentials_asks_nothing(self):
        self.h = make_services({"spotify_client_id": ""})
        streaming_menu_module.connect_oauth(self.h.services, PlatformId.SPOTIFY)
        self.assertEqual(self.q.messages, [])

    def test_qobuz_login(self):
        self.h.api.add("POST", f"{QOBUZ_API}/user/login", {"user_auth_token": "qt", "user": {"id": 1, "display_name": "Q"}})
        self.q.queue("q@x.io", "pw")

        streaming_menu_module.connect_qobuz(self.services)

        self.assertTrue(self.services.qobuz_auth.connected)
        self.assertEqual(self.q.messages, ["Qobuz email:", "Qobuz password:"])

    def test_browse_and_import(self):
        connect(self.services, PlatformId.SPOTIFY, expires_at=NOW + 3600)
        self.h.api.add(
            "GET",
            f"{SPOTIFY_API}/me/playlists",
            {"items": [{"id": "p1", "name": "Road Trip", "uri": "spotify:playlist:p1", "tracks": {"total": 1}}], "total": 1},
        )
        self.h.api.add("GET", f"{SPOTIFY_API}/playlists/p1", {"id": "p1", "name": "Road Trip"})
        self.h.api.add("GET", f"{SPOTIFY_API}/playlists/p1/tracks", {"items": [{"track": spotify_track_json("a")}], "total": 1})
        self.q.queue(PlatformId.SPOTIFY, PlaylistInfo(id="p1", name="Road Trip", link="spotify:playlist:p1"))

        streaming_menu_module.browse_playlists(self.services)

        self.assertEqual(choice_value(self.q.last_select_choices[-1]), BACK)
        self.assertEqual(self.services.credentials.get_playlists(PlatformId.SPOTIFY)[0].name, "Road Trip")
        imported = self.services.importer.list_playlists()
        self.assertEqual([p.name for p in imported], ["Road Trip"])

    def test_disconnect(self):
        connect(self.services, PlatformId.DEEZER)
        self.q.queue(PlatformId.DEEZER, True)

        streaming_menu_module.disconnect_platform(self.services)

        self.assertFalse(self.services.deezer_auth.connected)

    def test_disconnect_back(self):
        connect(self.services, PlatformId.DEEZER)
        self.q.queue(BACK)

        streaming_menu_module.disconnect_platform(self.services)

        self.assertTrue(self.services.deezer_auth.connected)
        self.assertEqual(choice_value(self.q.last_select_choices[-1]), BACK)
        self.assertEqual(len(self.q.messages), 1)

    def test_browse_back_from_platform_pick(self):
        connect(self.services, PlatformId.SPOTIFY, expires_at=NOW + 3600)
        self.q.queue(BACK)

        streaming_menu_module.browse_playlists(self.services)

        self.assertEqual(self.h.api.requests, [])
        self.assertEqual(len(self.q.messages), 1)

    def test_browse_back_from_playlist_pick(self):
        connect(self.services, PlatformId.SPOTIFY, expires_at=NOW + 3600)
        self.h.api.add(
            "GET",
            f"{SPOTIFY_API}/me/playlists",
            {"items": [{"id": "p1", "name": "Road Trip", "uri": "spotify:playlist:p1"}], "total": 1},
        )
        self.q.queue(PlatformId.SPOTIFY, BACK)

        streaming_menu_module.browse_playlists(self.services)

        self.assertEqual(len(self.h.api.requests), 1)
        self.assertEqual(self.services.importer.list_playlists(), [])

    def test_menu_back(self):
        self.q.queue("Back")
        streaming_menu_module.streaming_menu(self.services)
        self.assertEqual(len(self.q.messages), 1)


class TestImportMenu(_MenuTest):
    module = import_menu_module

    def setUp(self):
        super().setUp()
        connect(self.services, PlatformId.SPOTIFY, expires_at=NOW + 3600)

    def test_import_from_link(self):
        self.h.api.add("GET", f"{SPOTIFY_API}/tracks/t1", spotify_track_json("t1", "Lonely"))
        self.q.queue("https://open.spotify.com/track/t1")

        import_menu_module.import_from_link(self.services)

        self.assertEqual([p.name for p in self.services.importer.list_playlists()], ["Lonely"])

    def test_non_streaming_text_needs_confirmation(self):
        self.q.queue("hello there", False)
        import_menu_module.import_from_link(self.services)
        self.assertEqual(self.h.api.requests, [])
        self.assertEqual(self.services.importer.list_playlists(), [])

    def test_search_and_pick(self):
        self.h.api.add("GET", f"{SPOTIFY_API}/search", {"tracks": {"items": [spotify_track_json("a"), spotify_track_json("b")]}})
        picked = [spotify_track(spotify_track_json("b"))]
        self.q.queue("lofi", picked, "Evening")

        import_menu_module.search_spotify(self.services)

        checked = [c.checked for c in self.q.last_checkbox_choices]
        self.assertEqual(checked, [True, False])
        saved = self.services.importer.list_playlists()
        self.assertEqual((saved[0].name, [t.id for t in saved[0].tracks]), ("Evening", ["b"]))

    def test_rename_and_remove(self):
        saved = self.services.importer.import_tracks("Mix", [spotify_track(spotify_track_json("a"))], query="mix")

        self.q.queue("Rename", "Renamed")
        import_menu_module.manage_playlist(self.services, saved)
        self.assertEqual(self.services.playlists.get(saved.id).name, "Renamed")

        self.q.queue("Remove", True)
        import_menu_module.manage_playlist(self.services, saved)
        self.assertEqual(self.services.importer.list_playlists(), [])

    def test_playlist_list_back(self):
        self.services.importer.import_tracks("Mix", [spotify_track(spotify_track_json("a"))], query="mix")
        self.q.queue(BACK)

        import_menu_module.imported_playlists_menu(self.services)

        self.assertEqual(choice_value(self.q.last_select_choices[-1]), BACK)
        self.assertEqual(len(self.q.messages), 1)
        self.assertEqual([p.name for p in self.services.importer.list_playlists()], ["Mix"])

    def test_play_on_spotify(self):
        self.h.api.add("PUT", f"{SPOTIFY_API}/me/player/play", (204, None))
        saved = self.services.importer.import_tracks("Mix", [spotify_track(spotify_track_json("a"))], query="mix")
        self.q.queue("Play on Spotify")

        import_menu_module.manage_playlist(self.services, saved)

        self.assertEqual(json.loads(self.h.api.requests[0].content), {"uris": ["spotify:track:a"]})


class TestPlaybackMenu(_MenuTest):
    module = playback_menu_module

    def test_requires_spotify(self):
        playback_menu_module.playback_menu(self.services)
        self.assertEqual(self.q.messages, [])

    def test_pause_then_back(self):
        connect(self.services, PlatformId.SPOTIFY, expires_at=NOW + 3600)
        self.h.api.add("GET", f"{SPOTIFY_API}/me/player", (204, None))
        self.h.api.add("PUT", f"{SPOTIFY_API}/me/player/pause", (204, None))
        self.q.queue("Pause", "Back")

        playback_menu_module.playback_menu(self.services)

        self.assertEqual(len(self.h.api.calls("PUT", "/v1/me/player/pause")), 1)

    def test_seek(self):
        connect(self.services, PlatformId.SPOTIFY, expires_at=NOW + 3600)
        self.h.api.add("PUT", f"{SPOTIFY_API}/me/player/seek", (204, None))
        self.q.queue("90")

        self.assertTrue(playback_menu_module._seek(self.services))
        self.assertEqual(self.h.api.requests[0].url.params["position_ms"], "90000")


class TestConfigMenu(_MenuTest):
    module = config_menu_module

    def setUp(self):
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "config.json")
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({}, f)
        self._path_patch = PatchModuleAttr(config_module, "CONFIG_PATH", self.path)
        self._path_patch.__enter__()

    def tearDown(self):
        self._path_patch.__exit__(None, None, None)
        self._tmp.cleanup()
        super().tearDown()

    def test_update_numeric_setting(self):
        self.q.queue("search_limit", "30")

        updated = config_menu_module.update_setting_menu({"search_limit": 20})

        self.assertEqual(updated["search_limit"], 30)
        with open(self.path, "r", encoding="utf-8") as f:
            self.assertEqual(json.load(f)["search_limit"], 30)

    def test_update_list_setting(self):
        self.q.queue("deezer_perms", "basic_access, email")
        updated = config_menu_module.update_setting_menu({})
        self.assertEqual(updated["deezer_perms"], ["basic_access", "email"])

    def test_secret_uses_password_prompt(self):
        self.q.queue("deezer_app_secret", "s3cr3t")
        updated = config_menu_module.update_setting_menu({})
        self.assertEqual(updated["deezer_app_secret"], "s3cr3t")
        self.assertEqual(self.q.messages[-1], "Enter new value for deezer_app_secret:")
        self.assertEqual(config_menu_module._display_value("deezer_app_secret", "s3cr3t"), "SET")

    def test_invalid_number(self):
        self.q.queue("search_limit", "lots")
        self.assertEqual(config_menu_module.update_setting_menu({"search_limit": 20}), {"search_limit": 20})


if __name__ == "__main__":
    unittest.main(verbosity=2)
