"""Offline stand-ins shared by the test modules.

FakeApi routes httpx requests by method + scheme/host/path and records every
request it sees; responses are queued per route and the last one repeats.
"""

from __future__ import annotations

import json
import sys
import types
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from streaming_api import AuthState, CredentialStore, PlatformId, PlaylistStore, UserProfile, build_services  # noqa: E402
from streaming_api.services import StreamingServices  # noqa: E402


BASE_CONFIG: Dict[str, Any] = {
    "spotify_client_id": "test-client-id",
    "spotify_redirect_uri": "tunewell://spotify-callback",
    "spotify_auto_refresh": True,
    "deezer_app_id": "123456",
    "deezer_app_secret": "deezer-secret",
    "deezer_redirect_uri": "tunewell://deezer-callback",
    "qobuz_app_id": "qobuz-app",
    "http_timeout": 5,
    "resolver_timeout": 5,
}

NOW = 1_700_000_000.0

SPOTIFY_API = "https://api.spotify.com/v1"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
DEEZER_API = "https://api.deezer.com"
DEEZER_TOKEN_URL = "https://connect.deezer.com/oauth/access_token.php"
QOBUZ_API = "https://www.qobuz.com/api.json/0.2"
ODESLI_URL = "https://api.song.link/v1-alpha.1/links"


Responder = Any  # dict | list | (status, body) | httpx.Response | Exception | callable(request)


class FakeApi:
    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Responder]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, *responses: Responder) -> "FakeApi":
        self.routes.setdefault((method.upper(), url), []).extend(responses)
        return self

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(404, json={"error": f"no fake route for {key}"})

        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(request)
        if isinstance(responder, httpx.Response):
            return responder
        if isinstance(responder, tuple):
            status, body = responder
            if body is None:
                return httpx.Response(status)
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)
        return httpx.Response(200, json=responder)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self._handler))

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        out = []
        for r in self.requests:
            if method and r.method != method.upper():
                continue
            if path and r.url.path != path:
                continue
            out.append(r)
        return out


def form_of(request: httpx.Request) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}


def json_of(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8")) if request.content else None


class Clock:
    def __init__(self, now: float = NOW):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now


@dataclass
class Harness:
    api: FakeApi
    services: StreamingServices
    clock: Clock
    opened: List[str]


def make_services(config: Optional[Dict[str, Any]] = None, *, api: Optional[FakeApi] = None) -> Harness:
    api = api or FakeApi()
    clock = Clock()
    opened: List[str] = []

    def opener(url: str) -> bool:
        opened.append(url)
        return True

    services = build_services(
        {**BASE_CONFIG, **(config or {})},
        credentials=CredentialStore(None),
        playlists=PlaylistStore(None),
        http=api.client(),
        opener=opener,
        clock=clock,
    )
    return Harness(api=api, services=services, clock=clock, opened=opened)


def connect(services: StreamingServices, platform: PlatformId, *, token: str = "token", expires_at: Optional[float] = None,
            refresh_token: Optional[str] = None, profile: Optional[UserProfile] = None) -> None:
    services.credentials.set(
        platform,
        AuthState(access_token=token, refresh_token=refresh_token, expires_at=expires_at, user_profile=profile),
    )


# -------------------------
# Sample payloads
# -------------------------

def spotify_track_json(track_id: str, name: str = "Song", *, playable: Optional[bool] = None) -> Dict[str, Any]:
    raw: Dict[str, Any] = {
        "id": track_id,
        "uri": f"spotify:track:{track_id}",
        "name": name,
        "artists": [{"name": "Artist"}],
        "album": {"name": "Album", "images": [{"url": "https://img/1.jpg"}]},
        "duration_ms": 180000,
    }
    if playable is not None:
        raw["is_playable"] = playable
    return raw


def deezer_track_json(track_id: int, title: str = "Deezer Song", *, readable: bool = True) -> Dict[str, Any]:
    return {
        "id": track_id,
        "title": title,
        "duration": 200,
        "readable": readable,
        "preview": f"https://cdn/preview/{track_id}.mp3",
        "artist": {"name": "Deezer Artist"},
        "album": {"title": "Deezer Album", "cover_medium": "https://cdn/cover.jpg"},
    }


def qobuz_track_json(track_id: int, title: str = "Qobuz Song", *, streamable: bool = True) -> Dict[str, Any]:
    return {
        "id": track_id,
        "title": title,
        "duration": 240,
        "streamable": streamable,
        "performer": {"name": "Qobuz Artist"},
        "album": {"title": "Qobuz Album", "image": {"large": "https://qobuz/large.jpg"}},
    }


# -------------------------
# Simple questionary mocks
# -------------------------

@dataclass
class _Askable:
    """Mimic questionary prompt objects that return a value from .ask()."""

    value: Any

    def ask(self):
        return self.value


class QuestionaryMock:
    """A minimal questionary stub that returns queued answers and captures args."""

    def __init__(self):
        # Preserve the real Choice constructor so production code can build choices.
        import questionary as _real_questionary

        self.Choice = _real_questionary.Choice

        self._queue: list[Any] = []
        self.messages: list[str] = []
        self.last_select_choices = None
        self.last_checkbox_choices = None

    def queue(self, *answers: Any) -> None:
        self._queue.extend(list(answers))

    def _pop(self, message: str) -> _Askable:
        self.messages.append(message)
        if not self._queue:
            raise AssertionError(f"QuestionaryMock queue exhausted at: {message}")
        return _Askable(self._queue.pop(0))

    def select(self, message: str, choices: list[Any], **kwargs: Any):
        self.last_select_choices = choices
        return self._pop(message)

    def checkbox(self, message: str, choices: list[Any], **kwargs: Any):
        self.last_checkbox_choices = choices
        return self._pop(message)

    def confirm(self, message: str, default: bool = True, **kwargs: Any):
        return self._pop(message)

    def text(self, message: str, default: str = "", **kwargs: Any):
        return self._pop(message)

    def password(self, message: str, **kwargs: Any):
        return self._pop(message)


class PatchModuleAttr:
    """Context manager to temporarily patch module attributes."""

    def __init__(self, module: types.ModuleType, attr: str, value: Any):
        self.module = module
        self.attr = attr
        self.value = value
        self._old = None

    def __enter__(self):
        self._old = getattr(self.module, self.attr)
        setattr(self.module, self.attr, self.value)

    def __exit__(self, exc_type, exc, tb):
        setattr(self.module, self.attr, self._old)


def choice_value(choice: Any) -> Any:
    return getattr(choice, "value", choice)
