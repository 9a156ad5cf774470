import base64
import hashlib
import logging
import secrets
import time
import urllib.parse
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from .credential_store import CredentialStore
from .errors import AuthExpired, AuthFailed, NotAuthenticated, StreamingError
from .http import body_excerpt, build_http_client, decode_json
from .models import AuthState, PlatformId, UserProfile
from .normalizers import spotify_profile
from .status import SessionStatus

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

# RFC 7636 unreserved characters.
PKCE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
PKCE_MIN_LENGTH = 43
PKCE_MAX_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64

DEFAULT_SPOTIFY_SCOPES = [
    "user-read-private",
    "user-read-email",
    "playlist-read-private",
    "playlist-read-collaborative",
    "user-library-read",
    "streaming",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
]


def _base64url_no_pad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def generate_code_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    length = max(PKCE_MIN_LENGTH, min(PKCE_MAX_LENGTH, int(length)))
    return "".join(secrets.choice(PKCE_ALPHABET) for _ in range(length))


def code_challenge_from_verifier(verifier: str) -> str:
    """Compute PKCE S256 code_challenge from code_verifier."""

    digest = hashlib.sha256((verifier or "").encode("utf-8")).digest()
    return _base64url_no_pad(digest)


def parse_callback_params(redirect_url: str) -> Dict[str, str]:
    """Return the first value of every query parameter of a redirect URL."""

    try:
        parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    except ValueError:
        return {}
    qs = urllib.parse.parse_qs(parsed.query)
    return {k: str(v[0]) for k, v in qs.items() if v}


def check_platform_credentials(config: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Per-platform {"ok", "message"} status for the configured app credentials."""

    config = config or {}

    def _set(key: str) -> bool:
        return bool(str(config.get(key, "") or "").strip())

    out: Dict[str, Dict[str, Any]] = {}

    missing = [k for k in ("spotify_client_id", "spotify_redirect_uri") if not _set(k)]
    out[PlatformId.SPOTIFY.value] = {
        "ok": not missing,
        "missing": missing,
        "message": "Spotify credentials look OK." if not missing else f"Missing {', '.join(missing)} in config.json.",
    }

    missing = [k for k in ("deezer_app_id", "deezer_app_secret", "deezer_redirect_uri") if not _set(k)]
    out[PlatformId.DEEZER.value] = {
        "ok": not missing,
        "missing": missing,
        "message": "Deezer credentials look OK." if not missing else f"Missing {', '.join(missing)} in config.json.",
    }

    missing = [k for k in ("qobuz_app_id",) if not _set(k)]
    out[PlatformId.QOBUZ.value] = {
        "ok": not missing,
        "missing": missing,
        "message": "Qobuz app id looks OK." if not missing else "Missing qobuz_app_id in config.json.",
    }
    return out


def spotify_app_setup_instructions(*, redirect_uri: str = "tunewell://spotify-callback") -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or "tunewell://spotify-callback"
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the Client ID into config.json as spotify_client_id\n\n"
        "Notes:\n"
        "- Spotify login uses Authorization Code + PKCE (no client secret required).\n"
        "- Redirect URI must match *exactly* what you configure in the Spotify dashboard.\n"
    )


class AuthStatus(str, Enum):
    DISCONNECTED = "disconnected"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"


@dataclass(frozen=True)
class PKCEPair:
    code_verifier: str
    code_challenge: str


class AuthSession:
    """Login handshake and token lifecycle for one platform.

    Auth state itself lives in the CredentialStore; the session only keeps
    what a single login attempt needs.
    """

    platform: PlatformId = PlatformId.UNKNOWN
    display_name: str = "Unknown"

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        store: CredentialStore,
        status: Optional[SessionStatus] = None,
        http: Optional[httpx.Client] = None,
        opener: Optional[Callable[[str], Any]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or {}
        self.store = store
        self.status = status or SessionStatus()
        self.http = http or build_http_client(self.config)
        self.opener = opener or webbrowser.open
        self.clock = clock
        self._authenticating = False

    @property
    def state(self) -> AuthStatus:
        if self._authenticating:
            return AuthStatus.AUTHENTICATING
        if self.store.get(self.platform).connected:
            return AuthStatus.CONNECTED
        return AuthStatus.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self.store.get(self.platform).connected

    def auth_state(self) -> AuthState:
        return self.store.get(self.platform)

    def user_profile(self) -> Optional[UserProfile]:
        return self.store.get(self.platform).user_profile

    def disconnect(self) -> None:
        """Forget tokens, profile and cached playlists. Safe to call repeatedly."""

        self._authenticating = False
        self.store.clear(self.platform)
        logger.info("[%s] Disconnected", self.display_name)

    def invalidate(self, reason: str) -> None:
        """Drop the session after the platform rejected it."""

        logger.warning("[%s] Session invalidated: %s", self.display_name, reason)
        self.disconnect()

    def fetch_user_profile(self) -> Optional[UserProfile]:
        """Fetch and store the user's profile; logs and returns None on failure."""

        try:
            profile = self._request_profile()
        except (StreamingError, httpx.HTTPError) as e:
            logger.error("[%s] Failed to fetch user profile: %s", self.display_name, e)
            return None

        if profile is None:
            logger.error("[%s] Profile response had no user id", self.display_name)
            return None

        self.store.update(self.platform, lambda s: s.with_profile(profile))
        return profile

    def is_auth_callback(self, url: str) -> bool:
        return False

    def handle_auth_callback(self, url: str) -> bool:
        raise NotImplementedError

    def _request_profile(self) -> Optional[UserProfile]:
        raise NotImplementedError

    def _fail_login(self, message: str) -> bool:
        """Record a failed handshake: back to Disconnected, message into the error slot."""

        self._authenticating = False
        self.store.clear(self.platform)
        logger.error("[%s] %s", self.display_name, message)
        self.status.set_error(message)
        return False


class SpotifyPKCEAuth(AuthSession):
    """Spotify OAuth (Authorization Code + PKCE)."""

    platform = PlatformId.SPOTIFY
    display_name = "Spotify"

    def __init__(self, config: Dict[str, Any], **kwargs: Any):
        super().__init__(config, **kwargs)
        self._code_verifier: Optional[str] = None

    # -----------------
    # Config
    # -----------------

    @property
    def client_id(self) -> str:
        return str(self.config.get("spotify_client_id", "")).strip()

    def get_redirect_uri(self) -> str:
        return str(self.config.get("spotify_redirect_uri", "")).strip()

    def is_auth_callback(self, url: str) -> bool:
        redirect_uri = self.get_redirect_uri()
        return bool(redirect_uri) and str(url or "").startswith(redirect_uri)

    # -----------------
    # Login handshake
    # -----------------

    def generate_pkce_pair(self) -> PKCEPair:
        verifier = generate_code_verifier(int(self.config.get("pkce_verifier_length", DEFAULT_VERIFIER_LENGTH)))
        return PKCEPair(code_verifier=verifier, code_challenge=code_challenge_from_verifier(verifier))

    def get_authorize_url(
        self,
        *,
        code_challenge: str,
        scopes: Optional[Iterable[str]] = None,
        show_dialog: bool = True,
    ) -> str:
        redirect_uri = self.get_redirect_uri()
        if not redirect_uri:
            raise ValueError("Missing config.spotify_redirect_uri")

        scope_list = list(scopes if scopes is not None else self.config.get("spotify_scopes", DEFAULT_SPOTIFY_SCOPES))
        scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])

        params: Dict[str, str] = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "code_challenge_method": "S256",
            "code_challenge": str(code_challenge),
            "show_dialog": "true" if show_dialog else "false",
        }
        if scope_str:
            params["scope"] = scope_str

        return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urllib.parse.urlencode(params)}"

    def start_auth(self, *, open_browser: bool = True) -> str:
        """Begin a login attempt and return the authorize URL.

        Only one attempt is tracked: starting another replaces the stored
        verifier, so the earlier attempt's callback can no longer complete.
        """

        pkce = self.generate_pkce_pair()
        url = self.get_authorize_url(code_challenge=pkce.code_challenge)
        self._code_verifier = pkce.code_verifier
        self._authenticating = True

        logger.info("[Spotify] Opening auth URL")
        if open_browser:
            try:
                self.opener(url)
            except Exception as e:
                self._code_verifier = None
                self._fail_login(f"Failed to start Spotify login: {e}")
                raise AuthFailed(self.display_name, "Failed to start Spotify login") from e
        return url

    def handle_auth_callback(self, url: str) -> bool:
        """Complete the login from the redirect URL. Returns True when connected."""

        params = parse_callback_params(url)
        verifier, self._code_verifier = self._code_verifier, None

        if params.get("error"):
            return self._fail_login(f"Spotify auth failed: {params['error']}")

        code = params.get("code")
        if not code or not verifier:
            return self._fail_login("Invalid auth response")

        try:
            self.exchange_code_for_token(code=code, code_verifier=verifier)
        except (StreamingError, httpx.HTTPError) as e:
            return self._fail_login(f"Failed to get Spotify tokens: {e}")

        self._authenticating = False
        self.fetch_user_profile()
        logger.info("[Spotify] Auth successful")
        return True

    def exchange_code_for_token(self, *, code: str, code_verifier: str) -> AuthState:
        payload = self._post_form(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.get_redirect_uri(),
                "client_id": self.client_id,
                "code_verifier": code_verifier,
            },
        )
        if not payload.get("access_token"):
            raise AuthFailed(self.display_name, f"Spotify token exchange failed: {payload}")
        return self._store_token_payload(payload)

    # -----------------
    # Token lifecycle
    # -----------------

    def refresh_access_token(self) -> AuthState:
        """Trade the stored refresh token for a new access token.

        Raises AuthExpired when no refresh token is stored or the token
        endpoint rejects it. Stored auth state is left in place.
        """

        refresh_token = self.store.get(self.platform).refresh_token
        if not refresh_token:
            logger.warning("[Spotify] No refresh token available")
            raise AuthExpired(self.display_name, "Spotify authentication expired")

        try:
            payload = self._post_form(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.client_id,
                },
            )
        except (StreamingError, httpx.HTTPError) as e:
            logger.error("[Spotify] Token refresh failed: %s", e)
            raise AuthExpired(self.display_name, "Spotify authentication expired") from e

        if not payload.get("access_token"):
            raise AuthExpired(self.display_name, "Spotify authentication expired")
        return self._store_token_payload(payload)

    def needs_refresh(self) -> bool:
        state = self.store.get(self.platform)
        return state.connected and state.is_expired(now=self.clock())

    def get_access_token(self) -> str:
        """Current access token, refreshed first when it is (about to be) expired."""

        state = self.store.get(self.platform)
        if not state.connected:
            raise NotAuthenticated(self.display_name)

        if not state.is_expired(now=self.clock()):
            return str(state.access_token)

        if not bool(self.config.get("spotify_auto_refresh", True)):
            raise AuthExpired(self.display_name, "Spotify token expired and spotify_auto_refresh is disabled.")

        return str(self.refresh_access_token().access_token)

    def _store_token_payload(self, payload: Dict[str, Any]) -> AuthState:
        expires_in = float(payload.get("expires_in", 3600) or 0)
        expires_at = self.clock() + expires_in
        return self.store.update(
            self.platform,
            lambda s: s.with_tokens(
                str(payload["access_token"]),
                refresh_token=payload.get("refresh_token"),
                expires_at=expires_at,
            ),
        )

    def _request_profile(self) -> Optional[UserProfile]:
        token = self.get_access_token()
        resp = self.http.get(
            f"{SPOTIFY_API_BASE_URL}/me",
            headers={"Authorization": f"Bearer {token}"},
        )
        if resp.status_code >= 400:
            raise AuthFailed(self.display_name, f"Spotify profile request failed (HTTP {resp.status_code})")
        return spotify_profile(decode_json(resp, platform=self.display_name))

    def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}

        resp = self.http.post(
            f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token",
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        if resp.status_code >= 400:
            raise AuthFailed(
                self.display_name,
                f"Spotify token request failed (HTTP {resp.status_code}): {body_excerpt(resp)}",
            )

        payload = decode_json(resp, platform=self.display_name)
        if not isinstance(payload, dict):
            raise AuthFailed(self.display_name, f"Spotify token response was not an object: {payload}")
        return payload
