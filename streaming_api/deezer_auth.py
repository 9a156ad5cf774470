import json
import logging
import urllib.parse
from typing import Any, Dict, Optional

import httpx

from .auth import AuthSession, parse_callback_params
from .errors import AuthFailed, NotAuthenticated, StreamingError
from .http import body_excerpt, decode_json
from .models import AuthState, PlatformId, UserProfile
from .normalizers import deezer_profile


logger = logging.getLogger(__name__)

DEEZER_CONNECT_BASE_URL = "https://connect.deezer.com/oauth"
DEEZER_API_BASE_URL = "https://api.deezer.com"

DEFAULT_DEEZER_PERMS = ["basic_access", "email", "offline_access", "manage_library", "listening_history"]


def parse_token_response(text: str) -> Dict[str, Any]:
    """Deezer answers the token exchange with JSON or with `access_token=...&expires=...`."""

    text = (text or "").strip()
    if not text:
        return {}
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}
    return {k: v[0] for k, v in urllib.parse.parse_qs(text).items() if v}


class DeezerAuth(AuthSession):
    """Deezer OAuth (authorization code, token exchange over GET).

    Deezer tokens obtained with `offline_access` do not expire; the session
    stays connected until an API call reports an invalid session.
    """

    platform = PlatformId.DEEZER
    display_name = "Deezer"

    @property
    def app_id(self) -> str:
        return str(self.config.get("deezer_app_id", "")).strip()

    @property
    def app_secret(self) -> str:
        return str(self.config.get("deezer_app_secret", "")).strip()

    def get_redirect_uri(self) -> str:
        return str(self.config.get("deezer_redirect_uri", "")).strip()

    def is_auth_callback(self, url: str) -> bool:
        redirect_uri = self.get_redirect_uri()
        return bool(redirect_uri) and str(url or "").startswith(redirect_uri)

    def get_authorize_url(self) -> str:
        redirect_uri = self.get_redirect_uri()
        if not redirect_uri:
            raise ValueError("Missing config.deezer_redirect_uri")

        perms = self.config.get("deezer_perms", DEFAULT_DEEZER_PERMS)
        params = {
            "app_id": self.app_id,
            "redirect_uri": redirect_uri,
            "perms": ",".join(str(p).strip() for p in perms if str(p).strip()),
        }
        return f"{DEEZER_CONNECT_BASE_URL}/auth.php?{urllib.parse.urlencode(params)}"

    def start_auth(self, *, open_browser: bool = True) -> str:
        url = self.get_authorize_url()
        self._authenticating = True

        logger.info("[Deezer] Opening auth URL")
        if open_browser:
            try:
                self.opener(url)
            except Exception as e:
                self._fail_login(f"Failed to start Deezer login: {e}")
                raise AuthFailed(self.display_name, "Failed to start Deezer login") from e
        return url

    def handle_auth_callback(self, url: str) -> bool:
        params = parse_callback_params(url)

        if params.get("error_reason"):
            return self._fail_login(f"Deezer auth failed: {params['error_reason']}")

        code = params.get("code")
        if not code:
            return self._fail_login("Invalid Deezer auth response")

        try:
            self.exchange_code_for_token(code)
        except (StreamingError, httpx.HTTPError) as e:
            return self._fail_login(f"Failed to get Deezer token: {e}")

        self._authenticating = False
        self.fetch_user_profile()
        logger.info("[Deezer] Auth successful")
        return True

    def exchange_code_for_token(self, code: str) -> AuthState:
        resp = self.http.get(
            f"{DEEZER_CONNECT_BASE_URL}/access_token.php",
            params={
                "app_id": self.app_id,
                "secret": self.app_secret,
                "code": code,
                "output": "json",
            },
        )
        if resp.status_code >= 400:
            raise AuthFailed(
                self.display_name,
                f"Deezer token request failed (HTTP {resp.status_code}): {body_excerpt(resp)}",
            )

        payload = parse_token_response(resp.text)
        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise AuthFailed(self.display_name, f"Deezer error: {message}")

        token = payload.get("access_token")
        if not token:
            # An invalid or reused code comes back as the body "wrong code".
            raise AuthFailed(self.display_name, f"No access token in Deezer response: {body_excerpt(resp)}")

        return self.store.update(self.platform, lambda s: s.with_tokens(str(token)))

    def get_access_token(self) -> str:
        state = self.store.get(self.platform)
        if not state.connected:
            raise NotAuthenticated(self.display_name)
        return str(state.access_token)

    def _request_profile(self) -> Optional[UserProfile]:
        resp = self.http.get(f"{DEEZER_API_BASE_URL}/user/me", params={"access_token": self.get_access_token()})
        if resp.status_code >= 400:
            raise AuthFailed(self.display_name, f"Deezer profile request failed (HTTP {resp.status_code})")
        data = decode_json(resp, platform=self.display_name)
        if isinstance(data, dict) and data.get("error"):
            raise AuthFailed(self.display_name, f"Deezer profile request failed: {data['error']}")
        return deezer_profile(data)
