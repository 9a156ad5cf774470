import logging
from typing import Any, Dict, Optional

import httpx

from .auth import AuthSession
from .errors import ApiError, AuthExpired, AuthFailed, NotAuthenticated
from .http import body_excerpt, decode_json
from .models import AuthState, PlatformId, UserProfile
from .normalizers import qobuz_profile


logger = logging.getLogger(__name__)

QOBUZ_API_BASE_URL = "https://www.qobuz.com/api.json/0.2"


class QobuzAuth(AuthSession):
    """Qobuz direct-credential login (email + password against /user/login).

    The user auth token does not carry an expiry. When the API rejects it,
    the session is re-validated once through /user/login with the stored
    user id and token; if that fails the session is dropped.
    """

    platform = PlatformId.QOBUZ
    display_name = "Qobuz"

    @property
    def app_id(self) -> str:
        return str(self.config.get("qobuz_app_id", "")).strip()

    def _login_request(self, form: Dict[str, Any]) -> httpx.Response:
        return self.http.post(
            f"{QOBUZ_API_BASE_URL}/user/login",
            data={**form, "app_id": self.app_id},
            headers={"X-App-Id": self.app_id},
        )

    def login(self, email: str, password: str) -> bool:
        """Log in with account credentials. Returns True when connected."""

        email = str(email or "").strip()
        if not email or not password:
            return self._fail_login("Qobuz login requires an email and a password")

        with self.status.busy():
            self._authenticating = True
            try:
                resp = self._login_request({"email": email, "password": password})
            except httpx.HTTPError as e:
                return self._fail_login(f"Qobuz login failed: {e}")

            if resp.status_code >= 400:
                logger.warning("[Qobuz] Login rejected (HTTP %s)", resp.status_code)
                return self._fail_login("Qobuz login failed. Check your credentials.")

            try:
                data = decode_json(resp, platform=self.display_name)
            except ApiError as e:
                return self._fail_login(str(e))

            token = data.get("user_auth_token") if isinstance(data, dict) else None
            if not token:
                return self._fail_login("Qobuz login failed: no token received")

            profile = qobuz_profile(data.get("user"), email=email)
            self.store.set(self.platform, AuthState(access_token=str(token), user_profile=profile))
            self._authenticating = False
            logger.info("[Qobuz] Login successful")
            return True

    def refresh_session(self) -> AuthState:
        """Re-validate the stored token; drops the session and raises AuthExpired on failure."""

        state = self.store.get(self.platform)
        user_id = state.user_profile.id if state.user_profile else ""
        if not state.connected or not user_id:
            self.invalidate("no session to re-validate")
            raise AuthExpired(self.display_name, "Qobuz session expired. Please log in again.")

        try:
            resp = self._login_request({"user_id": user_id, "user_auth_token": state.access_token})
            data = decode_json(resp, platform=self.display_name) if resp.status_code < 400 else {}
        except (httpx.HTTPError, ApiError) as e:
            logger.error("[Qobuz] Session re-validation failed: %s", e)
            data = {}

        token = data.get("user_auth_token") if isinstance(data, dict) else None
        if not token:
            self.invalidate("session re-validation rejected")
            raise AuthExpired(self.display_name, "Qobuz session expired. Please log in again.")

        return self.store.update(self.platform, lambda s: s.with_tokens(str(token)))

    def get_access_token(self) -> str:
        state = self.store.get(self.platform)
        if not state.connected:
            raise NotAuthenticated(self.display_name)
        return str(state.access_token)

    def _request_profile(self) -> Optional[UserProfile]:
        state = self.store.get(self.platform)
        token = self.get_access_token()
        params = {"app_id": self.app_id}
        if state.user_profile and state.user_profile.id:
            params["user_id"] = state.user_profile.id
        resp = self.http.get(
            f"{QOBUZ_API_BASE_URL}/user/get",
            params=params,
            headers={"X-App-Id": self.app_id, "X-User-Auth-Token": token},
        )
        if resp.status_code >= 400:
            raise AuthFailed(
                self.display_name,
                f"Qobuz profile request failed (HTTP {resp.status_code}): {body_excerpt(resp)}",
            )

        email = state.user_profile.email if state.user_profile else ""
        profile = qobuz_profile(decode_json(resp, platform=self.display_name), email=email or "")
        return profile if profile.id else None
