import time
from typing import Optional

import questionary

from menus import BACK
from streaming_api import PlatformId, StreamingServices, check_platform_credentials
from streaming_api.auth import spotify_app_setup_instructions
from utils.logger import log_info, log_warning, log_error, log_success


PLATFORM_LABELS = {
    PlatformId.SPOTIFY: "Spotify",
    PlatformId.DEEZER: "Deezer",
    PlatformId.QOBUZ: "Qobuz",
}


def _status_line(services: StreamingServices, platform: PlatformId) -> str:
    session = services.auth_for(platform)
    profile = session.user_profile()
    line = f"{PLATFORM_LABELS[platform]}: {session.state.value}"
    if session.connected and profile:
        tier = f" [{profile.tier}]" if profile.tier else ""
        line += f" as {profile.display_name}{tier}"
    return line


def show_status(services: StreamingServices) -> None:
    print("\n" + "=" * 50)
    print("🎧 Streaming Accounts")
    print("=" * 50)
    for platform in PLATFORM_LABELS:
        print(f"  {_status_line(services, platform)}")
    if services.status.last_sync_at:
        synced = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(services.status.last_sync_at))
        print(f"  Last playlist sync: {synced}")
    print("=" * 50)


def _finish_oauth(services: StreamingServices, label: str) -> None:
    pasted = questionary.text(f"Paste the full {label} redirect URL:").ask()
    pasted = (pasted or "").strip()
    if not pasted:
        log_warning("No redirect URL provided. Cancelling auth.")
        return

    if services.importer.handle_auth_callback(pasted):
        log_success(f"Connected to {label}.")
    else:
        log_error(services.status.error or f"{label} authentication failed.")


def connect_oauth(services: StreamingServices, platform: PlatformId) -> None:
    """Start a browser login and wait for the user to paste the redirect URL back."""
    label = PLATFORM_LABELS[platform]
    creds = check_platform_credentials(services.config)[platform.value]
    if not creds["ok"]:
        log_warning(creds["message"])
        if platform == PlatformId.SPOTIFY:
            log_info(spotify_app_setup_instructions(redirect_uri=services.spotify_auth.get_redirect_uri()))
        return

    session = services.auth_for(platform)
    auth_url = session.start_auth(open_browser=False)

    log_info("=" * 72)
    log_info(f"{label.upper()} AUTHENTICATION")
    log_info("=" * 72)
    log_info("1) Log in with the URL below.")
    log_info(f"2) {label} redirects to {session.get_redirect_uri()}; copy that full address.")
    log_info("3) Paste it back here.")
    log_info(f"Authorize URL:\n{auth_url}")
    log_info("=" * 72)

    if questionary.confirm("Open the authorize URL in your default browser?", default=True).ask():
        session.opener(auth_url)

    _finish_oauth(services, label)


def connect_qobuz(services: StreamingServices) -> None:
    creds = check_platform_credentials(services.config)[PlatformId.QOBUZ.value]
    if not creds["ok"]:
        log_warning(creds["message"])
        return

    email = questionary.text("Qobuz email:").ask()
    password = questionary.password("Qobuz password:").ask()
    if not email or not password:
        log_warning("Email and password are required.")
        return

    if services.qobuz_auth.login(email, password):
        profile = services.qobuz_auth.user_profile()
        log_success(f"Logged in to Qobuz as {profile.display_name if profile else email}.")
    else:
        log_error(services.status.error or "Qobuz login failed.")


def paste_redirect(services: StreamingServices) -> None:
    url = questionary.text("Paste the auth redirect URL:").ask()
    url = (url or "").strip()
    if not url:
        return
    if services.importer.handle_auth_callback(url):
        log_success("Account connected.")
    else:
        log_error(services.status.error or "That URL is not a pending login redirect.")


def _pick_platform(services: StreamingServices, message: str, *, connected_only: bool) -> Optional[PlatformId]:
    choices = [
        questionary.Choice(title=_status_line(services, p), value=p)
        for p in PLATFORM_LABELS
        if not connected_only or services.auth_for(p).connected
    ]
    if not choices:
        log_info("No connected platforms.")
        return None
    choices.append(questionary.Choice(title="Back", value=BACK))
    picked = questionary.select(message, choices=choices).ask()
    return None if picked in (BACK, None) else picked


def browse_playlists(services: StreamingServices) -> None:
    platform = _pick_platform(services, "Browse playlists on:", connected_only=True)
    if platform is None:
        return

    playlists = services.client_for(platform).fetch_playlists()
    if not playlists:
        log_warning(services.status.error or "No playlists found.")
        return

    choices = [questionary.Choice(title=f"{p.name} ({p.track_count} tracks)", value=p) for p in playlists]
    choices.append(questionary.Choice(title="Back", value=BACK))
    picked = questionary.select("Import a playlist:", choices=choices).ask()
    if picked in (BACK, None):
        return

    imported = services.importer.import_from_url(picked.link)
    if imported:
        log_success(f"Imported '{imported.name}' ({imported.track_count} tracks).")
    else:
        log_error(services.status.error or "Import failed.")


def disconnect_platform(services: StreamingServices) -> None:
    platform = _pick_platform(services, "Disconnect which platform?", connected_only=True)
    if platform is None:
        return
    if questionary.confirm(f"Disconnect {PLATFORM_LABELS[platform]}?", default=False).ask():
        services.auth_for(platform).disconnect()
        log_success(f"Disconnected {PLATFORM_LABELS[platform]}.")


def streaming_menu(services: StreamingServices) -> None:
    while True:
        show_status(services)

        choice = questionary.select(
            "🎧 Streaming — What would you like to do?",
            choices=[
                "Connect Spotify",
                "Connect Deezer",
                "Log in to Qobuz",
                "Paste an auth redirect URL",
                "Browse my playlists",
                "Disconnect a platform",
                "Back",
            ],
        ).ask()

        if choice == "Connect Spotify":
            connect_oauth(services, PlatformId.SPOTIFY)

        elif choice == "Connect Deezer":
            connect_oauth(services, PlatformId.DEEZER)

        elif choice == "Log in to Qobuz":
            connect_qobuz(services)

        elif choice == "Paste an auth redirect URL":
            paste_redirect(services)

        elif choice == "Browse my playlists":
            browse_playlists(services)

        elif choice == "Disconnect a platform":
            disconnect_platform(services)

        elif choice == "Back" or choice is None:
            break
