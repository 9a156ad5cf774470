import questionary

from streaming_api import StreamingServices
from utils.logger import log_info, log_warning, log_error


def show_playback_state(services: StreamingServices) -> None:
    state = services.spotify.get_playback_state()
    if state is None:
        log_info("Nothing is playing on Spotify.")
        return

    seconds = state.progress_ms // 1000
    status = "▶️ Playing" if state.is_playing else "⏸️ Paused"
    track = f"{state.track.artist} - {state.track.name}" if state.track else "Unknown track"
    device = f" on {state.device_name}" if state.device_name else ""
    log_info(f"{status}: {track} ({seconds // 60}:{seconds % 60:02d}){device}")


def _seek(services: StreamingServices) -> bool:
    answer = questionary.text("Seek to (seconds):").ask()
    try:
        seconds = float(answer or "")
    except ValueError:
        log_error("Invalid number format")
        return False
    return services.spotify.seek(int(seconds * 1000))


def playback_menu(services: StreamingServices) -> None:
    """Remote control for the active Spotify device."""
    if not services.spotify_auth.connected:
        log_warning("Connect Spotify first (Streaming menu).")
        return

    actions = {
        "Resume": services.spotify.resume,
        "Pause": services.spotify.pause,
        "Next track": services.spotify.skip_next,
        "Previous track": services.spotify.skip_previous,
        "Seek": lambda: _seek(services),
    }

    while True:
        show_playback_state(services)

        choice = questionary.select(
            "🎛️ Playback — What would you like to do?",
            choices=list(actions.keys()) + ["Refresh", "Back"],
        ).ask()

        if choice == "Back" or choice is None:
            break

        if choice == "Refresh":
            continue

        if not actions[choice]():
            log_error(f"{choice} failed. Is a Spotify device active?")
