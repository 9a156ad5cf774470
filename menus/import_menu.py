import questionary

from menus import BACK
from streaming_api import ImportedPlaylist, StreamingServices, StreamingTrack, is_streaming_url, platform_display_name
from utils.logger import log_info, log_warning, log_error, log_success


def _format_duration(duration_ms: int) -> str:
    seconds = max(0, int(duration_ms or 0)) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def _track_title(track: StreamingTrack) -> str:
    flag = "" if track.is_playable else " (unavailable)"
    return f"{track.artist} - {track.name} [{_format_duration(track.duration_ms)}]{flag}"


def import_from_link(services: StreamingServices) -> None:
    url = questionary.text("Paste a playlist, album or track link:").ask()
    url = (url or "").strip()
    if not url:
        return

    if not is_streaming_url(url):
        if not questionary.confirm("That does not look like a streaming link. Try anyway?", default=False).ask():
            return

    log_info(f"Importing from {platform_display_name(url)}...")
    imported = services.importer.import_from_url(url)
    if imported is None:
        log_error(services.status.error or "Import failed.")
        return

    log_success(f"Imported '{imported.name}' from {imported.source} ({imported.track_count} tracks).")


def search_spotify(services: StreamingServices) -> None:
    query = questionary.text("Search Spotify (artist and/or title):").ask()
    query = (query or "").strip()
    if not query:
        return

    results = services.importer.search_and_import(query)
    if not results:
        log_warning(services.status.error or f"No results for '{query}'.")
        return

    picked = questionary.checkbox(
        "Select tracks to import (space toggles, enter confirms):",
        choices=[
            questionary.Choice(title=_track_title(t), value=t, checked=(i == 0))
            for i, t in enumerate(results)
        ],
    ).ask()
    if not picked:
        log_info("Nothing selected.")
        return

    name = questionary.text("Playlist name:", default=query).ask()
    imported = services.importer.import_tracks(name or query, picked, query=query)
    if imported:
        log_success(f"Saved '{imported.name}' ({imported.track_count} tracks).")
    else:
        log_error(services.status.error or "Could not save the selection.")


def show_tracks(playlist: ImportedPlaylist) -> None:
    print("\n" + "=" * 50)
    print(f"🎵 {playlist.name} ({playlist.track_count} tracks, from {playlist.source})")
    print("=" * 50)
    for i, track in enumerate(playlist.tracks, 1):
        print(f"  {i:3d}. {_track_title(track)}")
    print("=" * 50)


def manage_playlist(services: StreamingServices, playlist: ImportedPlaylist) -> None:
    choice = questionary.select(
        f"'{playlist.name}' — What would you like to do?",
        choices=["Show tracks", "Play on Spotify", "Rename", "Remove", "Back"],
    ).ask()

    if choice == "Show tracks":
        show_tracks(playlist)

    elif choice == "Play on Spotify":
        spotify_tracks = [t for t in playlist.tracks if t.playable_uri.startswith("spotify:")]
        if not spotify_tracks:
            log_warning("This playlist has no Spotify tracks.")
        elif services.spotify.play(spotify_tracks[0].playable_uri):
            log_success(f"Playing {spotify_tracks[0].name}.")
        else:
            log_error("Could not start playback.")

    elif choice == "Rename":
        name = questionary.text("New name:", default=playlist.name).ask()
        renamed = services.importer.rename_playlist(playlist.id, name or "")
        if renamed:
            log_success(f"Renamed to '{renamed.name}'.")
        else:
            log_error(services.status.error or "Rename failed.")

    elif choice == "Remove":
        if questionary.confirm(f"Remove '{playlist.name}'?", default=False).ask():
            if services.importer.remove_playlist(playlist.id):
                log_success("Playlist removed.")
            else:
                log_warning("Playlist was already gone.")


def imported_playlists_menu(services: StreamingServices) -> None:
    playlists = services.importer.list_playlists()
    if not playlists:
        log_info("No imported playlists yet.")
        return

    choices = [
        questionary.Choice(title=f"{p.name} ({p.track_count} tracks, {p.source})", value=p)
        for p in playlists
    ]
    choices.append(questionary.Choice(title="Back", value=BACK))
    picked = questionary.select("Imported playlists:", choices=choices).ask()
    if picked not in (BACK, None):
        manage_playlist(services, picked)


def import_menu(services: StreamingServices) -> None:
    while True:
        choice = questionary.select(
            "📥 Import — What would you like to do?",
            choices=[
                "Import from a link",
                "Search Spotify",
                "My imported playlists",
                "Back",
            ],
        ).ask()

        if choice == "Import from a link":
            import_from_link(services)

        elif choice == "Search Spotify":
            search_spotify(services)

        elif choice == "My imported playlists":
            imported_playlists_menu(services)

        elif choice == "Back" or choice is None:
            break
