import questionary


def main_menu() -> str:
    return questionary.select(
        "🎶 TuneWell — What would you like to do?",
        choices=[
            "Streaming Menu",
            "Import Menu",
            "Playback Menu",
            "Config Menu",
            "Exit",
        ],
    ).ask()
