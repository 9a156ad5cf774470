import json
import sys

from config import load_config
from menus.main_menu import main_menu
from menus.streaming_menu import streaming_menu
from menus.import_menu import import_menu
from menus.playback_menu import playback_menu
from menus.config_menu import config_menu
from streaming_api import build_services
from utils.logger import setup_logging, log_info, log_error


def main() -> int:
    setup_logging()

    try:
        config = load_config()
    except FileNotFoundError as e:
        log_error(f"Config file not found: {e}")
        log_error("Please create config.json with required settings.")
        return 1
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"), config.get("log_file"))
    services = build_services(config)

    try:
        while True:
            choice = main_menu()

            # Streaming Menu
            if choice == "Streaming Menu":
                streaming_menu(services)

            # Import Menu
            elif choice == "Import Menu":
                import_menu(services)

            # Playback Menu
            elif choice == "Playback Menu":
                playback_menu(services)

            # Config Menu
            elif choice == "Config Menu":
                config = config_menu(config)
                services.close()
                services = build_services(config)

            # Exit
            elif choice == "Exit" or choice is None:
                log_info("Exiting program...")
                break

            else:
                log_error("Invalid choice.")
    finally:
        services.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
