import questionary
from config import (
    load_config, validate_config, update_config, reset_to_defaults,
    CONFIG_SCHEMA, SECRET_KEYS
)
from streaming_api import check_platform_credentials
from utils.logger import log_info, log_warning, log_error, log_success


CATEGORIES = {
    "Spotify": ["spotify_client_id", "spotify_redirect_uri", "spotify_scopes", "spotify_auto_refresh", "pkce_verifier_length"],
    "Deezer": ["deezer_app_id", "deezer_app_secret", "deezer_redirect_uri", "deezer_perms"],
    "Qobuz": ["qobuz_app_id"],
    "Link Resolution": ["odesli_api_url", "odesli_user_country", "resolver_search_limit"],
    "Network": ["http_timeout", "resolver_timeout"],
    "Storage": ["credentials_file", "imported_playlists_file"],
    "General": ["search_limit", "log_level", "log_file"],
}


def config_menu(config: dict) -> dict:
    """
    Display the configuration menu and handle user selections.
    Returns the potentially updated config dict.
    """
    while True:
        choice = questionary.select(
            "⚙️ Config Menu — What would you like to do?",
            choices=[
                "View current config",
                "Update a setting",
                "Check platform credentials",
                "Reset to defaults",
                "Validate configuration",
                "Back"
            ]
        ).ask()

        if choice == "View current config":
            view_config(config)

        elif choice == "Update a setting":
            config = update_setting_menu(config)

        elif choice == "Check platform credentials":
            check_credentials_menu(config)

        elif choice == "Reset to defaults":
            config = reset_config_menu(config)

        elif choice == "Validate configuration":
            validate_config_menu(config)

        elif choice == "Back" or choice is None:
            break

    return config


def _display_value(key: str, value):
    if key in SECRET_KEYS:
        return "SET" if value else "NOT SET"
    if isinstance(value, bool):
        return "✓ Enabled" if value else "✗ Disabled"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return value


def view_config(config: dict):
    """Display the current configuration in a readable format."""
    print("\n" + "=" * 50)
    print("📋 Current Configuration")
    print("=" * 50)

    for category, keys in CATEGORIES.items():
        print(f"\n{category}:")
        for key in keys:
            if key in config:
                print(f"  {key}: {_display_value(key, config[key])}")

    print("\n" + "=" * 50)


def update_setting_menu(config: dict) -> dict:
    """Menu to update individual settings."""
    editable_keys = list(CONFIG_SCHEMA.keys())
    editable_keys.append("Back")

    key = questionary.select(
        "Select setting to update:",
        choices=editable_keys
    ).ask()

    if key == "Back" or key is None:
        return config

    schema = CONFIG_SCHEMA.get(key, {})
    current_value = config.get(key, "Not set")

    print(f"\nCurrent value: {_display_value(key, current_value)}")

    # Handle different types of inputs
    if "choices" in schema:
        new_value = questionary.select(
            f"Select new value for {key}:",
            choices=schema["choices"]
        ).ask()

    elif schema.get("type") == bool:
        new_value = questionary.confirm(
            f"Enable {key}?",
            default=current_value if isinstance(current_value, bool) else True
        ).ask()

    elif schema.get("type") in [int, (int, float)]:
        min_val = schema.get("min", 0)
        max_val = schema.get("max", 9999)
        new_value_str = questionary.text(
            f"Enter new value for {key} ({min_val}-{max_val}):",
            default=str(current_value) if current_value != "Not set" else ""
        ).ask()

        try:
            if schema.get("type") == int:
                new_value = int(new_value_str)
            else:
                new_value = float(new_value_str)
        except (TypeError, ValueError):
            log_error("Invalid number format")
            return config

    elif schema.get("type") == list:
        new_value_str = questionary.text(
            f"Enter new values for {key} (comma separated):",
            default=", ".join(str(v) for v in current_value) if isinstance(current_value, list) else ""
        ).ask()
        new_value = [v.strip() for v in (new_value_str or "").split(",") if v.strip()]

    elif key in SECRET_KEYS:
        new_value = questionary.password(f"Enter new value for {key}:").ask()

    else:
        new_value = questionary.text(
            f"Enter new value for {key}:",
            default=str(current_value) if current_value != "Not set" else ""
        ).ask()

    if new_value is None:
        return config

    # Update the config
    success, message = update_config(key, new_value)

    if success:
        log_success(message)
        config[key] = new_value
    else:
        log_error(message)

    return config


def check_credentials_menu(config: dict):
    """Show which platforms have their app credentials configured."""
    for platform, status in check_platform_credentials(config).items():
        if status["ok"]:
            log_info(f"{platform}: {status['message']}")
        else:
            log_warning(f"{platform}: {status['message']}")


def reset_config_menu(config: dict) -> dict:
    """Menu to reset configuration to defaults."""
    confirm = questionary.confirm(
        "⚠️ Reset all settings to defaults? This cannot be undone.",
        default=False
    ).ask()

    if confirm:
        success, message = reset_to_defaults()

        if success:
            log_success(message)
            config = load_config()
        else:
            log_error(message)

    return config


def validate_config_menu(config: dict):
    """Validate the current configuration and show any errors."""
    is_valid, errors = validate_config(config)

    print("\n" + "=" * 50)
    print("🔍 Configuration Validation")
    print("=" * 50)

    if is_valid:
        log_success("Configuration is valid! ✓")
    else:
        log_error("Configuration has errors:")
        for error in errors:
            print(f"  ✗ {error}")

    print("=" * 50)
