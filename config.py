import json
import os
from typing import Any, Dict, Optional

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # Storage
    "credentials_file": "data/credentials.json",
    "imported_playlists_file": "data/imported_playlists.json",

    # Spotify Web API (OAuth PKCE)
    "spotify_client_id": "",
    "spotify_redirect_uri": "tunewell://spotify-callback",
    "spotify_scopes": [
        "user-read-private",
        "user-read-email",
        "playlist-read-private",
        "playlist-read-collaborative",
        "user-library-read",
        "streaming",
        "user-read-playback-state",
        "user-modify-playback-state",
        "user-read-currently-playing",
    ],
    "spotify_auto_refresh": True,
    "pkce_verifier_length": 64,

    # Deezer (OAuth authorization code)
    "deezer_app_id": "",
    "deezer_app_secret": "",
    "deezer_redirect_uri": "tunewell://deezer-callback",
    "deezer_perms": ["basic_access", "email", "offline_access", "manage_library", "listening_history"],

    # Qobuz (direct login)
    "qobuz_app_id": "",

    # Link resolution (song.link / Odesli)
    "odesli_api_url": "https://api.song.link/v1-alpha.1/links",
    "odesli_user_country": "",
    "resolver_search_limit": 5,

    # HTTP
    "http_timeout": 15,
    "resolver_timeout": 20,

    "search_limit": 20,
    "log_level": "INFO",
    "log_file": "data/tunewell.log",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "credentials_file": {"type": str, "required": True},
    "imported_playlists_file": {"type": str, "required": True},

    "spotify_client_id": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": False},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "spotify_auto_refresh": {"type": bool, "required": False},
    "pkce_verifier_length": {"type": int, "required": False, "min": 43, "max": 128},

    "deezer_app_id": {"type": str, "required": False},
    "deezer_app_secret": {"type": str, "required": False},
    "deezer_redirect_uri": {"type": str, "required": False},
    "deezer_perms": {"type": list, "required": False, "element_type": str},

    "qobuz_app_id": {"type": str, "required": False},

    "odesli_api_url": {"type": str, "required": False},
    "odesli_user_country": {"type": str, "required": False},
    "resolver_search_limit": {"type": int, "required": False, "min": 1, "max": 50},

    "http_timeout": {"type": (int, float), "required": False, "min": 1, "max": 120},
    "resolver_timeout": {"type": (int, float), "required": False, "min": 1, "max": 120},

    "search_limit": {"type": int, "required": False, "min": 1, "max": 50},
    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": str, "required": False},
}

# Never printed by the config menu.
SECRET_KEYS = ("deezer_app_secret",)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    path = path or CONFIG_PATH
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> bool:
    """Save configuration to file."""
    path = path or CONFIG_PATH
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}")


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # Type check (bool is an int subclass; numeric fields reject it)
        expected_type = rules.get("type")
        wrong_bool = isinstance(value, bool) and expected_type is not bool
        if expected_type and (wrong_bool or not isinstance(value, expected_type)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # List element type check (when schema uses: {"type": list, "element_type": ...})
        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def update_config(key: str, value: Any, path: Optional[str] = None) -> tuple[bool, str]:
    """
    Update a single config field with validation.
    Returns (success, message).
    """
    config = load_config(path)

    # Check if key is valid
    if key not in CONFIG_SCHEMA:
        return False, f"Unknown config key: {key}"

    # Create temporary config with new value
    test_config = config.copy()
    test_config[key] = value

    # Validate the change
    is_valid, errors = validate_config(test_config)
    if not is_valid:
        return False, f"Validation failed: {', '.join(errors)}"

    # Save the updated config
    config[key] = value
    save_config(config, path)

    shown = "***" if key in SECRET_KEYS else value
    return True, f"Updated '{key}' to '{shown}'"


def reset_to_defaults(path: Optional[str] = None) -> tuple[bool, str]:
    """Reset configuration to default values."""
    try:
        save_config(json.loads(json.dumps(DEFAULT_CONFIG)), path)
        return True, "Configuration reset to defaults"
    except IOError as e:
        return False, f"Failed to reset config: {e}"


def get_config_value(key: str, default: Any = None, path: Optional[str] = None) -> Any:
    """Get a single config value with optional default."""
    try:
        config = load_config(path)
        return config.get(key, default)
    except (FileNotFoundError, json.JSONDecodeError):
        return default
