"""Settings file I/O for convo-tui.

A flat JSON object at $XDG_CONFIG_HOME/convo-tui/settings.json with the
display toggles, the display name and the theme. Keys this version does
not know about are carried through writes untouched.

Import as: import convo_tui.io.settings
"""

import json
import os
import tempfile
from pathlib import Path

DEFAULTS = {
    "show_tool_details": True,
    "show_thinking_blocks": False,
    "username": "",
    "theme": None,
}


def get_config_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(config_home, "convo-tui", "settings.json")


def load_settings() -> dict:
    """File contents as saved. {} when missing, unreadable, or not a JSON object."""
    try:
        with get_config_path().open(encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(data: dict) -> None:
    """Replace the file atomically: write a sibling temp file, then rename over."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".settings-", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_name, path)
    except Exception:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def load_setting(key: str, default=None):
    """Saved value, else the built-in default, else `default`."""
    saved = load_settings()
    if key in saved:
        return saved[key]
    return DEFAULTS.get(key, default)


def save_setting(key: str, value) -> None:
    saved = load_settings()
    saved[key] = value
    save_settings(saved)


def load_display_flags() -> tuple[bool, bool]:
    """(show_tool_details, show_thinking_blocks)."""
    merged = {**DEFAULTS, **load_settings()}
    return bool(merged["show_tool_details"]), bool(merged["show_thinking_blocks"])


def load_username() -> str:
    """Author shown on user messages: saved name, login name, then "You"."""
    return load_setting("username") or os.environ.get("USER") or "You"
