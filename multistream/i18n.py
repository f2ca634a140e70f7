import json
import locale
import logging

from .utils import get_resource_path

# Fallback English dictionary
_default_en = {
    # Streams
    "Stream {}": "Stream {}",
    "Enter a valid YouTube link or ID for the primary stream.": "Enter a valid YouTube link or ID for the primary stream.",
    "Invalid link or ID: {}": "Invalid link or ID: {}",
    "Stream {} removed": "Stream {} removed",
    "Stream {} enabled": "Stream {} enabled",
    "Stream {} disabled": "Stream {} disabled",
    "Live chat": "Live chat",
    "Open chat for stream {}": "Open chat for stream {}",
    "No live chat": "No live chat",

    # Layout
    "Layout {}": "Layout {}",
    "Layout reset": "Layout reset",
    "Swapped": "Swapped",
    "Chat width: {}px": "Chat width: {}px",
    "Stream 2 height: {}px": "Stream 2 height: {}px",
    "Right column: {}px": "Right column: {}px",
    "Border: {}px": "Border: {}px",
    "Chat shown": "Chat shown",
    "Chat tab: stream {}": "Chat tab: stream {}",
    "Info on": "Info on",
    "Info off": "Info off",
    "Drag": "Drag",

    # Audio
    "Focus: {}": "Focus: {}",
    "Both": "Both",
    "All muted": "All muted",
    "All unmuted": "All unmuted",
    "Volume {}: {}%": "Volume {}: {}%",
    "Seek {}s": "Seek {}s",
    "Quality: {}": "Quality: {}",

    # Sync
    "Marker S{} set at {}": "Marker S{} set at {}",
    "No marker on S{}": "No marker on S{}",
    "S{} to S{} marker": "S{} to S{} marker",
    "Sync target: {}s": "Sync target: {}s",
    "Synced": "Synced",
    "Sync needs two streams": "Sync needs two streams",
    "Drift: {}s": "Drift: {}s",
    "Behind live: {}": "Behind live: {}",
    "Live": "Live",

    # Shortcuts
    "Shortcuts on": "Shortcuts on",
    "Shortcuts off": "Shortcuts off",
    "Shortcuts reset": "Shortcuts reset",
    "Invalid key: {}": "Invalid key: {}",
    "Duplicate keys in use: {}": "Duplicate keys in use: {}",
    "Settings file: {}": "Settings file: {}",

    # Menus
    "Layouts": "Layouts",
    "Swap Streams": "Swap Streams",
    "Audio Focus": "Audio Focus",
    "Default Quality": "Default Quality",
    "Quality S{}": "Quality S{}",
    "Sync": "Sync",
    "Sync Now": "Sync Now",
    "Set Sync Target From Current": "Set Sync Target From Current",
    "Move": "Move",
    "Auto": "Auto",
    "Go Live: Stream {}": "Go Live: Stream {}",
    "Streams": "Streams",
    "Change Streams...": "Change Streams...",
    "Remove Stream {}": "Remove Stream {}",
    "Show Stream {}": "Show Stream {}",
    "Copy Share Link": "Copy Share Link",
    "Copy Share Link (with sync)": "Copy Share Link (with sync)",
    "Link copied": "Link copied",
    "Reset Layout": "Reset Layout",
    "Reset Shortcuts": "Reset Shortcuts",
    "Enable Shortcuts": "Enable Shortcuts",
    "Open Settings File": "Open Settings File",
    "Start": "Start",
    "Stream 1 link or ID": "Stream 1 link or ID",
    "Stream 2 link or ID (optional)": "Stream 2 link or ID (optional)",
    "Stream 3 link or ID (optional)": "Stream 3 link or ID (optional)",
}

_translations = {}


def get_system_language():
    try:
        lang, _ = locale.getlocale()
        if lang:
            return lang.split("_")[0].lower()
    except (TypeError, ValueError):
        pass
    return "en"


def load_language(lang_code):
    global _translations
    lang_file = get_resource_path("locales") / f"{lang_code}.json"
    if not lang_file.exists():
        _translations = {}
        return
    try:
        with open(lang_file, "r", encoding="utf-8") as f:
            _translations = json.load(f)
    except (OSError, ValueError) as e:
        logging.warning("Failed to load language '%s': %s", lang_code, e)
        _translations = {}


def setup_i18n(lang_code=None):
    if not lang_code:
        from .settings import load_language_setting
        lang_code = load_language_setting("")
        if not lang_code:
            lang_code = get_system_language()
    load_language(lang_code)


def tr(text, *args):
    """Translate function. Takes a format string and optional positional arguments."""
    translated = _translations.get(text, _default_en.get(text, text))
    if args:
        try:
            return translated.format(*args)
        except (IndexError, KeyError, ValueError):
            return translated
    return translated
