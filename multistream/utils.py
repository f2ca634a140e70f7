import math
import os
import re
import sys
from pathlib import Path
from urllib.parse import parse_qs, quote, urlparse

YOUTUBE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_ID_IN_URL_RE = re.compile(r"(?:youtu\.be/|v=|/embed/|shorts/|/live/)([A-Za-z0-9_-]{11})")

QUALITY_LABELS = {
    "default": "Auto",
    "small": "144p",
    "medium": "240p",
    "large": "480p",
    "hd720": "720p",
    "hd1080": "1080p",
    "hd1440": "1440p",
    "hd2160": "2160p (4K)",
    "highres": "Highest",
}
QUALITY_ORDER = (
    "default",
    "small",
    "medium",
    "large",
    "hd720",
    "hd1080",
    "hd1440",
    "hd2160",
    "highres",
)
QUALITY_HEIGHTS = {
    "small": 144,
    "medium": 240,
    "large": 480,
    "hd720": 720,
    "hd1080": 1080,
    "hd1440": 1440,
    "hd2160": 2160,
}
PREFERRED_DEFAULT_QUALITY = "highres"


class InvalidStreamInput(ValueError):
    """Raised when a link or id does not name a playable stream."""


def clamp(value, min_value, max_value):
    return min(max_value, max(min_value, value))


def as_number(value) -> float | None:
    """Return ``value`` as a finite float, or None for anything else."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_stream_id(value) -> str | None:
    text = str(value or "").strip()
    if not text:
        return None
    if YOUTUBE_ID_RE.match(text):
        return text
    match = _ID_IN_URL_RE.search(text)
    if match:
        return match.group(1)
    parsed = urlparse(text)
    candidate = parse_qs(parsed.query).get("v", [""])[0]
    if YOUTUBE_ID_RE.match(candidate):
        return candidate
    return None


def require_stream_id(value) -> str:
    stream_id = parse_stream_id(value)
    if stream_id is None:
        raise InvalidStreamInput(str(value or ""))
    return stream_id


def watch_url(stream_id: str) -> str:
    return f"https://www.youtube.com/watch?v={quote(stream_id)}"


def chat_url(stream_id: str) -> str:
    return f"https://www.youtube.com/live_chat?v={quote(stream_id)}"


def is_stream_url(value: str) -> bool:
    parsed = urlparse(str(value or ""))
    return bool(parsed.scheme and parsed.netloc)


def quality_label(value: str) -> str:
    return QUALITY_LABELS.get(value) or value or "Auto"


def ytdl_format_for_quality(value: str) -> str:
    height = QUALITY_HEIGHTS.get(str(value or ""))
    if height is None:
        return "bestvideo+bestaudio/best"
    return f"bestvideo[height<={height}]+bestaudio/best[height<={height}]"


def format_seconds(seconds) -> str:
    number = as_number(seconds)
    if number is None:
        return "--:--"
    sign = "-" if number < 0 else ""
    total_seconds = int(round(abs(number)))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60
    if hours > 0:
        return f"{sign}{hours}:{minutes:02d}:{secs:02d}"
    return f"{sign}{minutes:02d}:{secs:02d}"


def get_resource_path(relative_path: str) -> Path:
    """Get absolute path to resource, works for dev and for PyInstaller."""
    if getattr(sys, "frozen", False):
        base_path = Path(sys._MEIPASS)
    else:
        base_path = Path(__file__).parent
    return base_path / relative_path


def get_user_data_dir() -> Path:
    """Get writable base directory for settings and logs."""
    override = os.getenv("MULTISTREAM_DATA_DIR")
    if override:
        base = Path(override)
    elif getattr(sys, "frozen", False) and os.getenv("APPDATA"):
        base = Path(os.getenv("APPDATA")) / "Multistream"
    else:
        base = Path.home() / ".multistream"
    base.mkdir(parents=True, exist_ok=True)
    return base


def get_user_data_path(filename: str) -> str:
    return str(get_user_data_dir() / filename)
