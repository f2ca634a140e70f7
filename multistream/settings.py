import json
import logging
from typing import Any, Mapping

from PySide6.QtCore import QSettings

from .geometry import DEFAULT_LAYOUT, DEFAULT_PIP, LayoutMode, PipRect, Slot, SplitSizes
from .keybindings import normalize_keymap
from .state import LayoutState, MoveStrategy, StreamSlot
from .utils import PREFERRED_DEFAULT_QUALITY, QUALITY_ORDER, as_number, get_user_data_path, parse_stream_id

LAYOUT_KEY = "session/layout"
KEYMAP_KEY = "input/keymap"
SYNC_KEY = "sync/state"
SLOT_KEY = "streams/slot{}"
SHORTCUTS_ENABLED_KEY = "input/shortcuts_enabled"
DEFAULT_QUALITY_KEY = "player/default_quality"
SHOW_TITLES_KEY = "overlay/show_titles"
SHOW_METRICS_KEY = "overlay/show_metrics"
LANGUAGE_KEY = "player/language"

LAYOUT_VERSION = 1
KEYMAP_VERSION = 2
SYNC_VERSION = 1
SLOT_VERSION = 1


def _to_int(value, default: int, min_value: int | None = None, max_value: int | None = None) -> int:
    number = as_number(value)
    number = int(default) if number is None else int(number)
    if min_value is not None:
        number = max(min_value, number)
    if max_value is not None:
        number = min(max_value, number)
    return number


def _to_float(value, default: float) -> float:
    number = as_number(value)
    return float(default) if number is None else number


def _to_choice(value, default: str, allowed) -> str:
    token = str(value or "").strip()
    if token in allowed:
        return token
    return default


def _to_bool(value, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        token = value.strip().lower()
        if token in {"1", "true", "yes", "on"}:
            return True
        if token in {"0", "false", "no", "off"}:
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def get_settings() -> QSettings:
    """Returns a QSettings object pointing to a visible .ini file."""
    path = get_user_data_path("settings.ini")
    return QSettings(path, QSettings.IniFormat)


class KeyValueStore:
    """JSON values over QSettings. Reads fall back, writes never raise."""

    def __init__(self, backend=None):
        self._backend = backend if backend is not None else get_settings()

    @property
    def location(self) -> str:
        try:
            return str(self._backend.fileName())
        except Exception:
            return ""

    def get(self, key: str, fallback: Any = None) -> Any:
        try:
            raw = self._backend.value(key, None)
        except Exception as e:
            logging.debug("Settings read failed for %s: %s", key, e)
            return fallback
        if raw is None:
            return fallback
        if isinstance(raw, (list, tuple)):
            # INI readers split unquoted commas into lists.
            raw = ",".join(str(part) for part in raw)
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logging.debug("Settings value for %s is not JSON; using fallback", key)
            return fallback

    def set(self, key: str, value: Any) -> bool:
        try:
            self._backend.setValue(key, json.dumps(value, separators=(",", ":")))
            self._backend.sync()
            return True
        except Exception as e:
            logging.debug("Settings write failed for %s: %s", key, e)
            return False

    def remove(self, key: str) -> None:
        try:
            self._backend.remove(key)
            self._backend.sync()
        except Exception as e:
            logging.debug("Settings remove failed for %s: %s", key, e)


# ---- versioned records -------------------------------------------------


def migrate_layout(raw) -> LayoutState:
    if not isinstance(raw, Mapping):
        # v0 stored the bare layout number.
        return LayoutState(mode=LayoutMode.coerce(raw, DEFAULT_LAYOUT))
    return LayoutState(
        mode=LayoutMode.coerce(raw.get("mode"), DEFAULT_LAYOUT),
        swap=_to_bool(raw.get("swap"), False),
        splits=SplitSizes.from_dict(raw.get("splits")),
        pip=PipRect.from_dict(raw.get("pip"), DEFAULT_PIP),
        chat_visible=_to_bool(raw.get("chat_visible"), True),
        chat_tab=_to_int(raw.get("chat_tab"), 1, 1, 2),
    )


def dump_layout(layout: LayoutState) -> dict:
    return {
        "version": LAYOUT_VERSION,
        "mode": layout.mode.number,
        "swap": bool(layout.swap),
        "splits": layout.splits.to_dict(),
        "pip": layout.pip.to_dict(),
        "chat_visible": bool(layout.chat_visible),
        "chat_tab": int(layout.chat_tab),
    }


def migrate_keymap(raw) -> dict:
    if isinstance(raw, Mapping) and "bindings" in raw:
        return normalize_keymap(raw.get("bindings"))
    # v1 stored the action mapping directly, values possibly plain strings.
    return normalize_keymap(raw)


def dump_keymap(keymap: Mapping) -> dict:
    return {"version": KEYMAP_VERSION, "bindings": normalize_keymap(keymap)}


def migrate_sync(raw) -> tuple[float, MoveStrategy]:
    source = raw if isinstance(raw, Mapping) else {}
    target = _to_float(source.get("target_drift"), 0.0)
    move = _to_choice(source.get("move"), MoveStrategy.AUTO.value, {m.value for m in MoveStrategy})
    return target, MoveStrategy(move)


def dump_sync(target_drift: float, move: MoveStrategy) -> dict:
    return {"version": SYNC_VERSION, "target_drift": float(target_drift), "move": move.value}


def migrate_slot(raw, slot: Slot) -> StreamSlot:
    record = StreamSlot(slot, muted=slot is Slot.S3)
    if not isinstance(raw, Mapping):
        return record
    record.stream_id = parse_stream_id(raw.get("stream"))
    record.enabled = _to_bool(raw.get("enabled"), True)
    record.volume = _to_int(raw.get("volume"), 100, 0, 100)
    record.muted = _to_bool(raw.get("muted"), record.muted)
    record.quality = _to_choice(raw.get("quality"), "default", QUALITY_ORDER)
    return record


def dump_slot(record: StreamSlot) -> dict:
    return {
        "version": SLOT_VERSION,
        "stream": record.stream_id or "",
        "enabled": bool(record.enabled),
        "volume": int(record.volume),
        "muted": bool(record.muted),
        "quality": record.quality,
    }


# ---- load / save -------------------------------------------------------


def load_layout(store: KeyValueStore) -> LayoutState:
    return migrate_layout(store.get(LAYOUT_KEY, None))


def save_layout(store: KeyValueStore, layout: LayoutState) -> None:
    store.set(LAYOUT_KEY, dump_layout(layout))


def load_keymap(store: KeyValueStore) -> dict:
    return migrate_keymap(store.get(KEYMAP_KEY, None))


def save_keymap(store: KeyValueStore, keymap: Mapping) -> None:
    store.set(KEYMAP_KEY, dump_keymap(keymap))


def load_sync(store: KeyValueStore) -> tuple[float, MoveStrategy]:
    return migrate_sync(store.get(SYNC_KEY, None))


def save_sync(store: KeyValueStore, target_drift: float, move: MoveStrategy) -> None:
    store.set(SYNC_KEY, dump_sync(target_drift, move))


def load_slots(store: KeyValueStore) -> dict:
    return {slot: migrate_slot(store.get(SLOT_KEY.format(int(slot)), None), slot) for slot in Slot}


def save_slot(store: KeyValueStore, record: StreamSlot) -> None:
    store.set(SLOT_KEY.format(int(record.slot)), dump_slot(record))


def load_flag(store: KeyValueStore, key: str, default: bool) -> bool:
    return _to_bool(store.get(key, default), default)


def load_default_quality(store: KeyValueStore) -> str:
    return _to_choice(store.get(DEFAULT_QUALITY_KEY, None), PREFERRED_DEFAULT_QUALITY, QUALITY_ORDER)


def load_language_setting(default: str = "") -> str:
    """Loads saved language code, returns empty string if none (auto-detect)."""
    value = KeyValueStore().get(LANGUAGE_KEY, default)
    return str(value or default)
