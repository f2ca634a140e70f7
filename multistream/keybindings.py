"""Keyboard shortcuts: up to two trigger keys per action.

A trigger is either a logical key name (``"g"``, ``"ArrowUp"``) or a
physical key code (``"KeyG"``, ``"Numpad1"``); both are compared
case-insensitively so numpad and layout-independent bindings keep working
on any keyboard layout. Actions are tried in declaration order and the
first match wins, which is what makes a misconfigured duplicate harmless.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

MAX_TRIGGERS = 2
TOGGLE_SHORTCUTS = "toggle_shortcuts"

ACTIONS = (
    ("layout_1", "Layout 1"),
    ("layout_2", "Layout 2"),
    ("layout_3", "Layout 3"),
    ("layout_4", "Layout 4"),
    ("layout_5", "Layout 5"),
    ("layout_6", "Layout 6"),
    ("layout_7", "Layout 7"),
    ("layout_8", "Layout 8"),
    ("layout_9", "Layout 9"),
    ("swap", "Swap Streams"),
    (TOGGLE_SHORTCUTS, "Toggle Shortcuts"),
    ("open_settings", "Open Settings"),
    ("focus_audio", "Focus Audio (cycle)"),
    ("mute_all", "Mute All"),
    ("unmute_all", "Unmute All"),
    ("nudge_back", "Seek -10s"),
    ("nudge_forward", "Seek +10s"),
    ("toggle_chat", "Toggle Chat / Tab"),
    ("toggle_info", "Toggle Titles + Metrics"),
    ("chat_width_dec", "L2 Chat width -"),
    ("chat_width_inc", "L2 Chat width +"),
    ("s2_height_dec", "L3 S2 height -"),
    ("s2_height_inc", "L3 S2 height +"),
    ("right_width_dec", "L3 Right width -"),
    ("right_width_inc", "L3 Right width +"),
    ("border_dec", "Border -"),
    ("border_inc", "Border +"),
    ("set_mark_s1", "Set S1 Mark"),
    ("set_mark_s2", "Set S2 Mark"),
    ("sync_s2_to_s1", "S2 to S1 mark"),
    ("sync_s1_to_s2", "S1 to S2 mark"),
    ("set_sync_from_current", "Set Sync target"),
    ("sync_now", "Sync Now"),
)
ACTION_IDS = tuple(action for action, _ in ACTIONS)
ACTION_LABELS = dict(ACTIONS)

DEFAULT_KEYMAP = {
    **{f"layout_{n}": [str(n), f"Numpad{n}"] for n in range(1, 10)},
    "swap": ["q", "KeyQ"],
    TOGGLE_SHORTCUTS: ["s", "KeyS"],
    "open_settings": ["o", "KeyO"],
    "focus_audio": ["a", "KeyA"],
    "mute_all": ["m", "KeyM"],
    "unmute_all": ["u", "KeyU"],
    "nudge_back": ["["],
    "nudge_forward": ["]"],
    "toggle_chat": ["c", "KeyC"],
    "toggle_info": ["i", "KeyI"],
    "chat_width_dec": [","],
    "chat_width_inc": ["."],
    "s2_height_dec": ["ArrowDown"],
    "s2_height_inc": ["ArrowUp"],
    "right_width_dec": ["-"],
    "right_width_inc": ["="],
    "border_dec": ["ArrowLeft"],
    "border_inc": ["ArrowRight"],
    "set_mark_s1": ["9"],
    "set_mark_s2": ["0"],
    "sync_s2_to_s1": ["("],
    "sync_s1_to_s2": [")"],
    "set_sync_from_current": ["`"],
    "sync_now": ["g", "KeyG"],
}

TEXT_ENTRY_TARGETS = frozenset({"input", "textarea", "select"})
MODIFIER_KEYS = frozenset(
    {"shift", "control", "ctrl", "alt", "altgraph", "meta", "os", "capslock", "numlock", "fn"}
)


class InvalidKeyCapture(ValueError):
    """Raised when a captured key cannot be used as a trigger."""


@dataclass(frozen=True)
class KeyEvent:
    key: str = ""
    code: str = ""
    target: str = ""
    editable: bool = False

    @property
    def typing(self) -> bool:
        return self.editable or self.target.lower() in TEXT_ENTRY_TARGETS


def matches(trigger: str, key: str, code: str) -> bool:
    if not trigger:
        return False
    wanted = trigger.lower()
    k = (key or "").lower()
    c = (code or "").lower()
    if wanted == k or wanted == c:
        return True
    # Older stored maps spell numpad digits "NumKeyN".
    if wanted.startswith("numkey") and c == wanted.replace("numkey", "numpad", 1):
        return True
    return False


def _clean_triggers(value) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    cleaned = []
    for item in value:
        if isinstance(item, str) and item.strip():
            cleaned.append(item.strip())
    return cleaned[:MAX_TRIGGERS]


def normalize_keymap(stored) -> dict:
    """Defaults overlaid with ``stored``, every entry a list of at most two.

    Accepts the legacy single-string form. Unknown actions and unusable
    entries are dropped. Normalizing a normalized map returns an equal map.
    """
    source = stored if isinstance(stored, Mapping) else {}
    keymap = {}
    for action in ACTION_IDS:
        if action in source:
            keymap[action] = _clean_triggers(source[action])
        else:
            keymap[action] = list(DEFAULT_KEYMAP.get(action, []))
    return keymap


def reset_keymap() -> dict:
    return normalize_keymap(DEFAULT_KEYMAP)


def find_duplicates(keymap: Mapping) -> dict:
    """Trigger (case-folded) -> actions using it, for triggers used more than once."""
    users: dict[str, list[str]] = {}
    for action in ACTION_IDS:
        for trigger in keymap.get(action, []) or []:
            if trigger:
                users.setdefault(trigger.lower(), []).append(action)
    return {trigger: actions for trigger, actions in users.items() if len(actions) > 1}


def capture_trigger(key: str, code: str) -> str:
    """Turn a captured key press into a trigger string.

    Printable keys are stored by name, everything else by physical code.
    """
    key = key or ""
    code = code or ""
    if key.lower() in MODIFIER_KEYS or (not key and not code):
        raise InvalidKeyCapture(key or code)
    if len(key) == 1 and not key.isspace():
        return key
    if code:
        return code
    if key:
        return key
    raise InvalidKeyCapture(key)


def set_trigger(keymap: Mapping, action: str, index: int, trigger: str) -> dict:
    if action not in ACTION_LABELS or index < 0:
        raise KeyError(action)
    updated = normalize_keymap(keymap)
    current = list(updated[action])
    if index >= len(current):
        current.append(trigger)
    else:
        current[index] = trigger
    deduped = []
    for item in current:
        if item and item.strip() and item not in deduped:
            deduped.append(item)
    updated[action] = deduped[:MAX_TRIGGERS]
    return updated


def remove_trigger(keymap: Mapping, action: str, index: int) -> dict:
    updated = normalize_keymap(keymap)
    current = list(updated.get(action, []))
    if 0 <= index < len(current):
        del current[index]
    updated[action] = current
    return updated


class KeyDispatcher:
    """Resolves key events to action ids.

    ``toggle_shortcuts`` stays reachable while the dispatcher is disabled
    so the user can always turn shortcuts back on.
    """

    def __init__(self, keymap=None, enabled: bool = True):
        self._keymap = normalize_keymap(keymap)
        self.enabled = enabled

    @property
    def keymap(self) -> dict:
        return self._keymap

    @keymap.setter
    def keymap(self, value) -> None:
        self._keymap = normalize_keymap(value)

    def pressed(self, action: str, key: str, code: str) -> bool:
        return any(matches(trigger, key, code) for trigger in self._keymap.get(action, []))

    def resolve(self, event: KeyEvent) -> Optional[str]:
        if event.typing:
            return None
        if not self.enabled:
            if self.pressed(TOGGLE_SHORTCUTS, event.key, event.code):
                return TOGGLE_SHORTCUTS
            return None
        for action in ACTION_IDS:
            if self.pressed(action, event.key, event.code):
                logging.debug("Key %r/%r -> %s", event.key, event.code, action)
                return action
        return None
