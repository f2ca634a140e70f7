import pytest

from multistream.keybindings import (
    ACTION_IDS,
    DEFAULT_KEYMAP,
    MAX_TRIGGERS,
    TOGGLE_SHORTCUTS,
    InvalidKeyCapture,
    KeyDispatcher,
    KeyEvent,
    capture_trigger,
    find_duplicates,
    matches,
    normalize_keymap,
    remove_trigger,
    reset_keymap,
    set_trigger,
)


def test_catalog_covers_every_default():
    assert len(ACTION_IDS) == 33
    assert set(DEFAULT_KEYMAP) == set(ACTION_IDS)


def test_normalize_is_idempotent():
    once = normalize_keymap({"swap": "w", "sync_now": ["g", "KeyG", "h"]})
    assert normalize_keymap(once) == once


def test_legacy_string_binding_upgrades_to_list():
    keymap = normalize_keymap({"swap": "w"})
    assert keymap["swap"] == ["w"]
    assert all(isinstance(v, list) and len(v) <= MAX_TRIGGERS for v in keymap.values())


def test_normalize_drops_unknown_actions_and_fills_defaults():
    keymap = normalize_keymap({"fly": ["f"], "swap": ["w"]})
    assert "fly" not in keymap
    assert keymap["sync_now"] == ["g", "KeyG"]
    assert normalize_keymap(None) == reset_keymap()


def test_normalize_keeps_explicitly_empty_binding():
    assert normalize_keymap({"mute_all": []})["mute_all"] == []


def test_matches_key_or_code_case_insensitively():
    assert matches("g", "G", "KeyG")
    assert matches("KeyG", "x", "keyg")
    assert matches("NumKey3", "3", "Numpad3")
    assert not matches("g", "h", "KeyH")
    assert not matches("", "", "")


def test_dispatch_resolves_layout_keys():
    dispatcher = KeyDispatcher()
    assert dispatcher.resolve(KeyEvent(key="1", code="Digit1")) == "layout_1"
    assert dispatcher.resolve(KeyEvent(key="3", code="Numpad3")) == "layout_3"


def test_default_nine_goes_to_layout_nine():
    # layout_9 and set_mark_s1 both claim "9"; the earlier declaration wins.
    assert KeyDispatcher().resolve(KeyEvent(key="9", code="Digit9")) == "layout_9"


def test_dispatch_exclusivity_with_duplicate_trigger():
    keymap = set_trigger(reset_keymap(), "toggle_chat", 0, "g")
    duplicates = find_duplicates(keymap)
    assert set(duplicates["g"]) == {"toggle_chat", "sync_now"}

    dispatcher = KeyDispatcher(keymap)
    assert dispatcher.resolve(KeyEvent(key="g", code="KeyG")) == "toggle_chat"


def test_typing_in_text_fields_is_ignored():
    dispatcher = KeyDispatcher()
    assert dispatcher.resolve(KeyEvent(key="g", code="KeyG", target="input")) is None
    assert dispatcher.resolve(KeyEvent(key="g", code="KeyG", target="TEXTAREA")) is None
    assert dispatcher.resolve(KeyEvent(key="g", code="KeyG", editable=True)) is None


def test_disabled_dispatcher_only_toggles_back():
    dispatcher = KeyDispatcher(enabled=False)
    assert dispatcher.resolve(KeyEvent(key="g", code="KeyG")) is None
    assert dispatcher.resolve(KeyEvent(key="s", code="KeyS")) == TOGGLE_SHORTCUTS


def test_unbound_key_resolves_to_nothing():
    assert KeyDispatcher().resolve(KeyEvent(key="z", code="KeyZ")) is None


def test_capture_trigger_prefers_printable_key():
    assert capture_trigger("g", "KeyG") == "g"
    assert capture_trigger("ArrowUp", "ArrowUp") == "ArrowUp"
    assert capture_trigger("", "Numpad5") == "Numpad5"
    assert capture_trigger(" ", "Space") == "Space"


@pytest.mark.parametrize("key,code", [("Shift", "ShiftLeft"), ("Control", "ControlLeft"), ("", "")])
def test_capture_trigger_rejects_modifiers(key, code):
    with pytest.raises(InvalidKeyCapture):
        capture_trigger(key, code)


def test_set_trigger_replaces_and_appends():
    keymap = set_trigger(reset_keymap(), "swap", 0, "w")
    assert keymap["swap"] == ["w", "KeyQ"]
    keymap = set_trigger(normalize_keymap({"swap": ["w"]}), "swap", 1, "KeyW")
    assert keymap["swap"] == ["w", "KeyW"]
    keymap = set_trigger(keymap, "swap", 5, "x")
    assert len(keymap["swap"]) == MAX_TRIGGERS


def test_set_trigger_unknown_action():
    with pytest.raises(KeyError):
        set_trigger(reset_keymap(), "fly", 0, "f")


def test_remove_trigger():
    keymap = remove_trigger(reset_keymap(), "swap", 0)
    assert keymap["swap"] == ["KeyQ"]
    assert remove_trigger(keymap, "swap", 9)["swap"] == ["KeyQ"]


def test_dispatcher_keymap_setter_normalizes():
    dispatcher = KeyDispatcher()
    dispatcher.keymap = {"swap": "w"}
    assert dispatcher.keymap["swap"] == ["w"]
    assert dispatcher.resolve(KeyEvent(key="w", code="KeyW")) == "swap"


def test_list_triggers_are_stripped_like_legacy_strings():
    keymap = normalize_keymap({"sync_now": [" g ", "KeyG"], "swap": " w "})
    assert keymap["sync_now"] == ["g", "KeyG"]
    assert keymap["swap"] == ["w"]
    dispatcher = KeyDispatcher({"sync_now": [" g"]})
    assert dispatcher.resolve(KeyEvent(key="g", code="")) == "sync_now"


def test_set_trigger_rejects_negative_index():
    with pytest.raises(KeyError):
        set_trigger(normalize_keymap({"swap": []}), "swap", -1, "w")
