from PySide6.QtCore import QSettings

from multistream.geometry import DEFAULT_PIP, LayoutMode, PipRect, Slot, SplitSizes
from multistream.keybindings import reset_keymap
from multistream.settings import (
    KEYMAP_KEY,
    KEYMAP_VERSION,
    LAYOUT_KEY,
    SLOT_KEY,
    SYNC_KEY,
    KeyValueStore,
    load_default_quality,
    load_flag,
    load_keymap,
    load_layout,
    load_slots,
    load_sync,
    save_keymap,
    save_layout,
    save_slot,
    save_sync,
)
from multistream.state import LayoutState, MoveStrategy


class BrokenBackend:
    def value(self, key, default=None):
        raise RuntimeError("disk gone")

    def setValue(self, key, value):
        raise RuntimeError("disk gone")

    def sync(self):
        pass

    def remove(self, key):
        raise RuntimeError("disk gone")

    def fileName(self):
        raise RuntimeError("disk gone")


def test_store_round_trips_json_values(store):
    assert store.set("a/b", {"x": [1, 2], "y": "z"})
    assert store.get("a/b") == {"x": [1, 2], "y": "z"}
    assert store.get("missing", "fallback") == "fallback"


def test_store_survives_reopen(tmp_path):
    path = str(tmp_path / "settings.ini")
    KeyValueStore(QSettings(path, QSettings.IniFormat)).set("a/b", [1, "two"])
    reopened = KeyValueStore(QSettings(path, QSettings.IniFormat))
    assert reopened.get("a/b") == [1, "two"]


def test_store_falls_back_on_garbage(store):
    store._backend.setValue("raw", "{not json")
    assert store.get("raw", 7) == 7


def test_store_never_raises():
    store = KeyValueStore(BrokenBackend())
    assert store.get("k", "fallback") == "fallback"
    assert store.set("k", 1) is False
    store.remove("k")
    assert store.location == ""


def test_layout_defaults_when_empty(store):
    layout = load_layout(store)
    assert layout.mode is LayoutMode.SIDEBAR
    assert layout.pip == DEFAULT_PIP
    assert layout.splits == SplitSizes()


def test_layout_round_trip(store):
    layout = LayoutState(
        mode=LayoutMode.PIP,
        swap=True,
        splits=SplitSizes(chat_width=400, border=3),
        pip=PipRect(100, 50, 320, 180),
        chat_visible=False,
        chat_tab=2,
    )
    save_layout(store, layout)
    loaded = load_layout(store)
    assert loaded.mode is LayoutMode.PIP
    assert loaded.swap is True
    assert loaded.splits == SplitSizes(chat_width=400, border=3)
    assert loaded.pip == PipRect(100, 50, 320, 180)
    assert loaded.chat_visible is False
    assert loaded.chat_tab == 2
    assert store.get(LAYOUT_KEY)["version"] == 1


def test_legacy_bare_layout_number_migrates(store):
    store.set(LAYOUT_KEY, 5)
    assert load_layout(store).mode is LayoutMode.SIDE_BY_SIDE


def test_invalid_layout_falls_back_to_default(store):
    store.set(LAYOUT_KEY, {"mode": 77, "chat_tab": 9})
    layout = load_layout(store)
    assert layout.mode is LayoutMode.SIDEBAR
    assert layout.chat_tab == 2


def test_keymap_round_trip(store):
    keymap = reset_keymap()
    keymap["swap"] = ["w"]
    save_keymap(store, keymap)
    assert store.get(KEYMAP_KEY)["version"] == KEYMAP_VERSION
    assert load_keymap(store) == keymap


def test_legacy_keymap_migrates(store):
    store.set(KEYMAP_KEY, {"swap": "w", "bogus": ["b"]})
    keymap = load_keymap(store)
    assert keymap["swap"] == ["w"]
    assert "bogus" not in keymap
    assert keymap["sync_now"] == ["g", "KeyG"]


def test_sync_round_trip(store):
    assert load_sync(store) == (0.0, MoveStrategy.AUTO)
    save_sync(store, 2.5, MoveStrategy.S2)
    assert load_sync(store) == (2.5, MoveStrategy.S2)


def test_sync_bad_values_fall_back(store):
    store.set(SYNC_KEY, {"target_drift": "abc", "move": "sideways"})
    assert load_sync(store) == (0.0, MoveStrategy.AUTO)


def test_slots_round_trip(store):
    slots = load_slots(store)
    assert slots[Slot.S3].muted is True
    assert slots[Slot.S1].stream_id is None

    record = slots[Slot.S2]
    record.stream_id = "bbbbbbbbbbb"
    record.volume = 40
    record.quality = "hd720"
    record.enabled = False
    save_slot(store, record)

    loaded = load_slots(store)[Slot.S2]
    assert loaded.stream_id == "bbbbbbbbbbb"
    assert loaded.volume == 40
    assert loaded.quality == "hd720"
    assert loaded.enabled is False


def test_slot_rejects_invalid_values(store):
    store.set(SLOT_KEY.format(1), {"stream": "garbage", "volume": 900, "quality": "8k"})
    record = load_slots(store)[Slot.S1]
    assert record.stream_id is None
    assert record.volume == 100
    assert record.quality == "default"


def test_flags_and_default_quality(store):
    assert load_flag(store, "input/shortcuts_enabled", True) is True
    store.set("input/shortcuts_enabled", False)
    assert load_flag(store, "input/shortcuts_enabled", True) is False
    assert load_default_quality(store) == "highres"
    store.set("player/default_quality", "bogus")
    assert load_default_quality(store) == "highres"


def test_non_finite_numbers_fall_back_to_defaults(store):
    store._backend.setValue(SLOT_KEY.format(1), '{"version": 1, "stream": "aaaaaaaaaaa", "volume": 1e999}')
    store._backend.setValue(LAYOUT_KEY, '{"version": 1, "mode": 1e999, "chat_tab": 1e999}')
    record = load_slots(store)[Slot.S1]
    assert record.stream_id == "aaaaaaaaaaa"
    assert record.volume == 100
    layout = load_layout(store)
    assert layout.mode is LayoutMode.SIDEBAR
    assert layout.chat_tab == 1
