import logging
from typing import Callable, Optional
from urllib.parse import parse_qs, urlencode

from .geometry import (
    HIDDEN,
    GeometryEngine,
    LayoutMode,
    Rect,
    Size,
    Slot,
    Targets,
    cursor_for,
    drag_pip,
    normalize_handle,
    resize_pip,
)
from .i18n import tr
from .keybindings import (
    TOGGLE_SHORTCUTS,
    InvalidKeyCapture,
    KeyDispatcher,
    KeyEvent,
    capture_trigger,
    find_duplicates,
    remove_trigger,
    reset_keymap,
    set_trigger,
)
from .proxy import PlayerFactory, SafePlayer
from .retry import FRAME_MS, BoundedRetry, Scheduler
from .settings import (
    DEFAULT_QUALITY_KEY,
    SHORTCUTS_ENABLED_KEY,
    SHOW_METRICS_KEY,
    SHOW_TITLES_KEY,
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
from .state import AudioFocus, LayoutState, MoveStrategy, SessionState, StreamInfo
from .sync import SyncEngine
from .utils import QUALITY_ORDER, InvalidStreamInput, as_number, format_seconds, quality_label, require_stream_id

GEOMETRY_SETTLE_FRAMES = 8
QUALITY_RETRY_MS = 250
QUALITY_RETRY_ATTEMPTS = 12
NUDGE_SECONDS = 10
INFO_INSET = 12

# () -> (viewport size or None, {"s1": Rect|None, "s2": ..., "chat": ...})
MeasureFn = Callable[[], tuple]
ApplyFn = Callable[[Targets], None]


class SessionController:
    """Single owner of the session state.

    The render layer calls the public methods below and draws whatever
    ``rect``/``chat_rect``/``pip_rect`` report; nothing here raises past a
    public method.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        player_factory: Optional[PlayerFactory] = None,
        scheduler: Optional[Scheduler] = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.store = store if store is not None else KeyValueStore()
        self._factory = player_factory
        self._notify = notify
        self.on_open_settings: Optional[Callable[[], None]] = None
        self._measure: Optional[MeasureFn] = None
        self._apply: Optional[ApplyFn] = None

        self.state = SessionState()
        self._load()

        self.geometry = GeometryEngine()
        self.sync = SyncEngine(self.state.slots, self.state.sync)
        self.dispatcher = KeyDispatcher(load_keymap(self.store), enabled=self.state.shortcuts_enabled)
        self._settle = BoundedRetry(FRAME_MS, GEOMETRY_SETTLE_FRAMES, scheduler, "geometry-settle")
        self._quality_retry = {
            slot: BoundedRetry(QUALITY_RETRY_MS, QUALITY_RETRY_ATTEMPTS, scheduler, f"quality-{slot.key}")
            for slot in Slot
        }
        self._actions = self._build_actions()

    def _load(self) -> None:
        state = self.state
        state.slots.update(load_slots(self.store))
        state.layout = load_layout(self.store)
        state.sync.target_drift_seconds, state.sync.move_strategy = load_sync(self.store)
        state.shortcuts_enabled = load_flag(self.store, SHORTCUTS_ENABLED_KEY, True)
        state.show_titles = load_flag(self.store, SHOW_TITLES_KEY, True)
        state.show_metrics = load_flag(self.store, SHOW_METRICS_KEY, True)
        state.default_quality = load_default_quality(self.store)
        logging.info(
            "Session loaded: layout=%d streams=%s shortcuts=%s",
            state.layout.mode.number,
            {slot.key: record.stream_id for slot, record in state.slots.items()},
            state.shortcuts_enabled,
        )

    def _say(self, text: str) -> None:
        if self._notify is not None:
            self._notify(text)

    # ---- view binding / geometry -------------------------------------

    def bind_view(self, measure: MeasureFn, apply: ApplyFn) -> None:
        self._measure = measure
        self._apply = apply

    def start(self) -> None:
        for slot in Slot:
            self._sync_player(slot)
        self.relayout()

    def shutdown(self) -> None:
        self._settle.cancel()
        for slot, record in self.state.slots.items():
            self._quality_retry[slot].cancel()
            if record.player is not None:
                record.player.destroy()
                record.player = None

    def relayout(self) -> None:
        """Recompute now and keep recomputing for a few frames.

        Embedded players settle their intrinsic size asynchronously after
        a layout change; a newer call cancels the running burst.
        """
        self._settle.start(self.recompute)

    def recompute(self) -> Targets:
        layout = self.state.layout
        measured = {}
        viewport = layout.viewport
        if self._measure is not None:
            measured_viewport, measured = self._measure()
            if measured_viewport is not None:
                viewport = measured_viewport
        enabled = [slot for slot, record in self.state.slots.items() if record.active]
        targets = self.geometry.compute(
            layout.mode,
            layout.swap,
            layout.splits,
            viewport,
            layout.pip,
            measured,
            enabled,
            layout.chat_visible,
        )
        if self._apply is not None:
            self._apply(targets)
        return targets

    def set_viewport(self, width: float, height: float) -> None:
        layout = self.state.layout
        layout.viewport = Size(width, height)
        # Keep the overlay inside a shrunken stage.
        layout.pip = drag_pip(layout.pip, layout.pip.x, layout.pip.y, layout.viewport)
        self.relayout()

    def rect(self, slot: Slot) -> Rect:
        return self.geometry.rect(slot)

    def chat_rect(self) -> Rect:
        targets = self.geometry.targets
        return targets.chat if targets is not None else HIDDEN

    def pip_rect(self) -> Optional[Rect]:
        targets = self.geometry.targets
        return targets.pip if targets is not None else None

    def chat_stream(self) -> Optional[str]:
        layout = self.state.layout
        slots = self.state.slots
        if self.chat_rect().visible:
            if layout.mode is LayoutMode.SIDEBAR and layout.chat_tab == 2:
                return slots[Slot.S2].stream_id
            return slots[Slot.S1].stream_id
        return None

    def info_anchor(self, slot: Slot) -> Optional[tuple]:
        if not (self.state.show_titles or self.state.show_metrics):
            return None
        rect = self.rect(slot)
        if not rect.visible:
            return None
        return rect.left + INFO_INSET, rect.top + INFO_INSET

    def set_info(self, slot: Slot, info: Optional[StreamInfo]) -> None:
        self.state.slots[slot].info = info

    # ---- layout --------------------------------------------------------

    def _layout_changed(self) -> None:
        save_layout(self.store, self.state.layout)
        self.relayout()

    def set_layout(self, mode) -> None:
        layout = self.state.layout
        layout.mode = LayoutMode.coerce(mode, layout.mode)
        logging.info("Layout -> %d (%s)", layout.mode.number, layout.mode.name)
        self._layout_changed()
        self._say(tr("Layout {}", layout.mode.number))

    def toggle_swap(self) -> None:
        self.state.layout.swap = not self.state.layout.swap
        self._layout_changed()
        self._say(tr("Swapped"))

    def adjust_split(self, name: str, direction: int) -> None:
        layout = self.state.layout
        if name == "chat_width" and layout.mode is not LayoutMode.CHAT:
            return
        if name in ("s2_height", "right_width") and layout.mode is not LayoutMode.SIDEBAR:
            return
        layout.splits = layout.splits.adjusted(name, direction)
        self._layout_changed()
        messages = {
            "chat_width": "Chat width: {}px",
            "s2_height": "Stream 2 height: {}px",
            "right_width": "Right column: {}px",
            "border": "Border: {}px",
        }
        self._say(tr(messages[name], getattr(layout.splits, name)))

    def set_chat_visible(self, visible: bool) -> None:
        self.state.layout.chat_visible = bool(visible)
        self._layout_changed()

    def toggle_chat(self) -> None:
        layout = self.state.layout
        if layout.mode is not LayoutMode.SIDEBAR:
            return
        if not layout.chat_visible:
            layout.chat_visible = True
            self._layout_changed()
            self._say(tr("Chat shown"))
            return
        has_s2 = bool(self.state.slots[Slot.S2].stream_id)
        layout.chat_tab = 2 if (has_s2 and layout.chat_tab == 1) else 1
        save_layout(self.store, layout)
        self._say(tr("Chat tab: stream {}", layout.chat_tab))

    def toggle_info(self) -> None:
        shown = not (self.state.show_titles or self.state.show_metrics)
        self.state.show_titles = shown
        self.state.show_metrics = shown
        self.store.set(SHOW_TITLES_KEY, shown)
        self.store.set(SHOW_METRICS_KEY, shown)
        self._say(tr("Info on") if shown else tr("Info off"))

    def reset_layout(self) -> None:
        current = self.state.layout
        self.state.layout = LayoutState(mode=current.mode, viewport=current.viewport)
        self.state.focus = AudioFocus.BOTH
        slots = self.state.slots
        slots[Slot.S1].muted = False
        slots[Slot.S2].muted = False
        slots[Slot.S3].muted = True
        for record in slots.values():
            save_slot(self.store, record)
        self.apply_audio()
        self._layout_changed()
        self._say(tr("Layout reset"))

    # ---- PIP interaction -----------------------------------------------

    def begin_pip_interaction(self, handle=None) -> None:
        interaction = self.state.pip_interaction
        interaction.active = True
        interaction.start = self.state.layout.pip
        interaction.handle = normalize_handle(handle)
        interaction.cursor = cursor_for(handle) if interaction.handle else "grabbing"

    def drag_pip(self, x: float, y: float) -> None:
        layout = self.state.layout
        layout.pip = drag_pip(layout.pip, x, y, layout.viewport)
        self.recompute()

    def resize_pip(self, dx: float, dy: float, lock_aspect: bool = False) -> None:
        interaction = self.state.pip_interaction
        if not interaction.active or interaction.handle is None:
            return
        layout = self.state.layout
        layout.pip = resize_pip(interaction.start, interaction.handle, dx, dy, layout.viewport, lock_aspect)
        self.recompute()

    def end_pip_interaction(self) -> None:
        interaction = self.state.pip_interaction
        interaction.active = False
        interaction.handle = None
        interaction.start = None
        interaction.cursor = "default"
        save_layout(self.store, self.state.layout)

    def cursor(self) -> str:
        return self.state.pip_interaction.cursor

    # ---- streams and players -----------------------------------------

    def _sync_player(self, slot: Slot) -> None:
        record = self.state.slots[slot]
        if not record.active:
            if record.player is not None:
                logging.info("Destroying player %s", slot.name)
                self._quality_retry[slot].cancel()
                record.player.destroy()
                record.player = None
            record.behind_live = 0.0
            return
        if record.player is not None or self._factory is None:
            return
        try:
            raw = self._factory(int(slot), record.stream_id, lambda s=slot: self._on_player_ready(s))
        except Exception as e:
            logging.warning("Could not create player %s for %s: %s", slot.name, record.stream_id, e)
            return
        record.player = SafePlayer(raw, label=slot.key)
        logging.info("Created player %s for %s", slot.name, record.stream_id)

    def _replace_player(self, slot: Slot) -> None:
        record = self.state.slots[slot]
        if record.player is not None:
            self._quality_retry[slot].cancel()
            record.player.destroy()
            record.player = None
        self.sync.reset_live_head(slot)
        self._sync_player(slot)

    def _on_player_ready(self, slot: Slot) -> None:
        record = self.state.slots[slot]
        if not record.ready:
            return
        record.player.mute()
        record.player.set_volume(record.volume)
        record.player.play()
        self.assert_quality(slot)
        self.apply_audio()

    def set_stream(self, slot: Slot, value) -> bool:
        try:
            stream_id = require_stream_id(value)
        except InvalidStreamInput:
            self._say(tr("Invalid link or ID: {}", str(value or "")))
            return False
        record = self.state.slots[slot]
        changed = stream_id != record.stream_id
        record.stream_id = stream_id
        record.enabled = True
        save_slot(self.store, record)
        if changed:
            self._replace_player(slot)
        else:
            self._sync_player(slot)
        self.relayout()
        return True

    def start_session(self, primary, secondary="", tertiary="") -> bool:
        try:
            first = require_stream_id(primary)
        except InvalidStreamInput:
            self._say(tr("Enter a valid YouTube link or ID for the primary stream."))
            return False
        others = {}
        for slot, value in ((Slot.S2, secondary), (Slot.S3, tertiary)):
            if not str(value or "").strip():
                others[slot] = None
                continue
            try:
                others[slot] = require_stream_id(value)
            except InvalidStreamInput:
                self._say(tr("Invalid link or ID: {}", str(value)))
                return False
        self.set_stream(Slot.S1, first)
        for slot, stream_id in others.items():
            if stream_id is None:
                self.remove_stream(slot)
            else:
                self.set_stream(slot, stream_id)
        self.set_layout(LayoutMode.SIDEBAR)
        return True

    def remove_stream(self, slot: Slot) -> None:
        record = self.state.slots[slot]
        record.stream_id = None
        record.enabled = False
        self.state.sync.marks.pop(slot, None)
        save_slot(self.store, record)
        self._sync_player(slot)
        self.relayout()

    def set_enabled(self, slot: Slot, enabled: bool) -> None:
        record = self.state.slots[slot]
        record.enabled = bool(enabled)
        save_slot(self.store, record)
        self._sync_player(slot)
        self.relayout()
        self._say(tr("Stream {} enabled", int(slot)) if enabled else tr("Stream {} disabled", int(slot)))

    # ---- quality -------------------------------------------------------

    def assert_quality(self, slot: Slot) -> None:
        record = self.state.slots[slot]
        want = record.quality if record.quality != "default" else self.state.default_quality
        if not want or want == "default":
            return

        def _tick():
            current = self.state.slots[slot]
            if current.ready:
                current.player.set_quality(want)

        self._quality_retry[slot].start(_tick)

    def set_default_quality(self, quality: str) -> None:
        if quality not in QUALITY_ORDER:
            return
        self.state.default_quality = quality
        self.store.set(DEFAULT_QUALITY_KEY, quality)
        for slot in Slot:
            self.assert_quality(slot)
        self._say(tr("Quality: {}", quality_label(quality)))

    def set_slot_quality(self, slot: Slot, quality: str) -> None:
        if quality not in QUALITY_ORDER:
            return
        record = self.state.slots[slot]
        record.quality = quality
        save_slot(self.store, record)
        self.assert_quality(slot)

    # ---- audio ---------------------------------------------------------

    def apply_audio(self) -> None:
        focus = self.state.focus
        for slot, record in self.state.slots.items():
            if not record.ready:
                continue
            silenced = (slot is Slot.S1 and focus is AudioFocus.S2) or (slot is Slot.S2 and focus is AudioFocus.S1)
            if record.muted or silenced:
                record.player.mute()
            else:
                record.player.un_mute()
                record.player.set_volume(record.volume)

    def _save_audio(self) -> None:
        for record in self.state.slots.values():
            save_slot(self.store, record)
        self.apply_audio()

    def focus(self, target: AudioFocus) -> None:
        slots = self.state.slots
        self.state.focus = AudioFocus(target)
        slots[Slot.S1].muted = self.state.focus is AudioFocus.S2
        slots[Slot.S2].muted = self.state.focus is AudioFocus.S1
        self._save_audio()

    def cycle_focus(self) -> None:
        order = (AudioFocus.S1, AudioFocus.BOTH, AudioFocus.S2)
        self.state.focus = order[(order.index(self.state.focus) + 1) % len(order)]
        self.state.slots[Slot.S1].muted = False
        self.state.slots[Slot.S2].muted = False
        self._save_audio()
        label = tr("Both") if self.state.focus is AudioFocus.BOTH else self.state.focus.value.upper()
        self._say(tr("Focus: {}", label))

    def mute_all(self) -> None:
        for record in self.state.slots.values():
            record.muted = True
        self._save_audio()
        self._say(tr("All muted"))

    def unmute_all(self) -> None:
        for record in self.state.slots.values():
            record.muted = False
        self.state.focus = AudioFocus.BOTH
        self._save_audio()
        self._say(tr("All unmuted"))

    def set_volume(self, slot: Slot, volume: int) -> None:
        number = as_number(volume)
        if number is None:
            return
        record = self.state.slots[slot]
        record.volume = max(0, min(100, int(number)))
        self._save_audio()

    def set_muted(self, slot: Slot, muted: bool) -> None:
        self.state.slots[slot].muted = bool(muted)
        self._save_audio()

    def nudge(self, delta: float) -> None:
        focus = self.state.focus
        if focus is AudioFocus.S1:
            targets = [Slot.S1]
        elif focus is AudioFocus.S2:
            targets = [Slot.S2]
        else:
            targets = [Slot.S1, Slot.S2]
        self.sync.nudge(targets, delta)
        self._say(tr("Seek {}s", f"{delta:+g}"))

    def toggle_play(self, slot: Slot) -> None:
        self.sync.toggle_play(slot)

    # ---- sync ----------------------------------------------------------

    def sample(self) -> None:
        self.sync.sample()

    def drift_seconds(self) -> float:
        return self.state.sync.drift_seconds

    def behind_live(self, slot: Slot) -> float:
        return self.state.slots[slot].behind_live

    def set_marker(self, slot: Slot) -> Optional[float]:
        mark = self.sync.set_marker(slot)
        if mark is not None:
            self._say(tr("Marker S{} set at {}", int(slot), format_seconds(mark)))
        return mark

    def apply_marker(self, from_slot: Slot, to_slot: Slot) -> Optional[float]:
        position = self.sync.apply_marker(from_slot, to_slot)
        if position is None:
            if self.state.sync.marks.get(from_slot) is None:
                self._say(tr("No marker on S{}", int(from_slot)))
            return None
        self._say(tr("S{} to S{} marker", int(to_slot), int(from_slot)))
        return position

    def sync_now(self):
        result = self.sync.sync_now()
        self._say(tr("Synced") if result is not None else tr("Sync needs two streams"))
        return result

    def set_sync_from_current(self) -> float:
        target = self.sync.set_target_from_current()
        save_sync(self.store, target, self.state.sync.move_strategy)
        self._say(tr("Sync target: {}s", f"{target:.2f}"))
        return target

    def set_target_drift(self, seconds) -> None:
        number = as_number(seconds)
        if number is None:
            return
        self.state.sync.target_drift_seconds = number
        save_sync(self.store, number, self.state.sync.move_strategy)

    def set_move_strategy(self, strategy) -> None:
        try:
            move = MoveStrategy(strategy)
        except ValueError:
            return
        self.state.sync.move_strategy = move
        save_sync(self.store, self.state.sync.target_drift_seconds, move)

    def go_live(self, slot: Slot) -> bool:
        moved = self.sync.go_live(slot)
        if moved:
            self._say(tr("Live"))
        return moved

    # ---- keyboard ------------------------------------------------------

    def _build_actions(self) -> dict:
        actions = {f"layout_{mode.number}": (lambda m=mode: self.set_layout(m)) for mode in LayoutMode}
        actions.update(
            {
                "swap": self.toggle_swap,
                TOGGLE_SHORTCUTS: self.toggle_shortcuts,
                "open_settings": self.open_settings,
                "focus_audio": self.cycle_focus,
                "mute_all": self.mute_all,
                "unmute_all": self.unmute_all,
                "nudge_back": lambda: self.nudge(-NUDGE_SECONDS),
                "nudge_forward": lambda: self.nudge(NUDGE_SECONDS),
                "toggle_chat": self.toggle_chat,
                "toggle_info": self.toggle_info,
                "chat_width_dec": lambda: self.adjust_split("chat_width", -1),
                "chat_width_inc": lambda: self.adjust_split("chat_width", 1),
                "s2_height_dec": lambda: self.adjust_split("s2_height", -1),
                "s2_height_inc": lambda: self.adjust_split("s2_height", 1),
                "right_width_dec": lambda: self.adjust_split("right_width", -1),
                "right_width_inc": lambda: self.adjust_split("right_width", 1),
                "border_dec": lambda: self.adjust_split("border", -1),
                "border_inc": lambda: self.adjust_split("border", 1),
                "set_mark_s1": lambda: self.set_marker(Slot.S1),
                "set_mark_s2": lambda: self.set_marker(Slot.S2),
                "sync_s2_to_s1": lambda: self.apply_marker(Slot.S1, Slot.S2),
                "sync_s1_to_s2": lambda: self.apply_marker(Slot.S2, Slot.S1),
                "set_sync_from_current": self.set_sync_from_current,
                "sync_now": self.sync_now,
            }
        )
        return actions

    def handle_key(self, event: KeyEvent) -> Optional[str]:
        """Dispatch one key event; returns the action that ran, if any."""
        action = self.dispatcher.resolve(event)
        if action is None:
            return None
        self.perform(action)
        return action

    def perform(self, action: str) -> None:
        handler = self._actions.get(action)
        if handler is None:
            logging.debug("No handler for action %s", action)
            return
        handler()

    def toggle_shortcuts(self) -> None:
        enabled = not self.dispatcher.enabled
        self.dispatcher.enabled = enabled
        self.state.shortcuts_enabled = enabled
        self.store.set(SHORTCUTS_ENABLED_KEY, enabled)
        self._say(tr("Shortcuts on") if enabled else tr("Shortcuts off"))

    def open_settings(self) -> None:
        if self.on_open_settings is not None:
            self.on_open_settings()
        else:
            self._say(tr("Settings file: {}", self.store.location))

    def capture_binding(self, action: str, index: int, key: str, code: str) -> bool:
        try:
            trigger = capture_trigger(key, code)
            keymap = set_trigger(self.dispatcher.keymap, action, index, trigger)
        except (InvalidKeyCapture, KeyError):
            self._say(tr("Invalid key: {}", key or code))
            return False
        self.dispatcher.keymap = keymap
        save_keymap(self.store, keymap)
        duplicates = find_duplicates(keymap)
        if duplicates:
            self._say(tr("Duplicate keys in use: {}", len(duplicates)))
        return True

    def remove_binding(self, action: str, index: int) -> None:
        keymap = remove_trigger(self.dispatcher.keymap, action, index)
        self.dispatcher.keymap = keymap
        save_keymap(self.store, keymap)

    def reset_keymap(self) -> None:
        self.dispatcher.keymap = reset_keymap()
        save_keymap(self.store, self.dispatcher.keymap)
        self._say(tr("Shortcuts reset"))

    def duplicate_triggers(self) -> dict:
        return find_duplicates(self.dispatcher.keymap)

    # ---- share links ---------------------------------------------------

    def share_query(self, with_sync: bool = False) -> str:
        params = []
        for slot in Slot:
            stream_id = self.state.slots[slot].stream_id
            if stream_id:
                params.append((slot.key, stream_id))
        if with_sync:
            sync = self.state.sync
            if sync.target_drift_seconds:
                params.append(("d", f"{sync.target_drift_seconds:g}"))
            if sync.move_strategy is not MoveStrategy.AUTO:
                params.append(("move", sync.move_strategy.value))
        return urlencode(params)

    def apply_query(self, query: str) -> None:
        params = parse_qs(str(query or "").lstrip("?"))
        for slot in Slot:
            value = params.get(slot.key, [""])[0]
            if value:
                self.set_stream(slot, value)
        drift = as_number(params.get("d", [""])[0])
        if drift is not None:
            self.set_target_drift(drift)
        move = params.get("move", [""])[0]
        if move in {m.value for m in MoveStrategy}:
            self.set_move_strategy(move)
        layout = params.get("layout", [""])[0]
        if layout:
            self.set_layout(layout)
