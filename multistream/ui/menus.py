from PySide6.QtWidgets import QMenu

from ..geometry import LayoutMode, Slot
from ..i18n import tr
from ..keybindings import ACTION_LABELS
from ..state import AudioFocus, MoveStrategy
from ..utils import QUALITY_ORDER, quality_label
from .styles import MENU_STYLE


def _shortcut_hint(window, action: str) -> str:
    triggers = window.session.dispatcher.keymap.get(action) or []
    return f"\t{triggers[0]}" if triggers else ""


def create_stage_context_menu(window, pos):
    session = window.session
    state = session.state
    menu = QMenu(window)
    menu.setStyleSheet(MENU_STYLE)

    layouts_menu = menu.addMenu(tr("Layouts"))
    for mode in LayoutMode:
        action_id = f"layout_{mode.number}"
        act = layouts_menu.addAction(tr(ACTION_LABELS[action_id]) + _shortcut_hint(window, action_id))
        act.setCheckable(True)
        act.setChecked(state.layout.mode is mode)
        act.triggered.connect(lambda checked, m=mode: session.set_layout(m))

    swap_act = menu.addAction(tr("Swap Streams") + _shortcut_hint(window, "swap"))
    swap_act.setEnabled(state.layout.mode.swappable or state.layout.mode is LayoutMode.PIP)
    swap_act.triggered.connect(session.toggle_swap)

    focus_menu = menu.addMenu(tr("Audio Focus"))
    for focus, label in ((AudioFocus.S1, "S1"), (AudioFocus.BOTH, tr("Both")), (AudioFocus.S2, "S2")):
        act = focus_menu.addAction(label)
        act.setCheckable(True)
        act.setChecked(state.focus is focus)
        act.triggered.connect(lambda checked, f=focus: session.focus(f))

    quality_menu = menu.addMenu(tr("Default Quality"))
    for value in QUALITY_ORDER:
        act = quality_menu.addAction(quality_label(value))
        act.setCheckable(True)
        act.setChecked(state.default_quality == value)
        act.triggered.connect(lambda checked, q=value: session.set_default_quality(q))

    menu.addSeparator()

    sync_menu = menu.addMenu(tr("Sync"))
    sync_act = sync_menu.addAction(tr("Sync Now") + _shortcut_hint(window, "sync_now"))
    sync_act.triggered.connect(session.sync_now)
    target_act = sync_menu.addAction(
        tr("Set Sync Target From Current") + _shortcut_hint(window, "set_sync_from_current")
    )
    target_act.triggered.connect(session.set_sync_from_current)
    move_menu = sync_menu.addMenu(tr("Move"))
    for move, label in ((MoveStrategy.AUTO, tr("Auto")), (MoveStrategy.S1, "S1"), (MoveStrategy.S2, "S2")):
        act = move_menu.addAction(label)
        act.setCheckable(True)
        act.setChecked(state.sync.move_strategy is move)
        act.triggered.connect(lambda checked, m=move: session.set_move_strategy(m))
    sync_menu.addSeparator()
    for slot in Slot:
        act = sync_menu.addAction(tr("Go Live: Stream {}", int(slot)))
        act.setEnabled(state.slots[slot].ready)
        act.triggered.connect(lambda checked, s=slot: session.go_live(s))

    streams_menu = menu.addMenu(tr("Streams"))
    streams_menu.addAction(tr("Change Streams...")).triggered.connect(window.show_stream_bar)
    for slot in (Slot.S2, Slot.S3):
        record = state.slots[slot]
        show_act = streams_menu.addAction(tr("Show Stream {}", int(slot)))
        show_act.setCheckable(True)
        show_act.setChecked(record.enabled)
        show_act.setEnabled(bool(record.stream_id))
        show_act.triggered.connect(lambda checked, s=slot: session.set_enabled(s, checked))
        remove_act = streams_menu.addAction(tr("Remove Stream {}", int(slot)))
        remove_act.setEnabled(bool(record.stream_id))
        remove_act.triggered.connect(lambda checked, s=slot: window.remove_stream(s))
    streams_menu.addSeparator()
    for slot in Slot:
        slot_menu = streams_menu.addMenu(tr("Quality S{}", int(slot)))
        for value in QUALITY_ORDER:
            act = slot_menu.addAction(quality_label(value))
            act.setCheckable(True)
            act.setChecked(state.slots[slot].quality == value)
            act.triggered.connect(lambda checked, s=slot, q=value: session.set_slot_quality(s, q))

    menu.addSeparator()

    menu.addAction(tr("Copy Share Link")).triggered.connect(lambda: window.copy_share_link(False))
    menu.addAction(tr("Copy Share Link (with sync)")).triggered.connect(lambda: window.copy_share_link(True))

    menu.addSeparator()

    shortcuts_act = menu.addAction(tr("Enable Shortcuts") + _shortcut_hint(window, "toggle_shortcuts"))
    shortcuts_act.setCheckable(True)
    shortcuts_act.setChecked(session.dispatcher.enabled)
    shortcuts_act.triggered.connect(session.toggle_shortcuts)
    menu.addAction(tr("Reset Layout")).triggered.connect(session.reset_layout)
    menu.addAction(tr("Reset Shortcuts")).triggered.connect(session.reset_keymap)
    menu.addAction(tr("Open Settings File") + _shortcut_hint(window, "open_settings")).triggered.connect(
        window.open_settings_file
    )

    menu.exec(window.mapToGlobal(pos))
