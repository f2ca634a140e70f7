import logging

from PySide6.QtCore import QEvent, QPoint, QTimer, QUrl, Qt, Signal
from PySide6.QtGui import QDesktopServices, QGuiApplication
from PySide6.QtWidgets import (
    QApplication,
    QFrame,
    QHBoxLayout,
    QLineEdit,
    QMainWindow,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..geometry import STAGE_GAP, STAGE_PADDING, LayoutMode, Rect, Size, Slot
from ..i18n import tr
from ..mpv_player import MpvPlayer
from ..session import SessionController
from ..state import StreamInfo
from ..sync import DRIFT_MS
from ..utils import format_seconds
from .events import key_event_from_qt
from .menus import create_stage_context_menu
from .styles import FRAME_COLOR, STAGE_STYLE, STREAM_BAR_STYLE
from .widgets import ChatPanel, InfoOverlay, PillOverlayWindow, PipOverlay

STATUS_DEFAULT_MS = 900
STATUS_ERROR_MS = 3200
SHARE_BASE_URL = "multistream://watch?"


class StageWidget(QWidget):
    resized = Signal()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.resized.emit()


def _placeholder(parent) -> QWidget:
    widget = QWidget(parent)
    widget.setObjectName("Placeholder")
    widget.setAttribute(Qt.WA_TransparentForMouseEvents, True)
    return widget


class StreamBar(QFrame):
    """Inline form for entering up to three stream links."""

    def __init__(self, parent, on_start):
        super().__init__(parent)
        self.setObjectName("StreamBar")
        self.setStyleSheet(STREAM_BAR_STYLE)
        self._on_start = on_start

        layout = QHBoxLayout(self)
        layout.setContentsMargins(12, 10, 12, 10)
        layout.setSpacing(8)
        self.inputs = []
        for placeholder in (
            tr("Stream 1 link or ID"),
            tr("Stream 2 link or ID (optional)"),
            tr("Stream 3 link or ID (optional)"),
        ):
            edit = QLineEdit(self)
            edit.setPlaceholderText(placeholder)
            edit.returnPressed.connect(self._submit)
            layout.addWidget(edit, 1)
            self.inputs.append(edit)
        self.start_button = QPushButton(tr("Start"), self)
        self.start_button.clicked.connect(self._submit)
        layout.addWidget(self.start_button)

    def fill(self, values) -> None:
        for edit, value in zip(self.inputs, values):
            edit.setText(value or "")

    def _submit(self):
        if self._on_start(*[edit.text() for edit in self.inputs]):
            self.hide()


class StageWindow(QMainWindow):
    def __init__(self, store=None):
        super().__init__()
        logging.info("StageWindow init")
        self.setWindowTitle("Multistream")
        self.setMinimumSize(640, 360)
        self.resize(1280, 760)
        self._is_shutting_down = False
        self._layout_signature = None

        self.stage = StageWidget(self)
        self.stage.setObjectName("Stage")
        self.stage.setStyleSheet(STAGE_STYLE)
        self.stage.setAttribute(Qt.WA_StyledBackground, True)
        self.setCentralWidget(self.stage)
        self.setContextMenuPolicy(Qt.CustomContextMenu)
        self.customContextMenuRequested.connect(self.open_context_menu)

        self.placeholder_host = QWidget(self.stage)
        self.placeholder_host.setAttribute(Qt.WA_TransparentForMouseEvents, True)
        self.placeholders = {}

        self.frames = {}
        self.containers = {}
        for slot in Slot:
            frame = QWidget(self.stage)
            frame.setStyleSheet(f"background-color: {FRAME_COLOR};")
            frame.hide()
            container = QWidget(self.stage)
            container.setAttribute(Qt.WA_NativeWindow)
            container.setStyleSheet("background-color: black;")
            self.frames[slot] = frame
            self.containers[slot] = container

        self.chat_panel = ChatPanel(self.stage)
        self.chat_panel.hide()
        self.stream_bar = StreamBar(self.stage, self._start_from_bar)
        self.stream_bar.hide()

        self.session = SessionController(
            store=store,
            player_factory=self._create_player,
            notify=self.show_status_overlay,
        )
        self.session.on_open_settings = self.open_settings_file

        self.status_overlay = PillOverlayWindow(self)
        self.status_overlay.hide()
        self.status_timer = QTimer(self)
        self.status_timer.setSingleShot(True)
        self.status_timer.timeout.connect(self.status_overlay.hide)
        self.pip_overlay = PipOverlay(self, self.session)
        self.pip_overlay.hide()
        self.info_overlays = {slot: InfoOverlay(self) for slot in Slot}
        for overlay in self.info_overlays.values():
            overlay.hide()

        self.session.bind_view(self._measure, self._apply_targets)
        self.stage.resized.connect(self._on_stage_resized)

        self.drift_timer = QTimer(self)
        self.drift_timer.setInterval(DRIFT_MS)
        self.drift_timer.timeout.connect(self._on_drift_tick)
        self.drift_timer.start()

        QApplication.instance().installEventFilter(self)

    # ---- players -------------------------------------------------------

    def _create_player(self, slot_number: int, stream_id: str, on_ready):
        slot = Slot(slot_number)
        container = self.containers[slot]
        container.show()
        state = self.session.state
        quality = state.slots[slot].quality
        if quality == "default":
            quality = state.default_quality
        return MpvPlayer(container, stream_id, on_ready, quality=quality, parent=self)

    def load_startup_args(self, streams, layout=None) -> None:
        streams = [s for s in (streams or []) if str(s or "").strip()]
        if streams:
            padded = (list(streams) + ["", ""])[:3]
            self.session.start_session(*padded)
        else:
            self.session.start()
        if layout is not None:
            self.session.set_layout(layout)
        if not self.session.state.slots[Slot.S1].stream_id:
            self.show_stream_bar()

    def remove_stream(self, slot: Slot) -> None:
        self.session.remove_stream(slot)
        self.show_status_overlay(tr("Stream {} removed", int(slot)))

    # ---- geometry ------------------------------------------------------

    def _on_stage_resized(self):
        self.session.set_viewport(self.stage.width(), self.stage.height())

    def _rebuild_placeholders(self, layout_state) -> None:
        old = self.placeholder_host.layout()
        if old is not None:
            QWidget().setLayout(old)
        for widget in self.placeholders.values():
            widget.deleteLater()
        self.placeholders = {}

        mode = layout_state.mode
        splits = layout_state.splits
        root = QHBoxLayout(self.placeholder_host)
        root.setContentsMargins(STAGE_PADDING, STAGE_PADDING, STAGE_PADDING, STAGE_PADDING)
        root.setSpacing(STAGE_GAP)

        def add(key, target_layout, stretch=1):
            widget = _placeholder(self.placeholder_host)
            target_layout.addWidget(widget, stretch)
            widget.show()
            self.placeholders[key] = widget
            return widget

        if mode in (LayoutMode.SINGLE, LayoutMode.PIP):
            add(Slot.S1.key, root)
        elif mode is LayoutMode.SOLO_S2:
            add(Slot.S2.key, root)
        elif mode is LayoutMode.SIDE_BY_SIDE:
            add(Slot.S1.key, root)
            add(Slot.S2.key, root)
        elif mode is LayoutMode.CHAT:
            add(Slot.S1.key, root)
            add("chat", root, 0).setFixedWidth(splits.chat_width)
        elif mode is LayoutMode.SIDEBAR:
            add(Slot.S1.key, root)
            column = QVBoxLayout()
            column.setSpacing(STAGE_GAP)
            add(Slot.S2.key, column, 0).setFixedSize(splits.right_width, splits.s2_height)
            if layout_state.chat_visible:
                add("chat", column).setFixedWidth(splits.right_width)
            else:
                column.addStretch(1)
            root.addLayout(column)

    def _measure(self):
        layout_state = self.session.state.layout
        viewport = Size(self.stage.width(), self.stage.height())
        signature = (layout_state.mode, layout_state.splits, layout_state.chat_visible)
        if signature != self._layout_signature:
            self._layout_signature = signature
            self._rebuild_placeholders(layout_state)
        self.placeholder_host.setGeometry(0, 0, self.stage.width(), self.stage.height())
        if self.placeholder_host.layout() is not None:
            self.placeholder_host.layout().activate()

        measured = {}
        for key, widget in self.placeholders.items():
            origin = widget.mapTo(self.stage, QPoint(0, 0))
            measured[key] = Rect.measured(origin.x(), origin.y(), widget.width(), widget.height())
        return viewport, measured

    def _apply_targets(self, targets) -> None:
        border = targets.frame_width
        for slot in Slot:
            rect = targets.rect(slot)
            frame = self.frames[slot]
            container = self.containers[slot]
            if not rect.visible:
                frame.hide()
                container.setGeometry(int(rect.left), int(rect.top), int(rect.width), int(rect.height))
                continue
            left, top = int(round(rect.left)), int(round(rect.top))
            width, height = int(round(rect.width)), int(round(rect.height))
            if border > 0:
                frame.setGeometry(left, top, width, height)
                frame.show()
                frame.lower()
            else:
                frame.hide()
            container.setGeometry(left + border, top + border, max(1, width - 2 * border), max(1, height - 2 * border))
        if targets.pip_slot is not None:
            self.containers[targets.pip_slot].raise_()

        chat = targets.chat
        if chat.visible:
            self.chat_panel.setGeometry(int(chat.left), int(chat.top), int(chat.width), int(chat.height))
            stream_id = self.session.chat_stream()
            tab = self.session.state.layout.chat_tab if self.session.state.layout.mode is LayoutMode.SIDEBAR else 1
            self.chat_panel.set_stream(stream_id, tab)
            self.chat_panel.show()
        else:
            self.chat_panel.hide()

        if targets.pip is not None and self.isVisible():
            self.pip_overlay.place(targets.pip)
            self.pip_overlay.show()
            self.pip_overlay.raise_()
        else:
            self.pip_overlay.hide()
        self._refresh_info_overlays()
        if self.stream_bar.isVisible():
            self._place_stream_bar()

    # ---- overlays ------------------------------------------------------

    def _info_lines(self, slot: Slot) -> list[str]:
        state = self.session.state
        record = state.slots[slot]
        info = record.info or StreamInfo()
        lines = []
        if state.show_titles and info.title:
            lines.append(info.title)
        if state.show_metrics:
            metrics = []
            if info.viewer_count is not None:
                metrics.append(f"{info.viewer_count:,} watching")
            if info.like_count is not None:
                metrics.append(f"{info.like_count:,} likes")
            if record.behind_live >= 1:
                metrics.append(tr("Behind live: {}", format_seconds(record.behind_live)))
            if slot is Slot.S1 and state.slots[Slot.S2].ready:
                metrics.append(tr("Drift: {}s", f"{self.session.drift_seconds():+.2f}"))
            if metrics:
                lines.append("  ".join(metrics))
        return lines

    def _refresh_info_overlays(self) -> None:
        for slot, overlay in self.info_overlays.items():
            anchor = self.session.info_anchor(slot)
            lines = self._info_lines(slot) if anchor is not None else []
            if not lines or not self.isVisible():
                overlay.hide()
                continue
            overlay.set_lines(lines)
            overlay.move_to(*anchor)
            overlay.show()

    def _on_drift_tick(self):
        self.session.sample()
        for slot, record in self.session.state.slots.items():
            if not record.ready:
                continue
            raw = record.player.raw
            title = raw.media_title() if hasattr(raw, "media_title") else ""
            if title and (record.info is None or record.info.title != title):
                previous = record.info or StreamInfo()
                self.session.set_info(
                    slot,
                    StreamInfo(title=title, viewer_count=previous.viewer_count, like_count=previous.like_count),
                )
        self._refresh_info_overlays()

    def show_status_overlay(self, text: str, duration_ms: int | None = None):
        if duration_ms is None:
            duration_ms = STATUS_ERROR_MS if text.startswith(tr("Invalid link or ID: {}", "")) else STATUS_DEFAULT_MS
        self.status_overlay.set_text(text)
        x = (self.stage.width() - self.status_overlay.width()) / 2
        top_left = self.stage.mapToGlobal(QPoint(int(max(0, x)), 24))
        self.status_overlay.move(top_left)
        if self.isVisible():
            self.status_overlay.show()
            self.status_overlay.raise_()
        self.status_timer.start(int(duration_ms))

    def show_stream_bar(self):
        self.stream_bar.fill([self.session.state.slots[slot].stream_id for slot in Slot])
        self._place_stream_bar()
        self.stream_bar.show()
        self.stream_bar.raise_()
        self.stream_bar.inputs[0].setFocus()

    def _place_stream_bar(self):
        width = min(900, self.stage.width() - 2 * STAGE_PADDING)
        self.stream_bar.setGeometry(int((self.stage.width() - width) / 2), STAGE_PADDING, int(width), 56)

    def _start_from_bar(self, first, second, third) -> bool:
        return self.session.start_session(first, second, third)

    # ---- actions -------------------------------------------------------

    def open_context_menu(self, pos):
        create_stage_context_menu(self, pos)

    def open_settings_file(self):
        location = self.session.store.location
        if not location:
            return
        QDesktopServices.openUrl(QUrl.fromLocalFile(location))
        self.show_status_overlay(tr("Settings file: {}", location))

    def copy_share_link(self, with_sync: bool):
        QGuiApplication.clipboard().setText(SHARE_BASE_URL + self.session.share_query(with_sync))
        self.show_status_overlay(tr("Link copied"))

    # ---- Qt events -----------------------------------------------------

    def eventFilter(self, obj, event):
        if event.type() == QEvent.KeyPress and QApplication.activeWindow() is self:
            key_event = key_event_from_qt(event, QApplication.focusWidget())
            if self.session.handle_key(key_event) is not None:
                return True
        return super().eventFilter(obj, event)

    def showEvent(self, event):
        super().showEvent(event)
        self.session.relayout()

    def moveEvent(self, event):
        super().moveEvent(event)
        # Tool overlays are positioned in screen coordinates.
        self.session.recompute()

    def closeEvent(self, event):
        if self._is_shutting_down:
            event.accept()
            return
        self._is_shutting_down = True
        self.drift_timer.stop()
        self.status_timer.stop()
        for overlay in [self.status_overlay, self.pip_overlay, *self.info_overlays.values()]:
            overlay.close()
            overlay.deleteLater()
        app = QApplication.instance()
        if app:
            app.removeEventFilter(self)
        self.session.shutdown()
        super().closeEvent(event)
