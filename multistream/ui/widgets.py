from PySide6.QtCore import QPoint, QUrl, Qt
from PySide6.QtGui import QColor, QCursor, QDesktopServices, QPainter, QPainterPath, QPen
from PySide6.QtWidgets import QFrame, QLabel, QMainWindow, QPushButton, QVBoxLayout, QWidget

from ..geometry import PIP_DRAG_STRIP, handle_at
from ..i18n import tr
from ..utils import chat_url
from .styles import (
    CHAT_PANEL_STYLE,
    INFO_LABEL_STYLE,
    PILL_LABEL_STYLE,
    PIP_BORDER_COLOR,
    PIP_STRIP_COLOR,
)

CURSOR_SHAPES = {
    "n-resize": Qt.SizeVerCursor,
    "s-resize": Qt.SizeVerCursor,
    "e-resize": Qt.SizeHorCursor,
    "w-resize": Qt.SizeHorCursor,
    "ne-resize": Qt.SizeBDiagCursor,
    "sw-resize": Qt.SizeBDiagCursor,
    "nw-resize": Qt.SizeFDiagCursor,
    "se-resize": Qt.SizeFDiagCursor,
    "grabbing": Qt.ClosedHandCursor,
    "default": Qt.ArrowCursor,
}


class RoundedPanel(QWidget):
    def __init__(self, parent=None, radius: int = 16):
        super().__init__(parent)
        self.radius = radius
        self.bg = QColor(18, 18, 18, 150)

        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_NoSystemBackground, True)

    def paintEvent(self, _event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)

        path = QPainterPath()
        path.addRoundedRect(self.rect().adjusted(0.5, 0.5, -0.5, -0.5), self.radius, self.radius)
        painter.setClipPath(path)
        painter.setPen(Qt.NoPen)
        painter.setBrush(self.bg)
        painter.drawPath(path)


class ToolOverlay(QWidget):
    """Frameless tool window kept above the native player surfaces."""

    def __init__(self, owner: QMainWindow):
        super().__init__(owner)
        self.owner = owner
        self.setWindowFlags(Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)
        self.setAutoFillBackground(False)

    def place(self, local_rect) -> None:
        """Move to ``local_rect`` given in the owner's stage coordinates."""
        top_left = self.owner.stage.mapToGlobal(QPoint(int(local_rect.left), int(local_rect.top)))
        self.setGeometry(top_left.x(), top_left.y(), int(local_rect.width), int(local_rect.height))


class PillOverlayWindow(ToolOverlay):
    def __init__(self, owner: QMainWindow):
        super().__init__(owner)
        self.setAttribute(Qt.WA_TransparentForMouseEvents, True)
        self.panel = RoundedPanel(self, radius=21)
        self.panel.bg = QColor(18, 18, 18, 175)
        self.label = QLabel("", self.panel)
        self.label.setAlignment(Qt.AlignCenter)
        self.label.setStyleSheet(PILL_LABEL_STYLE)

    def set_text(self, text: str) -> None:
        self.label.setText(text)
        hint = self.label.sizeHint()
        width, height = hint.width() + 36, 42
        self.resize(width, height)
        self.panel.setGeometry(0, 0, width, height)
        self.label.setGeometry(0, 0, width, height)


class InfoOverlay(ToolOverlay):
    def __init__(self, owner: QMainWindow):
        super().__init__(owner)
        self.setAttribute(Qt.WA_TransparentForMouseEvents, True)
        self.panel = RoundedPanel(self, radius=8)
        self.label = QLabel("", self.panel)
        self.label.setStyleSheet(INFO_LABEL_STYLE)

    def set_lines(self, lines: list[str]) -> None:
        self.label.setText("\n".join(lines))
        hint = self.label.sizeHint()
        width, height = hint.width() + 20, hint.height() + 12
        self.resize(width, height)
        self.panel.setGeometry(0, 0, width, height)
        self.label.setGeometry(10, 6, hint.width(), hint.height())

    def move_to(self, x: float, y: float) -> None:
        self.move(self.owner.stage.mapToGlobal(QPoint(int(x), int(y))))


class ChatPanel(QFrame):
    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("ChatPanel")
        self.setStyleSheet(CHAT_PANEL_STYLE)
        self.stream_id = None

        layout = QVBoxLayout(self)
        layout.setContentsMargins(14, 14, 14, 14)
        layout.setSpacing(10)
        self.title = QLabel(tr("Live chat"), self)
        self.open_button = QPushButton("", self)
        self.open_button.setFocusPolicy(Qt.NoFocus)
        self.open_button.clicked.connect(self.open_chat)
        layout.addWidget(self.title)
        layout.addWidget(self.open_button)
        layout.addStretch(1)

    def set_stream(self, stream_id, slot_number: int) -> None:
        self.stream_id = stream_id
        if stream_id:
            self.open_button.setText(tr("Open chat for stream {}", slot_number))
            self.open_button.setEnabled(True)
        else:
            self.open_button.setText(tr("No live chat"))
            self.open_button.setEnabled(False)

    def open_chat(self) -> None:
        if self.stream_id:
            QDesktopServices.openUrl(QUrl(chat_url(self.stream_id)))


class PipOverlay(ToolOverlay):
    """Drag strip along the top edge and resize margins around the PIP."""

    def __init__(self, owner: QMainWindow, session):
        super().__init__(owner)
        self.session = session
        self.setMouseTracking(True)
        self._press_global = None

    def paintEvent(self, _event):
        painter = QPainter(self)
        # Near-invisible fill so the whole box receives mouse events.
        painter.fillRect(self.rect(), QColor(0, 0, 0, 1))
        painter.fillRect(0, 0, self.width(), PIP_DRAG_STRIP, QColor(*PIP_STRIP_COLOR))
        painter.setPen(QPen(QColor(*PIP_BORDER_COLOR), 1))
        painter.drawRect(self.rect().adjusted(0, 0, -1, -1))

    def _hover_cursor(self, pos) -> str:
        handle = handle_at(pos.x(), pos.y(), self.width(), self.height())
        if handle:
            return f"{handle}-resize"
        if pos.y() < PIP_DRAG_STRIP:
            return "grabbing"
        return "default"

    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton:
            return super().mousePressEvent(event)
        pos = event.position().toPoint()
        handle = handle_at(pos.x(), pos.y(), self.width(), self.height())
        if handle is None and pos.y() >= PIP_DRAG_STRIP:
            return super().mousePressEvent(event)
        self._press_global = event.globalPosition().toPoint()
        self.session.begin_pip_interaction(handle)
        self.setCursor(QCursor(CURSOR_SHAPES.get(self.session.cursor(), Qt.ArrowCursor)))
        event.accept()

    def mouseMoveEvent(self, event):
        interaction = self.session.state.pip_interaction
        if not interaction.active or self._press_global is None:
            shape = CURSOR_SHAPES.get(self._hover_cursor(event.position().toPoint()), Qt.ArrowCursor)
            self.setCursor(QCursor(shape))
            return
        delta = event.globalPosition().toPoint() - self._press_global
        if interaction.handle:
            lock = bool(event.modifiers() & Qt.ShiftModifier)
            self.session.resize_pip(delta.x(), delta.y(), lock_aspect=lock)
        else:
            start = interaction.start
            self.session.drag_pip(start.x + delta.x(), start.y + delta.y())
        event.accept()

    def mouseReleaseEvent(self, event):
        if self._press_global is not None:
            self._press_global = None
            self.session.end_pip_interaction()
            self.setCursor(QCursor(Qt.ArrowCursor))
            event.accept()
            return
        super().mouseReleaseEvent(event)
