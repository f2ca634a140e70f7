from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QAbstractSpinBox,
    QComboBox,
    QLineEdit,
    QPlainTextEdit,
    QTextEdit,
)

from ..keybindings import KeyEvent

_NAMED_KEYS = {
    Qt.Key_Left: "ArrowLeft",
    Qt.Key_Right: "ArrowRight",
    Qt.Key_Up: "ArrowUp",
    Qt.Key_Down: "ArrowDown",
    Qt.Key_Escape: "Escape",
    Qt.Key_Return: "Enter",
    Qt.Key_Enter: "Enter",
    Qt.Key_Tab: "Tab",
    Qt.Key_Backspace: "Backspace",
    Qt.Key_Delete: "Delete",
    Qt.Key_Insert: "Insert",
    Qt.Key_Home: "Home",
    Qt.Key_End: "End",
    Qt.Key_PageUp: "PageUp",
    Qt.Key_PageDown: "PageDown",
    Qt.Key_Shift: "Shift",
    Qt.Key_Control: "Control",
    Qt.Key_Alt: "Alt",
    Qt.Key_AltGr: "AltGraph",
    Qt.Key_Meta: "Meta",
    Qt.Key_CapsLock: "CapsLock",
    Qt.Key_NumLock: "NumLock",
}

_PUNCTUATION_CODES = {
    Qt.Key_Minus: "Minus",
    Qt.Key_Equal: "Equal",
    Qt.Key_BracketLeft: "BracketLeft",
    Qt.Key_BracketRight: "BracketRight",
    Qt.Key_Comma: "Comma",
    Qt.Key_Period: "Period",
    Qt.Key_QuoteLeft: "Backquote",
    Qt.Key_Semicolon: "Semicolon",
    Qt.Key_Slash: "Slash",
    Qt.Key_Backslash: "Backslash",
    Qt.Key_Space: "Space",
}


def focus_target(widget) -> tuple[str, bool]:
    """Classify the focused widget the way key bindings care about."""
    if widget is None:
        return "", False
    if isinstance(widget, QLineEdit):
        return "input", not widget.isReadOnly()
    if isinstance(widget, QAbstractSpinBox):
        return "input", not widget.isReadOnly()
    if isinstance(widget, (QTextEdit, QPlainTextEdit)):
        return "textarea", not widget.isReadOnly()
    if isinstance(widget, QComboBox):
        return "select", widget.isEditable()
    return "", False


def key_event_from_qt(event, focused=None) -> KeyEvent:
    key = event.key()
    keypad = bool(event.modifiers() & Qt.KeypadModifier)
    target, editable = focus_target(focused)

    if key in _NAMED_KEYS:
        name = _NAMED_KEYS[key]
        return KeyEvent(key=name, code=name, target=target, editable=editable)

    text = event.text() or ""
    if not text.isprintable():
        text = ""

    if Qt.Key_A <= key <= Qt.Key_Z:
        code = f"Key{chr(ord('A') + (key - Qt.Key_A))}"
    elif Qt.Key_0 <= key <= Qt.Key_9:
        digit = key - Qt.Key_0
        code = f"Numpad{digit}" if keypad else f"Digit{digit}"
    elif Qt.Key_F1 <= key <= Qt.Key_F12:
        code = f"F{key - Qt.Key_F1 + 1}"
        text = text or code
    else:
        code = _PUNCTUATION_CODES.get(key, "")
    return KeyEvent(key=text, code=code, target=target, editable=editable)
