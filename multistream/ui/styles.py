COMMON_BUTTON_STYLE = """
QPushButton {
  background: transparent;
  border: 0px;
  color: rgba(255,255,255,230);
  border-radius: 8px;
  padding: 7px;
  min-height: 30px;
}
QPushButton:hover {
  background: rgba(255,255,255,20);
}
QPushButton:pressed {
  background: rgba(255,255,255,10);
}
"""

STAGE_STYLE = """
QWidget#Stage {
  background-color: #0b0b0b;
}
QWidget#Placeholder {
  background: transparent;
}
"""

CHAT_PANEL_STYLE = COMMON_BUTTON_STYLE + """
QFrame#ChatPanel {
  background: rgba(20, 20, 20, 0.98);
  border: 1px solid rgba(255,255,255,25);
  border-radius: 10px;
}
QLabel {
  color: rgba(255,255,255,175);
  font-family: "Segoe UI";
  font-size: 14px;
}
QPushButton {
  background: rgba(255,255,255,14);
  border: 1px solid rgba(255,255,255,22);
}
"""

PILL_LABEL_STYLE = """
QLabel {
  color: rgba(255,255,255,235);
  font-family: "Segoe UI";
  font-size: 16px;
  font-weight: 600;
  letter-spacing: 0.3px;
}
"""

INFO_LABEL_STYLE = """
QLabel {
  color: rgba(255,255,255,220);
  font-family: "Segoe UI";
  font-size: 13px;
}
"""

FRAME_COLOR = "rgba(255,255,255,70)"
PIP_BORDER_COLOR = (255, 255, 255, 90)
PIP_STRIP_COLOR = (18, 18, 18, 150)

MENU_STYLE = """
QMenu {
    background-color: rgba(25, 25, 25, 0.98);
    border: 1px solid rgba(255, 255, 255, 0.1);
    border-radius: 8px;
    padding: 6px 0px;
    color: rgba(255, 255, 255, 210);
    font-family: "Segoe UI";
    font-size: 13px;
}

QMenu::item {
    padding: 6px 24px 6px 20px;
    border-radius: 4px;
    margin: 1px 6px;
}

QMenu::item:selected {
    background-color: rgba(255, 255, 255, 0.08);
    color: white;
}

QMenu::item:disabled {
    color: rgba(255, 255, 255, 0.25);
}

QMenu::separator {
    height: 1px;
    background: rgba(255, 255, 255, 0.08);
    margin: 4px 12px;
}
"""

STREAM_BAR_STYLE = COMMON_BUTTON_STYLE + """
QFrame#StreamBar {
  background: rgba(20, 20, 20, 0.98);
  border: 1px solid rgba(255,255,255,25);
  border-radius: 12px;
}
QLineEdit {
  background: rgba(255,255,255,12);
  border: 1px solid rgba(255,255,255,30);
  border-radius: 6px;
  color: white;
  padding: 6px 8px;
  font-family: "Segoe UI";
  font-size: 13px;
}
QPushButton {
  background: rgba(255,255,255,22);
  border: 1px solid rgba(255,255,255,30);
  padding: 6px 18px;
}
"""
