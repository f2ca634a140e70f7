import importlib.util
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def _load_guardrails():
    spec = importlib.util.spec_from_file_location("guardrails", ROOT / "tools" / "guardrails.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_package_passes_guardrails(capsys):
    guardrails = _load_guardrails()
    assert guardrails.main([]) == 0
    assert "Result: PASSED" in capsys.readouterr().out


def test_core_module_importing_mpv_is_flagged():
    guardrails = _load_guardrails()
    assert guardrails.ui_imports("import mpv\nfrom PySide6.QtCore import QTimer\n") == ["mpv"]
    assert guardrails.ui_imports("from PySide6.QtWidgets import QWidget\n") == ["PySide6.QtWidgets"]
    assert guardrails.ui_imports("from .geometry import Slot\n") == []


def test_ui_side_is_exempt():
    guardrails = _load_guardrails()
    assert guardrails.is_core_module(ROOT / "multistream" / "session.py", ROOT)
    assert not guardrails.is_core_module(ROOT / "multistream" / "ui" / "stage.py", ROOT)
    assert not guardrails.is_core_module(ROOT / "multistream" / "mpv_player.py", ROOT)


def test_syntax_error_reported(tmp_path):
    guardrails = _load_guardrails()
    broken = tmp_path / "broken.py"
    broken.write_text("def nope(:\n", encoding="utf-8")
    ok, detail = guardrails.check_syntax(broken)
    assert not ok
    assert detail.startswith("syntax error")
