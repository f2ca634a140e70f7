#!/usr/bin/env python3
"""Lightweight local guardrails.

Default checks:
- Parse every module of the package with `ast.parse`.
- Core modules (everything outside ``ui/`` and the mpv adapter) must not
  import ``mpv`` or ``PySide6.QtWidgets``; the test suite relies on that.

Usage:
- python tools/guardrails.py
- python tools/guardrails.py --files multistream/session.py
"""

from __future__ import annotations

import argparse
import ast
from pathlib import Path
import sys


PACKAGE = "multistream"
UI_ONLY_MODULES = {"mpv", "PySide6.QtWidgets"}
UI_SIDE = {"ui", "mpv_player.py", "main.py", "__main__.py"}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run lightweight syntax and import guardrails.")
    parser.add_argument(
        "--files",
        nargs="*",
        default=None,
        help="Paths to Python files to validate (defaults to the whole package).",
    )
    return parser.parse_args(argv)


def default_files(root: Path) -> list[Path]:
    return sorted((root / PACKAGE).rglob("*.py"))


def _read(path: Path) -> str:
    try:
        # Accept UTF-8 files with or without BOM to keep local checks stable.
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        return path.read_text(encoding="utf-8", errors="replace")


def check_syntax(path: Path) -> tuple[bool, str]:
    if not path.exists():
        return False, "missing"
    if not path.is_file():
        return False, "not a file"
    try:
        ast.parse(_read(path), filename=str(path))
        return True, "ok"
    except SyntaxError as exc:
        location = f"{exc.lineno}:{exc.offset}" if exc.lineno else "unknown"
        return False, f"syntax error at {location}: {exc.msg}"


def is_core_module(path: Path, root: Path) -> bool:
    try:
        parts = path.resolve().relative_to((root / PACKAGE).resolve()).parts
    except ValueError:
        return False
    return bool(parts) and parts[0] not in UI_SIDE


def ui_imports(source: str) -> list[str]:
    """Imported module names that only the UI side may use."""
    found = []
    for node in ast.walk(ast.parse(source)):
        if isinstance(node, ast.Import):
            names = [alias.name for alias in node.names]
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            names = [node.module]
        else:
            continue
        for name in names:
            if any(name == banned or name.startswith(banned + ".") for banned in UI_ONLY_MODULES):
                found.append(name)
    return found


def check_file(path: Path, root: Path) -> tuple[bool, str]:
    ok, detail = check_syntax(path)
    if not ok or not is_core_module(path, root):
        return ok, detail
    banned = ui_imports(_read(path))
    if banned:
        return False, f"core module imports {', '.join(sorted(set(banned)))}"
    return True, "ok"


def main(argv=None) -> int:
    args = parse_args(argv)
    root = Path(__file__).resolve().parent.parent
    files = [root / f for f in args.files] if args.files else default_files(root)

    print("Guardrails: syntax parse + core import boundary")
    print(f"Root: {root}")

    failures = 0
    for file_path in files:
        ok, detail = check_file(file_path, root)
        rel = file_path.relative_to(root)
        prefix = "PASS" if ok else "FAIL"
        print(f"[{prefix}] {rel} - {detail}")
        if not ok:
            failures += 1

    if failures:
        print(f"Result: FAILED ({failures} file(s))")
        return 1
    print("Result: PASSED")
    return 0


if __name__ == "__main__":
    sys.exit(main())
