import ctypes
import logging
import os
import sys
from pathlib import Path

LIBMPV_NAMES = ("libmpv-2.dll", "mpv-2.dll", "mpv-1.dll")


def libmpv_search_dirs(base_dir: Path) -> list[Path]:
    """Existing directories that may hold a bundled libmpv, in lookup order."""
    candidates = [
        base_dir.resolve(),
        (base_dir / "mpv").resolve(),
        (base_dir / "vendor").resolve(),
        Path.cwd().resolve(),
    ]
    # Frozen builds ship libmpv next to the executable.
    if getattr(sys, "frozen", False):
        candidates.insert(0, Path(sys.executable).parent.resolve())

    unique_dirs = []
    seen = set()
    for directory in candidates:
        key = os.path.normcase(str(directory))
        if key in seen or not directory.is_dir():
            continue
        seen.add(key)
        unique_dirs.append(directory)
    return unique_dirs


def configure_windows_dlls(base_dir: Path) -> None:
    """Make a bundled libmpv loadable before ``import mpv`` runs."""
    if os.name != "nt":
        return

    search_dirs = libmpv_search_dirs(base_dir)
    if hasattr(os, "add_dll_directory"):
        for directory in search_dirs:
            os.add_dll_directory(str(directory))
    os.environ["PATH"] = os.pathsep.join([*(str(d) for d in search_dirs), os.environ.get("PATH", "")])

    for directory in search_dirs:
        for dll_name in LIBMPV_NAMES:
            dll_path = directory / dll_name
            if not dll_path.exists():
                continue
            try:
                ctypes.CDLL(str(dll_path))
                logging.info("Preloaded %s", dll_path)
                return
            except OSError as e:
                logging.debug("Could not preload %s: %s", dll_path, e)
