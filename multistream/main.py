import argparse
import logging
import os
import shutil
import subprocess
import sys
import threading
from pathlib import Path
from urllib.parse import urlencode

from PySide6.QtNetwork import QLocalServer, QLocalSocket
from PySide6.QtWidgets import QApplication

from .bootstrap import configure_windows_dlls

_HERE = Path(__file__).resolve().parent

SERVER_NAME = "multistream_single_instance_server"


def _runtime_base_dir() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return _HERE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multistream",
        description="Watch up to three YouTube live streams side by side.",
    )
    parser.add_argument(
        "streams",
        nargs="*",
        metavar="STREAM",
        help="YouTube link or 11-character video ID (first is S1, then S2, S3)",
    )
    parser.add_argument(
        "--layout",
        type=int,
        choices=range(1, 10),
        metavar="N",
        help="start in layout N (1-9)",
    )
    return parser


def forward_message(args) -> str:
    """Query string handed to an already running instance."""
    params = [(f"s{index}", value) for index, value in enumerate(args.streams[:3], start=1)]
    if args.layout is not None:
        params.append(("layout", str(args.layout)))
    return urlencode(params)


def _probe_tool_version(binary_name: str) -> str:
    exe = shutil.which(binary_name)
    if not exe:
        return "not found"
    try:
        run_kwargs = {}
        if os.name == "nt":
            flags = getattr(subprocess, "CREATE_NO_WINDOW", 0)
            if flags:
                run_kwargs["creationflags"] = flags
        proc = subprocess.run(
            [exe, "--version"],
            capture_output=True,
            text=True,
            timeout=3,
            check=False,
            **run_kwargs,
        )
        raw = (proc.stdout or proc.stderr or "").splitlines()
        first_line = raw[0].strip() if raw else ""
        return f"{exe} ({first_line or 'version unknown'})"
    except Exception as e:
        return f"{exe} (version probe failed: {e})"


def _log_runtime_tool_diagnostics() -> None:
    # mpv resolves YouTube links through its ytdl hook, so a missing or
    # stale yt-dlp is the most common reason a stream never starts.
    try:
        import yt_dlp as _yt_dlp

        py_yt_dlp = getattr(_yt_dlp.version, "__version__", "unknown")
    except Exception as e:
        py_yt_dlp = f"unavailable ({e})"
    try:
        import mpv as _mpv

        libmpv = getattr(_mpv, "__version__", None) or "loaded"
    except Exception as e:
        libmpv = f"unavailable ({e})"
    path_preview = os.environ.get("PATH", "").split(os.pathsep)[:4]
    logging.info("Runtime PATH head=%s", path_preview)
    logging.info("Runtime yt-dlp (python package)=%s", py_yt_dlp)
    logging.info("Runtime tool yt-dlp cli=%s", _probe_tool_version("yt-dlp"))
    logging.info("Runtime python-mpv=%s", libmpv)


def _prepend_runtime_paths() -> None:
    base_dir = _runtime_base_dir()
    candidates = [str(base_dir), str(base_dir / "vendor")]
    current = os.environ.get("PATH", "")
    existing = current.split(os.pathsep) if current else []
    merged = []
    seen = set()
    for path in candidates + existing:
        norm = str(path).strip()
        if not norm:
            continue
        key = os.path.normcase(norm)
        if key in seen:
            continue
        seen.add(key)
        merged.append(norm)
    os.environ["PATH"] = os.pathsep.join(merged)


def run(argv=None) -> int:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    _prepend_runtime_paths()
    configure_windows_dlls(_runtime_base_dir())

    # Deferred: `import mpv` must come after the DLL search path is patched.
    from .app_logging import setup_app_logging
    from .i18n import setup_i18n
    from .ui.stage import StageWindow

    setup_app_logging()
    _log_runtime_tool_diagnostics()
    setup_i18n()

    app = QApplication(sys.argv[:1])
    app.setApplicationName("Multistream")
    app.setQuitOnLastWindowClosed(True)

    socket = QLocalSocket()
    socket.connectToServer(SERVER_NAME)
    if socket.waitForConnected(300):
        message = forward_message(args)
        if message:
            socket.write(message.encode("utf-8"))
            socket.flush()
            socket.waitForBytesWritten(1000)
        socket.disconnectFromServer()
        socket.waitForDisconnected(500)
        logging.info("Forwarded to running instance: %s", message or "(nothing)")
        return 0

    server = QLocalServer()
    server.removeServer(SERVER_NAME)
    server.listen(SERVER_NAME)

    window = StageWindow()

    def on_new_connection() -> None:
        client = server.nextPendingConnection()
        if client:
            if client.bytesAvailable() == 0:
                client.waitForReadyRead(500)
            data = client.readAll().data().decode("utf-8")
            if data.strip():
                window.session.apply_query(data)
                if window.isMinimized():
                    window.showNormal()
                window.activateWindow()
                window.raise_()
            client.disconnectFromServer()

    server.newConnection.connect(on_new_connection)

    def _quit_watchdog() -> None:
        killer = threading.Timer(3.0, lambda: os._exit(0))
        killer.daemon = True
        killer.start()

    app.aboutToQuit.connect(_quit_watchdog)

    window.show()
    window.load_startup_args(args.streams, args.layout)

    exit_code = app.exec()

    try:
        server.close()
        server.removeServer(SERVER_NAME)
    except Exception as e:
        logging.debug("Server cleanup skipped: %s", e)

    lingering = [
        t
        for t in threading.enumerate()
        if t is not threading.main_thread() and t.is_alive() and not t.daemon
    ]
    if lingering:
        logging.warning(
            "Forcing process exit due to lingering non-daemon threads: %s",
            [getattr(t, "name", "unknown") for t in lingering],
        )
        os._exit(int(exit_code))

    return int(exit_code)


if __name__ == "__main__":
    raise SystemExit(run())
