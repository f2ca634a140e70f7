import logging
import threading
from typing import Callable, Optional

import mpv
from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtWidgets import QWidget

from .proxy import LIVE_EDGE_SECONDS, PlayerState
from .utils import watch_url, ytdl_format_for_quality

READY_EVENTS = {"file-loaded", "playback-restart"}


def _event_name(event) -> Optional[str]:
    # Avoid event.as_dict(); only the id name is needed.
    name = None
    event_id = getattr(event, "event_id", None)
    if event_id is not None and hasattr(event_id, "name"):
        name = event_id.name
    elif hasattr(event, "name"):
        name = event.name
    if isinstance(name, bytes):
        name = name.decode(errors="ignore")
    if not name:
        return None
    return str(name).lower().replace("_", "-")


class MpvPlayer(QObject):
    """One embedded mpv instance rendering into a native child widget."""

    _event_signal = Signal(str)

    def __init__(
        self,
        container: QWidget,
        stream_id: str,
        on_ready: Callable[[], None],
        quality: str = "default",
        parent=None,
    ):
        super().__init__(parent)
        self.stream_id = stream_id
        self._on_ready = on_ready
        self._ready_fired = False
        self._format = ytdl_format_for_quality(quality)
        self._event_signal.connect(self._process_event_on_main_thread, Qt.QueuedConnection)

        self.player = mpv.MPV(
            wid=str(int(container.winId())),
            ytdl=True,
            ytdl_format=self._format,
            hr_seek="yes",
            input_default_bindings=False,
            input_vo_keyboard=False,
            osc=False,
            keep_open="yes",
        )
        self.player.register_event_callback(self._on_mpv_event)
        self.player.play(watch_url(stream_id))
        logging.info("mpv player started for %s", stream_id)

    # mpv event thread
    def _on_mpv_event(self, event):
        try:
            name = _event_name(event)
            if name:
                self._event_signal.emit(name)
        except Exception:
            pass

    def _process_event_on_main_thread(self, name: str):
        if name in READY_EVENTS and not self._ready_fired:
            self._ready_fired = True
            logging.info("mpv %s: %s", self.stream_id, name)
            self._on_ready()
        elif name == "end-file":
            logging.info("mpv %s: end-file", self.stream_id)

    def play(self) -> None:
        self.player.pause = False

    def pause(self) -> None:
        self.player.pause = True

    def seek(self, seconds: float, allow_seek_ahead: bool = True) -> None:
        if seconds >= LIVE_EDGE_SECONDS:
            self.player.command("seek", 100, "absolute-percent")
            return
        flags = "absolute" if allow_seek_ahead else "absolute+keyframes"
        self.player.command("seek", float(seconds), flags)

    def get_current_time(self) -> Optional[float]:
        return self.player.time_pos

    def set_volume(self, volume: int) -> None:
        self.player.volume = int(volume)

    def mute(self) -> None:
        self.player.mute = True

    def un_mute(self) -> None:
        self.player.mute = False

    def set_playback_quality(self, label: str) -> None:
        fmt = ytdl_format_for_quality(label)
        if fmt == self._format:
            return
        self._format = fmt
        self.player.ytdl_format = fmt
        # A new format only takes effect on the next load; resume where we were.
        pos = self.player.time_pos
        self.player.command("loadfile", watch_url(self.stream_id), "replace")
        if pos and pos > 1.0:
            self.player.command("seek", float(pos), "absolute", "keyframes")
        logging.info("mpv %s: quality -> %s", self.stream_id, label)

    def get_player_state(self) -> PlayerState:
        if self.player.idle_active:
            return PlayerState.ENDED if self._ready_fired else PlayerState.UNSTARTED
        if self.player.paused_for_cache:
            return PlayerState.BUFFERING
        if self.player.pause:
            return PlayerState.PAUSED
        return PlayerState.PLAYING

    def media_title(self) -> str:
        try:
            return str(self.player.media_title or "")
        except Exception:
            return ""

    def destroy(self) -> None:
        player_ref = self.player

        def _terminate_player():
            try:
                player_ref.terminate()
            except Exception:
                pass

        try:
            player_ref.command("stop")
        except Exception:
            pass
        # terminate() blocks until mpv's threads are gone.
        threading.Thread(target=_terminate_player, daemon=True).start()
