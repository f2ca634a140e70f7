import enum
import logging
from typing import Any, Callable, Optional, Protocol

from .utils import as_number

LIVE_EDGE_SECONDS = 1e9


class PlayerState(enum.IntEnum):
    UNSTARTED = -1
    ENDED = 0
    PLAYING = 1
    PAUSED = 2
    BUFFERING = 3
    CUED = 5


class Player(Protocol):
    """What the session expects from an embedded player object."""

    def play(self) -> None: ...
    def pause(self) -> None: ...
    def seek(self, seconds: float, allow_seek_ahead: bool = True) -> None: ...
    def get_current_time(self) -> Optional[float]: ...
    def set_volume(self, volume: int) -> None: ...
    def mute(self) -> None: ...
    def un_mute(self) -> None: ...
    def set_playback_quality(self, label: str) -> None: ...
    def get_player_state(self) -> Any: ...
    def destroy(self) -> None: ...


# factory(slot_number, stream_id, on_ready) -> Player
PlayerFactory = Callable[[int, str, Callable[[], None]], Player]


class SafePlayer:
    """Wraps a Player so that no call can raise.

    Failures (player torn down mid-call, not ready yet, backend error) are
    logged at debug level and reported as ``None``.
    """

    def __init__(self, player: Player, label: str = "player"):
        self._player = player
        self.label = label

    @property
    def raw(self) -> Optional[Player]:
        return self._player

    @property
    def alive(self) -> bool:
        return self._player is not None

    def _call(self, method: str, *args):
        player = self._player
        if player is None:
            return None
        fn = getattr(player, method, None)
        if fn is None:
            return None
        try:
            return fn(*args)
        except Exception as e:
            logging.debug("%s.%s%r failed: %s", self.label, method, args, e)
            return None

    def play(self) -> None:
        self._call("play")

    def pause(self) -> None:
        self._call("pause")

    def seek(self, seconds: float) -> None:
        self._call("seek", max(0.0, float(seconds)), True)

    def current_time(self) -> Optional[float]:
        return as_number(self._call("get_current_time"))

    def set_volume(self, volume: int) -> None:
        self._call("set_volume", int(volume))

    def mute(self) -> None:
        self._call("mute")

    def un_mute(self) -> None:
        self._call("un_mute")

    def set_quality(self, label: str) -> None:
        self._call("set_playback_quality", label)

    def state(self) -> Optional[PlayerState]:
        raw = self._call("get_player_state")
        if raw is None:
            return None
        try:
            return PlayerState(int(raw))
        except (TypeError, ValueError):
            return None

    def destroy(self) -> None:
        self._call("destroy")
        self._player = None
