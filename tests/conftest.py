import pytest
from PySide6.QtCore import QSettings

from multistream.geometry import Slot
from multistream.settings import KeyValueStore

S1_ID = "aaaaaaaaaaa"
S2_ID = "bbbbbbbbbbb"
S3_ID = "ccccccccccc"


class ManualScheduler:
    """Collects scheduled callbacks so tests decide when time passes."""

    def __init__(self):
        self.pending = []

    def __call__(self, delay_ms, callback):
        self.pending.append((delay_ms, callback))

    def step(self) -> bool:
        if not self.pending:
            return False
        _, callback = self.pending.pop(0)
        callback()
        return True

    def run_all(self, limit: int = 1000) -> int:
        ran = 0
        while self.pending and ran < limit:
            self.step()
            ran += 1
        return ran


class FakePlayer:
    def __init__(self, stream_id="", time=0.0, state=1):
        self.stream_id = stream_id
        self.time = time
        self.state = state
        self.volume = None
        self.muted = None
        self.quality_calls = []
        self.seeks = []
        self.calls = []
        self.destroyed = False
        self.broken = set()

    def _record(self, name):
        self.calls.append(name)
        if name in self.broken:
            raise RuntimeError(f"{name} failed")

    def play(self):
        self._record("play")
        self.state = 1

    def pause(self):
        self._record("pause")
        self.state = 2

    def seek(self, seconds, allow_seek_ahead=True):
        self._record("seek")
        self.seeks.append(seconds)
        self.time = seconds

    def get_current_time(self):
        self._record("get_current_time")
        return self.time

    def set_volume(self, volume):
        self._record("set_volume")
        self.volume = volume

    def mute(self):
        self._record("mute")
        self.muted = True

    def un_mute(self):
        self._record("un_mute")
        self.muted = False

    def set_playback_quality(self, label):
        self._record("set_playback_quality")
        self.quality_calls.append(label)

    def get_player_state(self):
        self._record("get_player_state")
        return self.state

    def destroy(self):
        self._record("destroy")
        self.destroyed = True


class FakeFactory:
    def __init__(self):
        self.created = []
        self.players = {}
        self.ready_callbacks = {}

    def __call__(self, slot_number, stream_id, on_ready):
        player = FakePlayer(stream_id)
        slot = Slot(slot_number)
        self.created.append((slot, stream_id))
        self.players[slot] = player
        self.ready_callbacks[slot] = on_ready
        return player

    def ready(self, slot):
        self.ready_callbacks[slot]()


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("MULTISTREAM_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(QSettings(str(tmp_path / "settings.ini"), QSettings.IniFormat))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def factory():
    return FakeFactory()


@pytest.fixture
def messages():
    return []


@pytest.fixture
def session(store, factory, scheduler, messages):
    from multistream.session import SessionController

    return SessionController(store=store, player_factory=factory, scheduler=scheduler, notify=messages.append)
