from multistream.proxy import PlayerState, SafePlayer

from conftest import FakePlayer


def test_calls_pass_through():
    raw = FakePlayer(time=12.5)
    player = SafePlayer(raw, "s1")
    player.set_volume(40)
    player.mute()
    player.set_quality("hd720")
    assert player.current_time() == 12.5
    assert raw.volume == 40
    assert raw.muted is True
    assert raw.quality_calls == ["hd720"]
    assert player.state() is PlayerState.PLAYING


def test_exceptions_become_none():
    raw = FakePlayer(time=3)
    raw.broken.update({"get_current_time", "seek", "get_player_state", "play"})
    player = SafePlayer(raw, "s2")
    assert player.current_time() is None
    assert player.state() is None
    player.seek(10)
    player.play()


def test_non_numeric_time_is_none():
    player = SafePlayer(FakePlayer(time="soon"))
    assert player.current_time() is None


def test_seek_clamps_negative_positions():
    raw = FakePlayer()
    SafePlayer(raw).seek(-5)
    assert raw.seeks == [0.0]


def test_destroy_detaches_player():
    raw = FakePlayer()
    player = SafePlayer(raw)
    player.destroy()
    assert raw.destroyed
    assert not player.alive
    assert player.current_time() is None
    player.play()
    assert raw.calls == ["destroy"]


def test_unknown_state_value():
    raw = FakePlayer()
    raw.state = 42
    assert SafePlayer(raw).state() is None
