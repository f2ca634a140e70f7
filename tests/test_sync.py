import pytest

from multistream.geometry import Slot
from multistream.proxy import LIVE_EDGE_SECONDS, SafePlayer
from multistream.state import MoveStrategy, SyncState, default_slots
from multistream.sync import SyncEngine, behind_live, drift_between

from conftest import FakePlayer


@pytest.fixture
def slots():
    records = default_slots()
    for slot, record in records.items():
        record.stream_id = f"stream{int(slot):06d}"
        record.player = SafePlayer(FakePlayer(record.stream_id), label=slot.key)
    return records


@pytest.fixture
def engine(slots):
    return SyncEngine(slots, SyncState())


def fake(slots, slot) -> FakePlayer:
    return slots[slot].player.raw


@pytest.mark.parametrize("t1,t2", [(10, 4), (0, 0), (-3.5, 7.25), (1e6, 2)])
def test_drift_symmetry(t1, t2):
    assert drift_between(t1, t2) == -drift_between(t2, t1)


def test_drift_is_zero_when_a_reading_is_missing():
    assert drift_between(None, 5) == 0.0
    assert drift_between(5, "nan") == 0.0


@pytest.mark.parametrize("head,now", [(0, 0), (50, 10), (10, 50), (1e12, 0), (-1e12, 5), (700, 0)])
def test_behind_live_is_bounded(head, now):
    assert 0 <= behind_live(head, now) <= 600


def test_marker_then_apply_seeks_target(engine, slots):
    fake(slots, Slot.S1).time = 120.4
    assert engine.set_marker(Slot.S1) == 120.4
    fake(slots, Slot.S1).time = 200
    assert engine.apply_marker(Slot.S1, Slot.S2) == 120.4
    assert fake(slots, Slot.S2).seeks == [120.4]


def test_apply_marker_without_marker_does_nothing(engine, slots):
    assert engine.apply_marker(Slot.S2, Slot.S1) is None
    assert fake(slots, Slot.S1).seeks == []


def test_sync_now_auto_moves_s1_when_ahead(engine, slots):
    fake(slots, Slot.S1).time = 100
    fake(slots, Slot.S2).time = 95
    assert engine.sync_now() == (Slot.S1, 95)
    assert fake(slots, Slot.S1).seeks == [95]
    assert fake(slots, Slot.S2).seeks == []


def test_sync_now_auto_moves_s2_when_behind_target(engine, slots):
    fake(slots, Slot.S1).time = 100
    fake(slots, Slot.S2).time = 98
    engine.state.target_drift_seconds = 5
    assert engine.sync_now() == (Slot.S2, 95)


def test_sync_now_respects_explicit_strategy(engine, slots):
    fake(slots, Slot.S1).time = 100
    fake(slots, Slot.S2).time = 95
    engine.state.move_strategy = MoveStrategy.S2
    assert engine.sync_now() == (Slot.S2, 100)


def test_sync_now_never_seeks_negative(engine, slots):
    fake(slots, Slot.S1).time = 2
    fake(slots, Slot.S2).time = 1
    engine.state.target_drift_seconds = 10
    engine.state.move_strategy = MoveStrategy.S2
    assert engine.sync_now() == (Slot.S2, 0.0)


def test_sync_now_needs_both_players(engine, slots):
    slots[Slot.S2].player = None
    assert engine.sync_now() is None


def test_set_target_from_current(engine, slots):
    fake(slots, Slot.S1).time = 30
    fake(slots, Slot.S2).time = 27.5
    assert engine.set_target_from_current() == 2.5
    assert engine.state.target_drift_seconds == 2.5


def test_live_head_monotonic_and_go_live_resets(engine, slots):
    player = fake(slots, Slot.S1)
    heads = []
    for t in (10, 50, 30, 45, 60):
        player.time = t
        engine.sample()
        heads.append(slots[Slot.S1].live_head)
    assert heads == sorted(heads)
    assert heads[-1] == 60
    player.time = 30
    engine.sample()
    assert slots[Slot.S1].behind_live == 30

    assert engine.go_live(Slot.S1)
    assert player.seeks[-1] == LIVE_EDGE_SECONDS
    assert slots[Slot.S1].live_head == 0
    assert slots[Slot.S1].behind_live == 0

    player.time = 70
    engine.sample()
    assert slots[Slot.S1].live_head == 70


def test_sample_records_drift(engine, slots):
    fake(slots, Slot.S1).time = 12
    fake(slots, Slot.S2).time = 10
    engine.sample()
    assert engine.state.drift_seconds == 2


def test_sample_with_failing_player_defaults_to_zero(engine, slots):
    fake(slots, Slot.S2).broken.add("get_current_time")
    fake(slots, Slot.S1).time = 12
    engine.sample()
    assert engine.state.drift_seconds == 0
    assert slots[Slot.S2].behind_live == 0


def test_nudge_clamps_at_zero(engine, slots):
    fake(slots, Slot.S1).time = 4
    fake(slots, Slot.S2).time = 40
    engine.nudge([Slot.S1, Slot.S2], -10)
    assert fake(slots, Slot.S1).seeks == [0.0]
    assert fake(slots, Slot.S2).seeks == [30]


def test_toggle_play(engine, slots):
    player = fake(slots, Slot.S1)
    engine.toggle_play(Slot.S1)
    assert player.calls[-1] == "pause"
    engine.toggle_play(Slot.S1)
    assert player.calls[-1] == "play"
