"""Keeping two or three players aligned without a shared clock.

The players only report their own playback position, so alignment is
done from the outside: markers capture a position to jump another player
to, drift is sampled as ``t(S1) - t(S2)``, and "behind live" is estimated
from the highest position each player has ever reported.
"""

import logging
from typing import Iterable, Mapping, Optional

from .geometry import Slot
from .proxy import LIVE_EDGE_SECONDS, PlayerState
from .state import BEHIND_LIVE_MAX, MoveStrategy, StreamSlot, SyncState
from .utils import as_number, clamp

DRIFT_MS = 500


def drift_between(t1, t2) -> float:
    a, b = as_number(t1), as_number(t2)
    if a is None or b is None:
        return 0.0
    return a - b


def behind_live(live_head, current) -> float:
    head, now = as_number(live_head), as_number(current)
    if head is None or now is None:
        return 0.0
    return float(clamp(head - now, 0.0, BEHIND_LIVE_MAX))


class SyncEngine:
    def __init__(self, slots: Mapping[Slot, StreamSlot], state: SyncState):
        self.slots = slots
        self.state = state

    def _player(self, slot: Slot):
        record = self.slots.get(slot)
        if record is None or not record.ready:
            return None
        return record.player

    def _time(self, slot: Slot) -> Optional[float]:
        player = self._player(slot)
        return player.current_time() if player is not None else None

    # ---- markers ----

    def set_marker(self, slot: Slot) -> Optional[float]:
        t = self._time(slot)
        if t is None:
            return None
        self.state.marks[slot] = t
        logging.info("Marker %s set at %.2f", slot.name, t)
        return t

    def apply_marker(self, from_slot: Slot, to_slot: Slot) -> Optional[float]:
        mark = self.state.marks.get(from_slot)
        target = self._player(to_slot)
        if mark is None or target is None:
            return None
        position = max(0.0, mark)
        target.seek(position)
        logging.info("Marker %s applied to %s at %.2f", from_slot.name, to_slot.name, position)
        return position

    # ---- drift correction ----

    def set_target_from_current(self) -> float:
        t1 = self._time(Slot.S1) or 0.0
        t2 = self._time(Slot.S2) or 0.0
        self.state.target_drift_seconds = t1 - t2
        return self.state.target_drift_seconds

    def sync_now(self) -> Optional[tuple]:
        """Seek one player so that ``t1 - t2`` becomes the target drift.

        Returns ``(moved_slot, position)`` or None when either player is
        missing.
        """
        p1, p2 = self._player(Slot.S1), self._player(Slot.S2)
        if p1 is None or p2 is None:
            return None
        t1 = p1.current_time() or 0.0
        t2 = p2.current_time() or 0.0
        desired = as_number(self.state.target_drift_seconds) or 0.0
        move = self.state.move_strategy

        if move is MoveStrategy.AUTO:
            # TODO: confirm with product whether auto should ever pick the backward seek.
            move = MoveStrategy.S2 if (t1 - t2) < desired else MoveStrategy.S1

        if move is MoveStrategy.S2:
            slot, player, position = Slot.S2, p2, max(0.0, t1 - desired)
        else:
            slot, player, position = Slot.S1, p1, max(0.0, t2 + desired)
        player.seek(position)
        logging.info(
            "Sync now: t1=%.2f t2=%.2f desired=%.2f moved %s to %.2f",
            t1, t2, desired, slot.name, position,
        )
        return slot, position

    # ---- sampling ----

    def sample(self) -> None:
        times = {slot: self._time(slot) for slot in self.slots}
        t1, t2 = times.get(Slot.S1), times.get(Slot.S2)
        self.state.drift_seconds = drift_between(t1, t2)
        for slot, record in self.slots.items():
            t = times.get(slot)
            if t is None:
                record.behind_live = 0.0
                continue
            record.live_head = max(record.live_head, t)
            record.behind_live = behind_live(record.live_head, t)

    def reset_live_head(self, slot: Slot) -> None:
        record = self.slots.get(slot)
        if record is not None:
            record.live_head = 0.0
            record.behind_live = 0.0

    def go_live(self, slot: Slot) -> bool:
        player = self._player(slot)
        if player is None:
            return False
        player.seek(LIVE_EDGE_SECONDS)
        self.reset_live_head(slot)
        return True

    # ---- transport ----

    def nudge(self, slots: Iterable[Slot], delta: float) -> None:
        for slot in slots:
            player = self._player(slot)
            if player is None:
                continue
            t = player.current_time() or 0.0
            player.seek(max(0.0, t + delta))

    def toggle_play(self, slot: Slot) -> None:
        player = self._player(slot)
        if player is None:
            return
        if player.state() is PlayerState.PLAYING:
            player.pause()
        else:
            player.play()
