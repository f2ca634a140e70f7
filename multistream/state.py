import enum
from dataclasses import dataclass, field
from typing import Optional

from .geometry import DEFAULT_LAYOUT, DEFAULT_PIP, LayoutMode, PipRect, Size, Slot, SplitSizes
from .proxy import SafePlayer
from .utils import PREFERRED_DEFAULT_QUALITY

BEHIND_LIVE_MAX = 600.0


class MoveStrategy(str, enum.Enum):
    AUTO = "auto"
    S1 = "s1"
    S2 = "s2"


class AudioFocus(str, enum.Enum):
    S1 = "s1"
    BOTH = "both"
    S2 = "s2"


@dataclass(frozen=True)
class StreamInfo:
    title: str = ""
    viewer_count: Optional[int] = None
    like_count: Optional[int] = None


@dataclass
class StreamSlot:
    slot: Slot
    stream_id: Optional[str] = None
    enabled: bool = True
    volume: int = 100
    muted: bool = False
    quality: str = "default"
    live_head: float = 0.0
    behind_live: float = 0.0
    player: Optional[SafePlayer] = None
    info: Optional[StreamInfo] = None

    @property
    def ready(self) -> bool:
        return self.player is not None and self.player.alive

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.stream_id)


@dataclass
class SyncState:
    marks: dict = field(default_factory=dict)
    drift_seconds: float = 0.0
    target_drift_seconds: float = 0.0
    move_strategy: MoveStrategy = MoveStrategy.AUTO

    @property
    def mark_s1(self) -> Optional[float]:
        return self.marks.get(Slot.S1)

    @property
    def mark_s2(self) -> Optional[float]:
        return self.marks.get(Slot.S2)


@dataclass
class LayoutState:
    mode: LayoutMode = DEFAULT_LAYOUT
    swap: bool = False
    splits: SplitSizes = field(default_factory=SplitSizes)
    pip: PipRect = DEFAULT_PIP
    chat_visible: bool = True
    chat_tab: int = 1
    viewport: Optional[Size] = None


@dataclass
class PipInteraction:
    active: bool = False
    handle: Optional[str] = None
    start: Optional[PipRect] = None
    cursor: str = "default"


def default_slots() -> dict:
    return {
        Slot.S1: StreamSlot(Slot.S1),
        Slot.S2: StreamSlot(Slot.S2),
        Slot.S3: StreamSlot(Slot.S3, muted=True),
    }


@dataclass
class SessionState:
    """Everything the session owns; only SessionController mutates it."""

    slots: dict = field(default_factory=default_slots)
    layout: LayoutState = field(default_factory=LayoutState)
    sync: SyncState = field(default_factory=SyncState)
    focus: AudioFocus = AudioFocus.BOTH
    shortcuts_enabled: bool = True
    default_quality: str = PREFERRED_DEFAULT_QUALITY
    show_titles: bool = True
    show_metrics: bool = True
    pip_interaction: PipInteraction = field(default_factory=PipInteraction)
