"""Stage geometry: where each player, the chat panel and the PIP overlay go.

Three kinds of layouts exist. Measured layouts take rectangles from
placeholder widgets that the stage lays out; analytic layouts solve the
rectangles from the viewport size; the PIP layout puts one slot full-bleed
and the other in the user-positioned overlay.

Measurements arrive late and sometimes come back empty while an embed is
settling, so measured rectangles go through ``MeasurementCache``: an
unmeasurable element keeps its last good rectangle instead of hiding.
"""

import enum
import math
from dataclasses import dataclass, replace
from typing import Mapping, NamedTuple, Optional

from .utils import as_number, clamp

NOISE_FLOOR_PX = 2
STAGE_PADDING = 8
STAGE_GAP = 8
FALLBACK_VIEWPORT = (1280, 720)
ASPECT = 16 / 9
EMPHASIS_SHARE = 0.65
HIDDEN_OFFSET = -9999

PIP_MIN_WIDTH = 220
PIP_MIN_HEIGHT = 124
PIP_HANDLE_MARGIN = 8
PIP_DRAG_STRIP = 22


class Slot(enum.IntEnum):
    S1 = 1
    S2 = 2
    S3 = 3

    @property
    def key(self) -> str:
        return f"s{int(self)}"


class Strategy(enum.Enum):
    MEASURED = "measured"
    ANALYTIC = "analytic"
    PIP = "pip"


class LayoutMode(enum.Enum):
    def __new__(cls, number, strategy, slots, swappable, chat):
        obj = object.__new__(cls)
        obj._value_ = number
        obj.strategy = strategy
        obj.slots = slots
        obj.swappable = swappable
        obj.chat = chat
        return obj

    SINGLE = (1, Strategy.MEASURED, (Slot.S1,), False, False)
    CHAT = (2, Strategy.MEASURED, (Slot.S1,), False, True)
    SIDEBAR = (3, Strategy.MEASURED, (Slot.S1, Slot.S2), True, True)
    PIP = (4, Strategy.PIP, (Slot.S1, Slot.S2), False, False)
    SIDE_BY_SIDE = (5, Strategy.MEASURED, (Slot.S1, Slot.S2), True, False)
    SOLO_S2 = (6, Strategy.MEASURED, (Slot.S2,), False, False)
    EMPHASIS = (7, Strategy.ANALYTIC, (Slot.S1, Slot.S2), True, False)
    HERO_STACK = (8, Strategy.ANALYTIC, (Slot.S1, Slot.S2, Slot.S3), False, False)
    THREE_COLUMN = (9, Strategy.ANALYTIC, (Slot.S1, Slot.S2, Slot.S3), False, False)

    @property
    def number(self) -> int:
        return self.value

    @property
    def framed(self) -> bool:
        return self not in (LayoutMode.SINGLE, LayoutMode.SOLO_S2)

    @classmethod
    def coerce(cls, value, default: "LayoutMode") -> "LayoutMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(int(value))
        except (TypeError, ValueError, OverflowError):
            return default


DEFAULT_LAYOUT = LayoutMode.SIDEBAR


class Size(NamedTuple):
    width: float
    height: float


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float
    visible: bool = True

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def measurable(self) -> bool:
        return self.width > NOISE_FLOOR_PX and self.height > NOISE_FLOOR_PX

    def offset(self, dx: float, dy: float) -> "Rect":
        return replace(self, left=self.left + dx, top=self.top + dy)

    def overlaps(self, other: "Rect") -> bool:
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )

    @classmethod
    def measured(cls, left, top, width, height) -> Optional["Rect"]:
        """Round a raw element measurement; None when below the noise floor."""
        w, h = round(width), round(height)
        if w <= NOISE_FLOOR_PX or h <= NOISE_FLOOR_PX:
            return None
        return cls(round(left), round(top), w, h)


HIDDEN = Rect(HIDDEN_OFFSET, HIDDEN_OFFSET, 1, 1, visible=False)


@dataclass(frozen=True)
class PipRect:
    x: float
    y: float
    width: float
    height: float

    def as_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data, default: "PipRect") -> "PipRect":
        if not isinstance(data, Mapping):
            return default
        values = [as_number(data.get(name)) for name in ("x", "y", "width", "height")]
        if any(v is None for v in values):
            return default
        x, y, width, height = values
        return cls(x, y, max(PIP_MIN_WIDTH, width), max(PIP_MIN_HEIGHT, height))


DEFAULT_PIP = PipRect(24, 24, 480, 270)

# name: (min, max, step, default)
SPLIT_LIMITS = {
    "chat_width": (260, 720, 20, 360),
    "s2_height": (120, 800, 10, 240),
    "right_width": (260, 720, 10, 360),
    "border": (0, 12, 1, 0),
}


@dataclass(frozen=True)
class SplitSizes:
    chat_width: int = 360
    s2_height: int = 240
    right_width: int = 360
    border: int = 0

    def adjusted(self, name: str, direction: int) -> "SplitSizes":
        low, high, step, _ = SPLIT_LIMITS[name]
        current = getattr(self, name)
        return replace(self, **{name: clamp(current + step * direction, low, high)})

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in SPLIT_LIMITS}

    @classmethod
    def from_dict(cls, data) -> "SplitSizes":
        values = {}
        source = data if isinstance(data, Mapping) else {}
        for name, (low, high, _, default) in SPLIT_LIMITS.items():
            number = as_number(source.get(name))
            values[name] = int(clamp(default if number is None else number, low, high))
        return cls(**values)


@dataclass(frozen=True)
class Targets:
    rects: Mapping[Slot, Rect]
    chat: Rect = HIDDEN
    pip: Optional[Rect] = None
    pip_slot: Optional[Slot] = None
    frame_width: int = 0

    def rect(self, slot: Slot) -> Rect:
        return self.rects.get(slot, HIDDEN)


class MeasurementCache:
    """Last valid measurement per element key (``s1``, ``s2``, ``chat``)."""

    def __init__(self):
        self._last: dict[str, Rect] = {}

    def resolve(self, key: str, measured: Optional[Rect]) -> Optional[Rect]:
        if measured is not None and measured.measurable:
            self._last[key] = measured
            return measured
        return self._last.get(key)

    def last(self, key: str) -> Optional[Rect]:
        return self._last.get(key)

    def clear(self) -> None:
        self._last.clear()


def _viewport(viewport) -> Size:
    if viewport is None:
        return Size(*FALLBACK_VIEWPORT)
    width = as_number(viewport[0]) or 0
    height = as_number(viewport[1]) or 0
    return Size(
        width if width > 0 else FALLBACK_VIEWPORT[0],
        height if height > 0 else FALLBACK_VIEWPORT[1],
    )


def fit_16x9(max_width: float, max_height: float) -> tuple[float, float]:
    width = min(max_width, max_height * ASPECT)
    return width, width / ASPECT


def emphasis_rects(viewport) -> dict[Slot, Rect]:
    W, H = _viewport(viewport)
    P, GAP = STAGE_PADDING, STAGE_GAP
    inner_w, inner_h = W - 2 * P, H - 2 * P
    left_w = math.floor(inner_w * EMPHASIS_SHARE) - GAP / 2
    right_w = inner_w - left_w - GAP
    w1, h1 = fit_16x9(left_w, inner_h)
    w2, h2 = fit_16x9(right_w, inner_h)
    return {
        Slot.S1: Rect(P + (left_w - w1) / 2, P + (inner_h - h1) / 2, w1, h1),
        Slot.S2: Rect(P + left_w + GAP + (right_w - w2) / 2, P + (inner_h - h2) / 2, w2, h2),
    }


def hero_stack_rects(viewport) -> dict[Slot, Rect]:
    # Hero height equals the two stacked tiles, so the hero is twice a tile.
    W, H = _viewport(viewport)
    P, GAP = STAGE_PADDING, STAGE_GAP
    inner_w, inner_h = W - 2 * P, H - 2 * P
    right_w = min((inner_w - GAP) / 3, inner_h * 8 / 9)
    left_w = inner_w - right_w - GAP
    h2 = right_w / ASPECT
    w1, h1 = 2 * right_w, 2 * h2
    top = P + (inner_h - h1) / 2
    column = P + left_w + GAP
    return {
        Slot.S1: Rect(P + (left_w - w1) / 2, top, w1, h1),
        Slot.S2: Rect(column, top, right_w, h2),
        Slot.S3: Rect(column, top + h2, right_w, h2),
    }


def three_column_rects(viewport) -> dict[Slot, Rect]:
    W, H = _viewport(viewport)
    P, GAP = STAGE_PADDING, STAGE_GAP
    inner_w, inner_h = W - 2 * P, H - 2 * P
    col_w = (inner_w - 2 * GAP) / 3
    vw, vh = fit_16x9(col_w, inner_h)
    top = P + (inner_h - vh) / 2
    return {
        slot: Rect(P + index * (col_w + GAP) + (col_w - vw) / 2, top, vw, vh)
        for index, slot in enumerate((Slot.S1, Slot.S2, Slot.S3))
    }


_ANALYTIC = {
    LayoutMode.EMPHASIS: emphasis_rects,
    LayoutMode.HERO_STACK: hero_stack_rects,
    LayoutMode.THREE_COLUMN: three_column_rects,
}


def compute_targets(
    mode: LayoutMode,
    swap: bool,
    splits: SplitSizes,
    viewport,
    pip: PipRect,
    measured: Mapping[str, Optional[Rect]],
    enabled=(Slot.S1, Slot.S2, Slot.S3),
    chat_visible: bool = True,
    cache: Optional[MeasurementCache] = None,
) -> Targets:
    """Rectangles for every slot, the chat panel and the PIP overlay.

    ``measured`` maps element keys to raw measurements (or None); with a
    ``cache`` an unusable measurement falls back to the last good one.
    Calling twice with the same inputs gives the same result.
    """
    measured = measured or {}

    def element(key: str) -> Optional[Rect]:
        raw = measured.get(key)
        if cache is not None:
            return cache.resolve(key, raw)
        return raw if raw is not None and raw.measurable else None

    rects: dict[Slot, Optional[Rect]] = {}
    pip_rect = None
    pip_slot = None

    if mode.strategy is Strategy.ANALYTIC:
        rects.update(_ANALYTIC[mode](viewport))
    elif mode.strategy is Strategy.PIP:
        background = element(Slot.S1.key)
        pip_slot = Slot.S1 if swap else Slot.S2
        other = Slot.S2 if swap else Slot.S1
        pip_rect = pip.as_rect()
        rects[pip_slot] = pip_rect
        rects[other] = background
    else:
        for slot in mode.slots:
            rects[slot] = element(slot.key)

    if swap and mode.swappable:
        rects[Slot.S1], rects[Slot.S2] = rects.get(Slot.S2), rects.get(Slot.S1)

    shows_chat = mode.chat and (mode is not LayoutMode.SIDEBAR or chat_visible)
    chat = element("chat") if shows_chat else None

    enabled = set(enabled)
    final = {}
    for slot in Slot:
        rect = rects.get(slot)
        if rect is None or slot not in enabled:
            final[slot] = HIDDEN
        else:
            final[slot] = replace(rect, visible=True)
    if pip_slot is not None and pip_slot not in enabled:
        pip_slot = None
        pip_rect = None

    return Targets(
        rects=final,
        chat=chat if chat is not None else HIDDEN,
        pip=pip_rect,
        pip_slot=pip_slot,
        frame_width=int(splits.border) if mode.framed else 0,
    )


class GeometryEngine:
    """Holds the measurement cache and the latest computed targets."""

    def __init__(self):
        self.cache = MeasurementCache()
        self.targets: Optional[Targets] = None

    def compute(self, mode, swap, splits, viewport, pip, measured, enabled, chat_visible) -> Targets:
        self.targets = compute_targets(
            mode,
            swap,
            splits,
            viewport,
            pip,
            measured,
            enabled=enabled,
            chat_visible=chat_visible,
            cache=self.cache,
        )
        return self.targets

    def rect(self, slot: Slot) -> Rect:
        if self.targets is None:
            return HIDDEN
        return self.targets.rect(slot)


# ---- PIP interaction ---------------------------------------------------

_HANDLE_ALIASES = {
    "top": "n",
    "bottom": "s",
    "left": "w",
    "right": "e",
    "topRight": "ne",
    "topLeft": "nw",
    "bottomRight": "se",
    "bottomLeft": "sw",
}
HANDLES = ("n", "s", "e", "w", "ne", "nw", "se", "sw")


def normalize_handle(handle) -> Optional[str]:
    token = _HANDLE_ALIASES.get(str(handle or ""), str(handle or "").lower())
    return token if token in HANDLES else None


def cursor_for(handle) -> str:
    token = normalize_handle(handle)
    return f"{token}-resize" if token else "default"


def _stage(stage) -> Size:
    return _viewport(stage)


def drag_pip(pip: PipRect, x: float, y: float, stage) -> PipRect:
    W, H = _stage(stage)
    width = min(pip.width, W)
    height = min(pip.height, H)
    return PipRect(
        clamp(x, 0, max(0, W - width)),
        clamp(y, 0, max(0, H - height)),
        width,
        height,
    )


def resize_pip(
    start: PipRect,
    handle,
    dx: float,
    dy: float,
    stage,
    lock_aspect: bool = False,
) -> PipRect:
    """Resize ``start`` by dragging ``handle``; the opposite edges stay put."""
    token = normalize_handle(handle)
    if token is None:
        return start
    W, H = _stage(stage)
    left, top = start.x, start.y
    right, bottom = start.x + start.width, start.y + start.height

    if "e" in token:
        right = min(W, right + dx)
    if "w" in token:
        left = max(0, left + dx)
    if "s" in token:
        bottom = min(H, bottom + dy)
    if "n" in token:
        top = max(0, top + dy)

    width = max(PIP_MIN_WIDTH, right - left)
    height = max(PIP_MIN_HEIGHT, bottom - top)

    if lock_aspect:
        if token in ("n", "s"):
            width = height * ASPECT
        else:
            height = width / ASPECT
        # Shrink until the locked box fits the stage again.
        max_w = (right if "w" in token else W - left) if token not in ("n", "s") else W - left
        max_h = bottom if "n" in token else H - top
        width = min(width, max_w, max_h * ASPECT)
        width = max(width, PIP_MIN_WIDTH)
        height = width / ASPECT

    if "w" in token:
        left = right - width
    if "n" in token:
        top = bottom - height
    return drag_pip(PipRect(left, top, width, height), left, top, (W, H))


def handle_at(x: float, y: float, width: float, height: float, margin: float = PIP_HANDLE_MARGIN) -> Optional[str]:
    """Resize handle under a point inside a ``width`` x ``height`` box, or None."""
    vertical = "n" if y < margin else ("s" if y >= height - margin else "")
    horizontal = "w" if x < margin else ("e" if x >= width - margin else "")
    return (vertical + horizontal) or None
