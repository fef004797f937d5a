"""Hand landmark types and geometry helpers. Pure data and math, no state."""

from __future__ import annotations

import math
from dataclasses import dataclass

# MediaPipe hand landmark indices
WRIST = 0
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_PIP = 6
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_PIP = 10
MIDDLE_TIP = 12
RING_MCP = 13
RING_PIP = 14
RING_TIP = 16
PINKY_MCP = 17
PINKY_PIP = 18
PINKY_TIP = 20

NUM_LANDMARKS = 21
PALM_POINTS = (WRIST, INDEX_MCP, MIDDLE_MCP, RING_MCP, PINKY_MCP)
# (tip, pip) for the four non-thumb fingers
FINGERS = (
    (INDEX_TIP, INDEX_PIP),
    (MIDDLE_TIP, MIDDLE_PIP),
    (RING_TIP, RING_PIP),
    (PINKY_TIP, PINKY_PIP),
)


@dataclass(frozen=True)
class Landmark:
    x: float  # normalized image coords, 0..1, x right
    y: float  # y down
    z: float = 0.0


@dataclass(frozen=True)
class HandObservation:
    """One detected hand in one frame."""
    landmarks: list[Landmark]
    handedness: str = "Right"  # MediaPipe label; mirrored, so "Right" is the user's left hand

    def __post_init__(self) -> None:
        if len(self.landmarks) != NUM_LANDMARKS:
            raise ValueError(f"expected {NUM_LANDMARKS} landmarks, got {len(self.landmarks)}")

    @property
    def is_left_hand(self) -> bool:
        return self.handedness == "Right"

    @property
    def role(self) -> str:
        return "left" if self.is_left_hand else "right"


def dist(a: Landmark, b: Landmark) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def angle_delta(a: float, b: float) -> float:
    """Shortest signed difference a - b, wrapped to [-pi, pi]."""
    d = a - b
    while d > math.pi:
        d -= 2 * math.pi
    while d < -math.pi:
        d += 2 * math.pi
    return d


def palm_center(lm: list[Landmark]) -> tuple[float, float]:
    xs = [lm[i].x for i in PALM_POINTS]
    ys = [lm[i].y for i in PALM_POINTS]
    return sum(xs) / len(xs), sum(ys) / len(ys)


def hand_size(lm: list[Landmark]) -> float:
    return dist(lm[WRIST], lm[MIDDLE_TIP])


def knob_angle(lm: list[Landmark]) -> float:
    thumb, index = lm[THUMB_TIP], lm[INDEX_TIP]
    return math.atan2(index.y - thumb.y, index.x - thumb.x)


def is_palm_shown(lm: list[Landmark], handedness: str) -> bool:
    """Open palm facing the camera, fingers up."""
    wrist = lm[WRIST]
    if wrist.y < lm[MIDDLE_MCP].y:
        return False

    extended = sum(1 for tip, pip in FINGERS if lm[tip].y < lm[pip].y)
    if extended < 3:
        return False

    ax = lm[INDEX_MCP].x - wrist.x
    ay = lm[INDEX_MCP].y - wrist.y
    bx = lm[PINKY_MCP].x - wrist.x
    by = lm[PINKY_MCP].y - wrist.y
    cross = ax * by - ay * bx
    return cross < 0 if handedness == "Right" else cross > 0
