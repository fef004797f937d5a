"""Turn per-frame hand landmarks into gesture events.

Each hand role (left/right) has a HandState that starts inactive. A hand
becomes active the first frame it shows an open palm and stays active until
a frame arrives with no hands at all. While active, every frame smooths the
palm position, pinch distance, knob angle and hand size, applies pinch
hysteresis and emits a HandGesture.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from starbase.gestures.landmarks import (
    INDEX_TIP,
    THUMB_TIP,
    HandObservation,
    angle_delta,
    dist,
    hand_size,
    is_palm_shown,
    knob_angle,
    lerp,
    palm_center,
)

log = logging.getLogger(__name__)

SMOOTHING = 0.25
KNOB_SMOOTHING = 0.3
PINCH_ENTER = 0.22
PINCH_EXIT = 0.32
JOIN_DISTANCE = 0.15  # raw palm centroids closer than this (normalized) = hands joined

ROLES = ("left", "right")


# ── Events ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HandGesture:
    pan_x: float        # -1..1, right positive
    pan_y: float        # -1..1, up positive
    is_pinching: bool
    knob_delta: float   # radians since last frame, 0 unless pinching
    hand_size: float
    is_left_hand: bool

    @property
    def is_right_hand(self) -> bool:
        return not self.is_left_hand

    @property
    def role(self) -> str:
        return "left" if self.is_left_hand else "right"

    def to_dict(self) -> dict:
        return {
            "panX": self.pan_x,
            "panY": self.pan_y,
            "isPinching": self.is_pinching,
            "knobDelta": self.knob_delta,
            "handSize": self.hand_size,
            "isLeftHand": self.is_left_hand,
            "isRightHand": self.is_right_hand,
            "detected": True,
        }


@dataclass(frozen=True)
class NoHands:
    def to_dict(self) -> dict:
        return {"detected": False}


@dataclass(frozen=True)
class HandsJoined:
    def to_dict(self) -> dict:
        return {"handsJoined": True}


GestureEvent = HandGesture | NoHands | HandsJoined


# ── Per-hand state ─────────────────────────────────────────────────────────

@dataclass
class HandState:
    smooth_x: float = 0.5
    smooth_y: float = 0.5
    smooth_pinch: float = 1.0
    smooth_knob_angle: float = 0.0
    smooth_hand_size: float = 0.25
    prev_knob_angle: float | None = None
    was_pinching: bool = False
    activated: bool = False

    def deactivate(self) -> None:
        self.activated = False
        self.prev_knob_angle = None
        self.was_pinching = False


def update_pinch(was_pinching: bool, distance: float) -> bool:
    """Pinch hysteresis: enter below PINCH_ENTER, stay until PINCH_EXIT."""
    if was_pinching:
        return distance < PINCH_EXIT
    return distance < PINCH_ENTER


def update_hand(state: HandState, obs: HandObservation) -> HandGesture | None:
    """Advance one hand's state by one frame; None while the palm gate is closed."""
    lm = obs.landmarks
    if not state.activated and is_palm_shown(lm, obs.handedness):
        state.activated = True
        log.debug("%s hand activated", obs.role)
    if not state.activated:
        return None

    palm_x, palm_y = palm_center(lm)
    size = hand_size(lm)
    pinch = dist(lm[THUMB_TIP], lm[INDEX_TIP]) / size if size > 0 else math.inf

    state.smooth_x = lerp(state.smooth_x, palm_x, SMOOTHING)
    state.smooth_y = lerp(state.smooth_y, palm_y, SMOOTHING)
    if math.isfinite(pinch):
        state.smooth_pinch = lerp(state.smooth_pinch, pinch, SMOOTHING)
    state.smooth_hand_size = lerp(state.smooth_hand_size, size, SMOOTHING)

    is_pinching = update_pinch(state.was_pinching, state.smooth_pinch)

    state.smooth_knob_angle = lerp(state.smooth_knob_angle, knob_angle(lm), KNOB_SMOOTHING)
    knob_delta = 0.0
    if is_pinching:
        if state.was_pinching and state.prev_knob_angle is not None:
            knob_delta = angle_delta(state.smooth_knob_angle, state.prev_knob_angle)
        state.prev_knob_angle = state.smooth_knob_angle
    else:
        state.prev_knob_angle = None
    state.was_pinching = is_pinching

    return HandGesture(
        pan_x=(state.smooth_x - 0.5) * 2,
        pan_y=-(state.smooth_y - 0.5) * 2,
        is_pinching=is_pinching,
        knob_delta=knob_delta,
        hand_size=state.smooth_hand_size,
        is_left_hand=obs.is_left_hand,
    )


# ── Interpreter ────────────────────────────────────────────────────────────

@dataclass
class GestureInterpreter:
    hands: dict[str, HandState] = field(default_factory=lambda: {r: HandState() for r in ROLES})

    def reset(self) -> None:
        for state in self.hands.values():
            state.deactivate()

    def clear(self) -> None:
        """Forget all smoothing history (after an idle timeout or a stop)."""
        self.hands = {r: HandState() for r in ROLES}

    def process(self, observations: list[HandObservation]) -> list[GestureEvent]:
        """Events for one detection frame.

        An empty frame resets every hand and yields exactly one NoHands.
        """
        if not observations:
            self.reset()
            return [NoHands()]

        events: list[GestureEvent] = []
        palms: dict[str, tuple[float, float]] = {}
        for obs in observations:
            gesture = update_hand(self.hands[obs.role], obs)
            if gesture is not None:
                events.append(gesture)
                palms[obs.role] = palm_center(obs.landmarks)

        if len(palms) == len(ROLES) and palms_together(palms["left"], palms["right"]):
            events.append(HandsJoined())
        return events


def palms_together(a: tuple[float, float], b: tuple[float, float]) -> bool:
    return math.hypot(a[0] - b[0], a[1] - b[1]) < JOIN_DISTANCE
