"""Camera control state machine driven by gesture events.

States:
    IDLE              external orbit controls own the camera (auto-rotate on)
    HAND_CONTROLLING  gesture events drive orbit/pan/zoom targets

Every drag is anchored: the first frame of a drag records the hand position
and the current target, later frames apply ``base + (pos - anchor) * scale``.
Displayed values ease toward their targets once per animation frame via
``frame()``, whether or not a gesture arrived since the last frame.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

from starbase.gestures.interpreter import GestureEvent, HandGesture, HandsJoined, NoHands

log = logging.getLogger(__name__)

CAMERA_SMOOTHING = 0.1
RECENTER_COOLDOWN = 1.5     # seconds
IDLE_TIMEOUT = 3.0          # seconds without a detected hand
MAX_PHI = 0.45 * math.pi

MIN_DISTANCE = 60.0
MAX_DISTANCE = 500.0
DEFAULT_DISTANCE = 300.0
HAND_SIZE_FAR = 0.12        # small hand in frame -> camera far
HAND_SIZE_NEAR = 0.35       # large hand in frame -> camera near

DEFAULT_THETA = 0.0
DEFAULT_PHI = 0.2
ROTATE_SCALE_X = math.pi
ROTATE_SCALE_Y = math.pi / 2
PAN_SCALE = 150.0


class CameraMode(str, Enum):
    IDLE = "idle"
    HAND_CONTROLLING = "hand_controlling"


@dataclass(frozen=True)
class CameraPose:
    position: tuple[float, float, float]
    look_at: tuple[float, float, float]

    def to_dict(self) -> dict:
        return {"position": list(self.position), "lookAt": list(self.look_at)}


def orbit_pose(theta: float, phi: float, distance: float, look_x: float = 0.0, look_y: float = 0.0) -> CameraPose:
    return CameraPose(
        position=(
            look_x + distance * math.cos(phi) * math.sin(theta),
            look_y + distance * math.sin(phi),
            distance * math.cos(phi) * math.cos(theta),
        ),
        look_at=(look_x, look_y, 0.0),
    )


OVERVIEW_POSE = orbit_pose(DEFAULT_THETA, DEFAULT_PHI, DEFAULT_DISTANCE)


class CameraListener(Protocol):
    """Renderer-side hooks (orbit controls, camera fly-to)."""

    def set_orbit_controls(self, enabled: bool, auto_rotate: bool) -> None: ...

    def fly_to(self, pose: CameraPose) -> None: ...


# ── State structs ──────────────────────────────────────────────────────────

@dataclass
class Smoothed:
    current: float
    target: float

    def step(self, factor: float = CAMERA_SMOOTHING) -> None:
        self.current += (self.target - self.current) * factor


@dataclass
class CameraTarget:
    theta: Smoothed = field(default_factory=lambda: Smoothed(DEFAULT_THETA, DEFAULT_THETA))
    phi: Smoothed = field(default_factory=lambda: Smoothed(DEFAULT_PHI, DEFAULT_PHI))
    distance: Smoothed = field(default_factory=lambda: Smoothed(DEFAULT_DISTANCE, DEFAULT_DISTANCE))
    look_x: Smoothed = field(default_factory=lambda: Smoothed(0.0, 0.0))
    look_y: Smoothed = field(default_factory=lambda: Smoothed(0.0, 0.0))

    def step(self, factor: float = CAMERA_SMOOTHING) -> None:
        for value in (self.theta, self.phi, self.distance, self.look_x, self.look_y):
            value.step(factor)

    def pose(self) -> CameraPose:
        return orbit_pose(
            self.theta.current, self.phi.current, self.distance.current,
            self.look_x.current, self.look_y.current,
        )


@dataclass(frozen=True)
class DragAnchor:
    """Hand position and target values captured when a drag starts."""
    x: float
    y: float
    base_a: float
    base_b: float

    def apply(self, x: float, y: float, scale_a: float, scale_b: float) -> tuple[float, float]:
        return self.base_a + (x - self.x) * scale_a, self.base_b + (y - self.y) * scale_b


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def zoom_distance(hand_size: float) -> float:
    """Larger hand (closer to the webcam) -> shorter orbit distance."""
    t = clamp((hand_size - HAND_SIZE_FAR) / (HAND_SIZE_NEAR - HAND_SIZE_FAR), 0.0, 1.0)
    return MAX_DISTANCE - t * (MAX_DISTANCE - MIN_DISTANCE)


# ── Controller ─────────────────────────────────────────────────────────────

class CameraController:
    """Single owner of camera targets; call from one thread or event loop only."""

    def __init__(
        self,
        listener: CameraListener | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.listener = listener
        self.clock = clock
        self.mode = CameraMode.IDLE
        self.target = CameraTarget()
        self._anchors: dict[tuple[str, str], DragAnchor] = {}
        self._pinching: dict[str, bool] = {}
        # Roles seen in the current and previous detection pass; events sharing one `now` form a pass
        self._pass_time: float | None = None
        self._pass_roles: set[str] = set()
        self._prev_roles: set[str] = set()
        self._last_detected: float | None = None
        self._last_recenter: float | None = None

    @property
    def is_controlling(self) -> bool:
        return self.mode is CameraMode.HAND_CONTROLLING

    # ── Transitions ────────────────────────────────────────────────────

    def activate(self, now: float | None = None) -> None:
        if self.is_controlling:
            return
        now = self.clock() if now is None else now
        self.mode = CameraMode.HAND_CONTROLLING
        self._last_detected = now
        if self.listener:
            self.listener.set_orbit_controls(enabled=False, auto_rotate=False)
        log.info("Hand control active")

    def deactivate(self, reason: str = "explicit") -> bool:
        """Return to IDLE. False if already idle."""
        if not self.is_controlling:
            return False
        self.mode = CameraMode.IDLE
        self._anchors.clear()
        self._pinching.clear()
        self._clear_passes()
        self._last_detected = None
        self._last_recenter = None
        self.target = CameraTarget()
        if self.listener:
            self.listener.set_orbit_controls(enabled=True, auto_rotate=True)
            self.listener.fly_to(OVERVIEW_POSE)
        log.info("Hand control released (%s)", reason)
        return True

    def check_timeout(self, now: float | None = None) -> bool:
        """Deactivate after IDLE_TIMEOUT without a detected hand."""
        if not self.is_controlling or self._last_detected is None:
            return False
        now = self.clock() if now is None else now
        if now - self._last_detected >= IDLE_TIMEOUT:
            return self.deactivate("timeout")
        return False

    def recenter(self, now: float | None = None) -> bool:
        """Reset orbit angles and look-at, keep zoom. Refused within the cooldown."""
        now = self.clock() if now is None else now
        if self._last_recenter is not None and now - self._last_recenter < RECENTER_COOLDOWN:
            return False
        self._last_recenter = now
        self.target.theta.target = DEFAULT_THETA
        self.target.phi.target = DEFAULT_PHI
        self.target.look_x.target = 0.0
        self.target.look_y.target = 0.0
        self._anchors.clear()
        log.debug("Recentered camera")
        return True

    # ── Gesture events ─────────────────────────────────────────────────

    def handle(self, event: GestureEvent, now: float | None = None) -> None:
        if not self.is_controlling:
            return
        now = self.clock() if now is None else now
        if isinstance(event, NoHands):
            self._anchors.clear()
            self._pinching.clear()
            self._clear_passes()
            self.check_timeout(now)
        elif isinstance(event, HandsJoined):
            self._last_detected = now
            self.recenter(now)
        elif isinstance(event, HandGesture):
            self._last_detected = now
            self._enter_pass(event.role, now)
            self._handle_hand(event)

    def _handle_hand(self, g: HandGesture) -> None:
        role = g.role
        if self._pinching.get(role) != g.is_pinching:
            # Drag restarts on every pinch change
            self._drop_anchors(role)
            self._pinching[role] = g.is_pinching

        if g.is_left_hand:
            self._rotate(role, g)
            self.target.distance.target = zoom_distance(g.hand_size)
        elif g.is_pinching:
            self._pan(role, g)
        else:
            # Same rotation target as the left hand; last writer this pass wins
            self._rotate(role, g)

    def _drop_anchors(self, role: str) -> None:
        for key in [k for k in self._anchors if k[0] == role]:
            del self._anchors[key]

    def _enter_pass(self, role: str, now: float) -> None:
        """Record role as seen at now; a hand missing from the previous pass starts a new drag."""
        if now != self._pass_time:
            self._prev_roles = self._pass_roles
            self._pass_roles = set()
            self._pass_time = now
        if role not in self._prev_roles and role not in self._pass_roles:
            self._drop_anchors(role)
            self._pinching.pop(role, None)
        self._pass_roles.add(role)

    def _clear_passes(self) -> None:
        self._pass_time = None
        self._pass_roles = set()
        self._prev_roles = set()

    def _anchor(self, role: str, kind: str, g: HandGesture, base_a: float, base_b: float) -> DragAnchor:
        key = (role, kind)
        anchor = self._anchors.get(key)
        if anchor is None:
            anchor = DragAnchor(g.pan_x, g.pan_y, base_a, base_b)
            self._anchors[key] = anchor
        return anchor

    def _rotate(self, role: str, g: HandGesture) -> None:
        t = self.target
        anchor = self._anchor(role, "rotate", g, t.theta.target, t.phi.target)
        theta, phi = anchor.apply(g.pan_x, g.pan_y, ROTATE_SCALE_X, ROTATE_SCALE_Y)
        t.theta.target = theta
        t.phi.target = clamp(phi, -MAX_PHI, MAX_PHI)

    def _pan(self, role: str, g: HandGesture) -> None:
        t = self.target
        anchor = self._anchor(role, "pan", g, t.look_x.target, t.look_y.target)
        t.look_x.target, t.look_y.target = anchor.apply(g.pan_x, g.pan_y, PAN_SCALE, PAN_SCALE)

    # ── Animation frame ────────────────────────────────────────────────

    def frame(self, now: float | None = None) -> CameraPose | None:
        """Ease displayed values toward targets; None while idle."""
        if self.check_timeout(now) or not self.is_controlling:
            return None
        self.target.step()
        return self.target.pose()
