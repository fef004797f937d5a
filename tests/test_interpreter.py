"""Tests for landmark geometry and the gesture interpreter."""

import math

import pytest

from starbase.gestures.interpreter import (
    PINCH_ENTER,
    PINCH_EXIT,
    GestureInterpreter,
    HandGesture,
    HandsJoined,
    NoHands,
    update_pinch,
)
from starbase.gestures.landmarks import (
    HandObservation,
    Landmark,
    angle_delta,
    is_palm_shown,
    palm_center,
)


def _hand(cx: float = 0.5, cy: float = 0.5, handedness: str = "Right",
          pinch: bool = False, palm: bool = True) -> HandObservation:
    """Synthetic upright hand; palm facing the camera unless palm=False."""
    s = 1 if handedness == "Right" else -1
    wrist = (cx, cy + 0.15)
    thumb = [(cx + s * 0.06, cy + 0.10), (cx + s * 0.08, cy + 0.06), (cx + s * 0.10, cy + 0.02)]

    def finger(x: float, tip_y: float) -> list[tuple[float, float]]:
        if palm:
            return [(x, cy), (x, cy - 0.05), (x, tip_y + 0.025), (x, tip_y)]
        return [(x, cy), (x, cy - 0.05), (x, cy + 0.01), (x, cy + 0.02)]

    index = finger(cx + s * 0.04, cy - 0.10)
    middle = finger(cx + s * 0.013, cy - 0.12)
    ring = finger(cx - s * 0.013, cy - 0.11)
    pinky = finger(cx - s * 0.04, cy - 0.08)
    index_tip = index[3]
    thumb_tip = (index_tip[0] + 0.01, index_tip[1]) if pinch else (cx + s * 0.16, cy)

    points = [wrist, *thumb, thumb_tip, *index, *middle, *ring, *pinky]
    return HandObservation([Landmark(x, y) for x, y in points], handedness=handedness)


def _frames(interp: GestureInterpreter, frame: list[HandObservation], n: int) -> list:
    events = []
    for _ in range(n):
        events = interp.process(frame)
    return events


# ── Geometry ────────────────────────────────────────────────────────────


def test_observation_needs_21_landmarks():
    with pytest.raises(ValueError):
        HandObservation([Landmark(0, 0)] * 20)


def test_handedness_is_mirrored():
    assert _hand(handedness="Right").role == "left"
    assert _hand(handedness="Left").role == "right"


def test_palm_shown_for_both_hands():
    for label in ("Left", "Right"):
        obs = _hand(handedness=label)
        assert is_palm_shown(obs.landmarks, obs.handedness)


def test_palm_not_shown_when_fingers_curled():
    obs = _hand(palm=False)
    assert not is_palm_shown(obs.landmarks, obs.handedness)


def test_back_of_hand_is_not_palm():
    # a left-labelled geometry reported with the opposite label faces away
    obs = _hand(handedness="Left")
    assert not is_palm_shown(obs.landmarks, "Right")


def test_palm_center():
    x, y = palm_center(_hand(0.3, 0.4).landmarks)
    assert x == pytest.approx(0.3)
    assert y == pytest.approx(0.43)


def test_angle_delta_wraps():
    assert angle_delta(0.1, -0.1) == pytest.approx(0.2)
    assert angle_delta(math.pi - 0.1, -math.pi + 0.1) == pytest.approx(-0.2)
    assert angle_delta(-math.pi + 0.1, math.pi - 0.1) == pytest.approx(0.2)


# ── Pinch hysteresis ────────────────────────────────────────────────────


def test_pinch_hysteresis_sequence():
    distances = [0.5, 0.3, 0.21, 0.27, 0.30, 0.31, 0.33, 0.27]
    state, seen = False, []
    for d in distances:
        state = update_pinch(state, d)
        seen.append(state)
    assert seen == [False, False, True, True, True, True, False, False]


def test_pinch_thresholds():
    assert PINCH_ENTER < PINCH_EXIT
    assert update_pinch(False, PINCH_ENTER) is False
    assert update_pinch(True, PINCH_EXIT) is False


# ── Interpreter ─────────────────────────────────────────────────────────


def test_empty_frame_yields_exactly_one_no_hands():
    interp = GestureInterpreter()
    interp.process([_hand()])
    assert interp.process([]) == [NoHands()]
    assert interp.process([]) == [NoHands()]
    assert not any(s.activated for s in interp.hands.values())


def test_palm_gate_activates_once():
    interp = GestureInterpreter()
    assert interp.process([_hand(palm=False)]) == []
    events = interp.process([_hand()])
    assert len(events) == 1 and isinstance(events[0], HandGesture)
    # stays active with fingers curled until a frame with no hands
    assert len(interp.process([_hand(palm=False)])) == 1
    interp.process([])
    assert interp.process([_hand(palm=False)]) == []


def test_gesture_position_and_role():
    interp = GestureInterpreter()
    events = _frames(interp, [_hand(0.9, 0.17, handedness="Right")], 60)
    g = events[0]
    assert g.is_left_hand and not g.is_right_hand
    assert g.pan_x == pytest.approx(0.8, abs=1e-3)
    assert g.pan_y == pytest.approx(0.6, abs=1e-3)
    assert not g.is_pinching
    assert g.knob_delta == 0.0


def test_position_is_smoothed():
    interp = GestureInterpreter()
    g = interp.process([_hand(0.9, 0.47)])[0]
    # one step of 0.25 from centre toward 0.9
    assert g.pan_x == pytest.approx(0.2)


def test_pinch_after_smoothing_and_first_frame_knob_is_zero():
    interp = GestureInterpreter()
    pinching = []
    for _ in range(12):
        g = interp.process([_hand(pinch=True)])[0]
        pinching.append(g)
    first = next(i for i, g in enumerate(pinching) if g.is_pinching)
    assert first > 0
    assert pinching[first].knob_delta == 0.0
    assert all(g.is_pinching for g in pinching[first:])


def test_pinch_releases_with_hysteresis():
    interp = GestureInterpreter()
    _frames(interp, [_hand(pinch=True)], 20)
    released = [interp.process([_hand()])[0].is_pinching for _ in range(20)]
    assert released[0] is True
    assert released[-1] is False


def test_hands_joined_when_palms_touch():
    interp = GestureInterpreter()
    events = interp.process([_hand(0.5, 0.5, "Right"), _hand(0.52, 0.5, "Left")])
    assert HandsJoined() in events
    assert sum(isinstance(e, HandGesture) for e in events) == 2


def test_hands_apart_do_not_join():
    interp = GestureInterpreter()
    events = _frames(interp, [_hand(0.2, 0.5, "Right"), _hand(0.8, 0.5, "Left")], 3)
    assert HandsJoined() not in events


def test_one_hand_never_joins():
    interp = GestureInterpreter()
    assert HandsJoined() not in interp.process([_hand(0.5, 0.5, "Right")])


def test_clear_forgets_smoothing():
    interp = GestureInterpreter()
    _frames(interp, [_hand(0.9, 0.5)], 20)
    interp.clear()
    assert interp.hands["left"].smooth_x == 0.5
    assert not interp.hands["left"].activated


def test_event_payloads():
    assert NoHands().to_dict() == {"detected": False}
    assert HandsJoined().to_dict() == {"handsJoined": True}
    g = HandGesture(pan_x=0.1, pan_y=-0.2, is_pinching=True, knob_delta=0.0,
                    hand_size=0.2, is_left_hand=False)
    d = g.to_dict()
    assert d["detected"] is True
    assert d["isRightHand"] is True and d["isLeftHand"] is False
    assert d["panX"] == 0.1
