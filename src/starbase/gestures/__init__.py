"""Two-handed gesture camera control.

Provides:
    GestureInterpreter().process(observations) -> list[GestureEvent]
    CameraController(listener).handle(event) / .frame() -> CameraPose
    GestureSession(controller).run(on_pose)
"""

from __future__ import annotations

from starbase.gestures.camera import CameraController, CameraMode, CameraPose
from starbase.gestures.capture import GestureSession, HandTracker
from starbase.gestures.interpreter import (
    GestureInterpreter,
    HandGesture,
    HandsJoined,
    NoHands,
)
from starbase.gestures.landmarks import HandObservation, Landmark

__all__ = [
    "CameraController",
    "CameraMode",
    "CameraPose",
    "GestureInterpreter",
    "GestureSession",
    "HandGesture",
    "HandObservation",
    "HandTracker",
    "HandsJoined",
    "Landmark",
    "NoHands",
]
