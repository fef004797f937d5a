"""Webcam hand tracking (OpenCV + MediaPipe) and the gesture control session.

High-level flow:
1) HandTracker.open() acquires the webcam and the HandLandmarker model.
2) GestureSession runs two loops on one event loop:
   - detection: read + detect in a worker thread, interpret, feed the camera
   - animation: ease the camera every frame at a fixed rate
3) The session ends on stop, or when the camera controller goes idle
   (explicit deactivation or idle timeout). The tracker is always released.

The vision stack is an optional extra (``pip install starbase[hands]``);
without it, opening a tracker raises HandTrackingInitError.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Protocol

from starbase.errors import HandTrackingInitError
from starbase.gestures.camera import CameraController, CameraPose
from starbase.gestures.interpreter import GestureInterpreter
from starbase.gestures.landmarks import HandObservation, Landmark

log = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = Path("hand_landmarker.task")


class HandSource(Protocol):
    def open(self) -> None: ...

    def read(self) -> list[HandObservation] | None: ...

    def close(self) -> None: ...


class HandTracker:
    """Two-hand landmark detection on a webcam stream.

    ``read()`` returns the hands found in the next frame (possibly empty),
    or None once the capture stops delivering frames.
    """

    def __init__(
        self,
        camera_index: int = 0,
        model_path: str | Path = DEFAULT_MODEL_PATH,
        min_confidence: float = 0.5,
    ) -> None:
        self.camera_index = camera_index
        self.model_path = Path(model_path)
        self.min_confidence = min_confidence
        self._cap = None
        self._landmarker = None
        self._cv2 = None
        self._mp = None
        self._start: float | None = None
        self._last_ts_ms = 0

    def __enter__(self) -> HandTracker:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def open(self) -> None:
        try:
            import cv2
            import mediapipe as mp
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision
        except ImportError as exc:
            raise HandTrackingInitError(
                f"Hand tracking needs opencv-python and mediapipe ({exc.name} missing)"
            ) from exc

        if not self.model_path.exists():
            raise HandTrackingInitError(f"Missing hand landmarker model: {self.model_path}")

        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise HandTrackingInitError(f"Cannot open camera {self.camera_index}")

        try:
            options = vision.HandLandmarkerOptions(
                base_options=mp_python.BaseOptions(model_asset_path=str(self.model_path)),
                running_mode=vision.RunningMode.VIDEO,
                num_hands=2,
                min_hand_detection_confidence=self.min_confidence,
                min_tracking_confidence=self.min_confidence,
            )
            self._landmarker = vision.HandLandmarker.create_from_options(options)
        except Exception as exc:
            cap.release()
            raise HandTrackingInitError(f"Cannot load hand landmarker: {exc}") from exc

        self._cap = cap
        self._cv2 = cv2
        self._mp = mp
        self._start = time.monotonic()
        log.info("Hand tracking started on camera %d", self.camera_index)

    def _timestamp_ms(self) -> int:
        # VIDEO mode requires strictly increasing timestamps
        computed = int((time.monotonic() - self._start) * 1000)
        self._last_ts_ms = max(self._last_ts_ms + 1, computed)
        return self._last_ts_ms

    def read(self) -> list[HandObservation] | None:
        if self._cap is None or self._landmarker is None:
            return None
        ok, frame = self._cap.read()
        if not ok:
            return None
        rgb = self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB)
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        result = self._landmarker.detect_for_video(image, self._timestamp_ms())

        hands: list[HandObservation] = []
        for i, raw in enumerate(result.hand_landmarks or []):
            label = "Right"
            if result.handedness and i < len(result.handedness) and result.handedness[i]:
                label = result.handedness[i][0].category_name
            hands.append(HandObservation(
                landmarks=[Landmark(p.x, p.y, p.z) for p in raw],
                handedness=label,
            ))
        return hands

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            log.info("Hand tracking stopped")


class GestureSession:
    """Runs hand control against one CameraController until stopped or idle."""

    def __init__(
        self,
        controller: CameraController,
        interpreter: GestureInterpreter | None = None,
        tracker_factory: Callable[[], HandSource] = HandTracker,
        fps: float = 60.0,
    ) -> None:
        self.controller = controller
        self.interpreter = interpreter or GestureInterpreter()
        self.tracker_factory = tracker_factory
        self.fps = fps
        self._pending_read: asyncio.Future | None = None

    async def run(
        self,
        on_pose: Callable[[CameraPose], None] | None = None,
        stop: asyncio.Event | None = None,
    ) -> None:
        stop = stop or asyncio.Event()
        tracker: HandSource | None = None
        try:
            tracker = self.tracker_factory()
            tracker.open()
        except Exception as exc:
            if tracker is not None:
                tracker.close()
            if isinstance(exc, HandTrackingInitError):
                raise
            raise HandTrackingInitError(str(exc)) from exc

        self.controller.activate()
        # One reader thread owns the tracker between open() and close()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hand-tracker")
        try:
            await asyncio.gather(
                self._detect_loop(tracker, executor, stop),
                self._animate_loop(on_pose, stop),
            )
        finally:
            pending, self._pending_read = self._pending_read, None
            if pending is not None and not pending.done():
                await asyncio.wait({pending})
            executor.shutdown(wait=True)
            tracker.close()
            self.interpreter.clear()
            self.controller.deactivate("stopped")

    async def _detect_loop(self, tracker: HandSource, executor: ThreadPoolExecutor, stop: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        while not stop.is_set() and self.controller.is_controlling:
            self._pending_read = loop.run_in_executor(executor, tracker.read)
            # shield: cancelling the session must not abandon a read still using the tracker
            observations = await asyncio.shield(self._pending_read)
            if observations is None:
                log.warning("Camera stopped delivering frames")
                break
            now = self.controller.clock()
            for event in self.interpreter.process(observations):
                self.controller.handle(event, now)
        stop.set()

    async def _animate_loop(self, on_pose: Callable[[CameraPose], None] | None, stop: asyncio.Event) -> None:
        interval = 1.0 / self.fps
        while not stop.is_set():
            pose = self.controller.frame()
            if pose is None:
                break
            if on_pose:
                on_pose(pose)
            await asyncio.sleep(interval)
        stop.set()
