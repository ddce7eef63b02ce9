"""
Focus Tracking Core - model-agnostic
Turns face landmarks and object detections into a per-tick TrackingState.
Does not load any model: the vision backend (or a test) feeds it results.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, Optional, Sequence, Tuple

from .states import (
    HEAD_DOWN_PITCH_THRESHOLD,
    LOOKING_AWAY_YAW_THRESHOLD,
    PHONE_COUNTER_MAX,
    PHONE_DETECTION_CONFIDENCE,
    PHONE_FRAME_SKIP,
    PHONE_LABELS,
    PHONE_MIN_SCORE,
    PITCH_NEUTRAL_RATIO,
    PITCH_SCALE,
    POSE_BUFFER_SIZE,
    YAW_SCALE,
    TrackingState,
)

logger = logging.getLogger("intellistudy.focus.core")


# ============================================================================
# LANDMARK DEFINITIONS
# ============================================================================

class FaceLandmarks:
    """MediaPipe FaceMesh indices used for the head-pose proxy"""
    NOSE_TIP = 1
    CHIN = 152
    TOP_HEAD = 10
    LEFT_EAR = 234
    RIGHT_EAR = 454

    REQUIRED = (NOSE_TIP, CHIN, TOP_HEAD, LEFT_EAR, RIGHT_EAR)


@dataclass(frozen=True)
class Detection:
    """One object-detection hit"""
    label: str
    score: float


def calculate_head_pose(landmarks: Sequence[Any]) -> Optional[Tuple[float, float]]:
    """
    Return ``(pitch, yaw)`` from normalized landmark positions, or None when
    the landmark set is unusable.

    Yaw is the nose offset from the ear midpoint; pitch grows as the nose
    gets closer to the chin relative to the whole face height.
    """
    try:
        if len(landmarks) <= max(FaceLandmarks.REQUIRED):
            return None
        nose = landmarks[FaceLandmarks.NOSE_TIP]
        chin = landmarks[FaceLandmarks.CHIN]
        top_head = landmarks[FaceLandmarks.TOP_HEAD]
        left_ear = landmarks[FaceLandmarks.LEFT_EAR]
        right_ear = landmarks[FaceLandmarks.RIGHT_EAR]

        mid_ear_x = (left_ear.x + right_ear.x) / 2
        yaw = (nose.x - mid_ear_x) * YAW_SCALE

        face_height = chin.y - top_head.y
        if face_height == 0:
            return None
        pitch_ratio = (chin.y - nose.y) / face_height
        pitch = (PITCH_NEUTRAL_RATIO - pitch_ratio) * PITCH_SCALE
    except (AttributeError, IndexError, TypeError):
        return None

    return pitch, yaw


# ============================================================================
# STATE TRACKERS
# ============================================================================

@dataclass(frozen=True)
class PoseReading:
    face_present: bool
    pitch: float = 0.0
    yaw: float = 0.0
    is_head_down: bool = False
    is_looking_at_screen: bool = False


class PoseEstimator:
    """Rolling-mean head pose with head-down / looking-at-screen verdicts"""

    def __init__(self, buffer_size: int = POSE_BUFFER_SIZE,
                 head_down_threshold: float = HEAD_DOWN_PITCH_THRESHOLD,
                 looking_away_threshold: float = LOOKING_AWAY_YAW_THRESHOLD):
        self.buffer_size = buffer_size
        self.head_down_threshold = head_down_threshold
        self.looking_away_threshold = looking_away_threshold
        self.pitch_buffer: Deque[float] = deque(maxlen=buffer_size)
        self.yaw_buffer: Deque[float] = deque(maxlen=buffer_size)

    def update(self, landmarks: Optional[Sequence[Any]]) -> PoseReading:
        pose = calculate_head_pose(landmarks) if landmarks is not None else None
        if pose is None:
            # Face lost: a stale mean must not survive re-acquisition
            self.reset()
            return PoseReading(face_present=False)

        pitch, yaw = pose
        self.pitch_buffer.append(pitch)
        self.yaw_buffer.append(yaw)

        avg_pitch = sum(self.pitch_buffer) / len(self.pitch_buffer)
        avg_yaw = sum(self.yaw_buffer) / len(self.yaw_buffer)

        is_head_down = avg_pitch > self.head_down_threshold
        is_looking = abs(avg_yaw) < self.looking_away_threshold and not is_head_down

        return PoseReading(
            face_present=True,
            pitch=avg_pitch,
            yaw=avg_yaw,
            is_head_down=is_head_down,
            is_looking_at_screen=is_looking,
        )

    def reset(self):
        self.pitch_buffer.clear()
        self.yaw_buffer.clear()


class PhonePresenceDetector:
    """
    Debounced phone signal.

    Detection runs on every ``frame_skip``-th tick only. A bounded counter
    moves up on a hit and down on a miss; the signal is on while the counter
    is at or above ``confidence``. The signal therefore lags reality by a few
    sampled frames in both directions.
    """

    def __init__(self, frame_skip: int = PHONE_FRAME_SKIP,
                 confidence: int = PHONE_DETECTION_CONFIDENCE,
                 counter_max: int = PHONE_COUNTER_MAX,
                 min_score: float = PHONE_MIN_SCORE,
                 labels: Iterable[str] = PHONE_LABELS):
        self.frame_skip = max(1, frame_skip)
        self.confidence = confidence
        self.counter_max = counter_max
        self.min_score = min_score
        self.labels = frozenset(labels)
        self.counter = 0
        self.frame_index = 0

    @property
    def is_phone_detected(self) -> bool:
        return self.counter >= self.confidence

    def should_sample(self) -> bool:
        return self.frame_index % self.frame_skip == 0

    def is_phone(self, detections: Iterable[Detection]) -> bool:
        return any(
            d.label in self.labels and d.score >= self.min_score
            for d in detections
        )

    def tick(self, run_detection: Callable[[], Iterable[Detection]]) -> bool:
        if self.should_sample():
            try:
                detected = self.is_phone(run_detection() or ())
            except Exception as e:
                logger.warning(f"Phone detection failed, counting as miss: {e}")
                detected = False

            if detected:
                self.counter = min(self.counter + 1, self.counter_max)
            else:
                self.counter = max(self.counter - 1, 0)
        self.frame_index += 1
        return self.is_phone_detected

    def reset(self):
        self.counter = 0
        self.frame_index = 0


# ============================================================================
# FOCUS TRACKER - one per session
# ============================================================================

class FocusTracker:
    """
    Owns the pose buffers and the phone counter for one session and turns
    raw per-frame results into a TrackingState.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._initialize_config()
        self.pose_estimator = PoseEstimator(
            buffer_size=self.POSE_BUFFER_SIZE,
            head_down_threshold=self.HEAD_DOWN_PITCH_THRESHOLD,
            looking_away_threshold=self.LOOKING_AWAY_YAW_THRESHOLD,
        )
        self.phone_detector = PhonePresenceDetector(
            frame_skip=self.PHONE_FRAME_SKIP,
            confidence=self.PHONE_DETECTION_CONFIDENCE,
            min_score=self.PHONE_MIN_SCORE,
        )
        self.last_state: Optional[TrackingState] = None
        self.last_pose: Optional[PoseReading] = None

    def _initialize_config(self):
        """Extract config values with defaults"""
        detection = self.config.get("detection", {})

        self.HEAD_DOWN_PITCH_THRESHOLD = detection.get("HEAD_DOWN_PITCH_THRESHOLD", HEAD_DOWN_PITCH_THRESHOLD)
        self.LOOKING_AWAY_YAW_THRESHOLD = detection.get("LOOKING_AWAY_YAW_THRESHOLD", LOOKING_AWAY_YAW_THRESHOLD)
        self.POSE_BUFFER_SIZE = detection.get("POSE_BUFFER_SIZE", POSE_BUFFER_SIZE)
        self.PHONE_DETECTION_CONFIDENCE = detection.get("PHONE_DETECTION_CONFIDENCE", PHONE_DETECTION_CONFIDENCE)
        self.PHONE_FRAME_SKIP = detection.get("PHONE_FRAME_SKIP", PHONE_FRAME_SKIP)
        self.PHONE_MIN_SCORE = detection.get("PHONE_MIN_SCORE", PHONE_MIN_SCORE)

    def should_detect_objects(self) -> bool:
        return self.phone_detector.should_sample()

    def update(self, landmarks: Optional[Sequence[Any]],
               run_detection: Callable[[], Iterable[Detection]]) -> TrackingState:
        """
        Process one inference tick.

        ``landmarks`` is the first face's landmark list or None when no face
        was found; ``run_detection`` is only called on sampled frames.
        """
        phone = self.phone_detector.tick(run_detection)
        pose = self.pose_estimator.update(landmarks)

        state = TrackingState(
            is_face_present=pose.face_present,
            is_head_down=pose.is_head_down,
            is_looking_at_screen=pose.is_looking_at_screen,
            is_phone_detected=phone,
        )
        self.last_pose = pose
        self.last_state = state
        return state

    def reset(self):
        self.pose_estimator.reset()
        self.phone_detector.reset()
        self.last_state = None
        self.last_pose = None
