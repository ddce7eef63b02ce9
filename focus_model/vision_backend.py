"""
Vision Backend - MediaPipe face landmarks + YOLO phone detection.
Loads the models once and feeds their raw results into a per-session
FocusTracker. Heavy imports live here so the rest of focus_model stays
importable without them.
"""

import logging
import os
import urllib.request
from typing import Any, Dict, List, Optional, Sequence

import cv2
import mediapipe as mp
import numpy as np
import torch
from ultralytics import YOLO

from .focus_core import Detection, FocusTracker
from .states import PHONE_LABELS, PHONE_MIN_SCORE, TrackingState

logger = logging.getLogger("intellistudy.focus.vision")


# ============================================================================
# MEDIAPIPE COMPATIBILITY LAYER
# mediapipe >= 0.10.30 removed mp.solutions; use mp.tasks API instead.
# ============================================================================

_USE_TASKS_API = not hasattr(mp, 'solutions')

_MODELS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.models')
_FACE_MODEL_PATH = os.path.join(_MODELS_DIR, 'face_landmarker.task')
_FACE_MODEL_URL = (
    'https://storage.googleapis.com/mediapipe-models/'
    'face_landmarker/face_landmarker/float16/latest/face_landmarker.task'
)


def _ensure_face_model_downloaded():
    """Download the FaceLandmarker .task file if not already cached."""
    os.makedirs(_MODELS_DIR, exist_ok=True)
    if not os.path.exists(_FACE_MODEL_PATH):
        logger.info(f"Downloading {os.path.basename(_FACE_MODEL_PATH)} ...")
        urllib.request.urlretrieve(_FACE_MODEL_URL, _FACE_MODEL_PATH)
        logger.info(f"Saved {os.path.basename(_FACE_MODEL_PATH)}")


class VisionBackend:
    """
    Shared model holder. Stateless per frame: all smoothing state lives in
    the FocusTracker passed to ``process_frame``.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        detection = self.config.get("detection", {})
        self.weights = detection.get("YOLO_WEIGHTS_PATH", "yolov8n.pt")
        self.confidence = detection.get("PHONE_MIN_SCORE", PHONE_MIN_SCORE)
        self.imgsz = detection.get("YOLO_IMGSZ", 320)

        self._setup_device()
        self._initialize_mediapipe()
        self._load_phone_model()

    def _setup_device(self):
        if torch.cuda.is_available():
            self.device = "cuda"
            self.use_half = True
            logger.info(f"GPU detected: {torch.cuda.get_device_name(0)}")
        else:
            self.device = "cpu"
            self.use_half = False
            logger.info("No GPU detected, running phone detection on CPU")

    def _initialize_mediapipe(self):
        if _USE_TASKS_API:
            _ensure_face_model_downloaded()
            face_opts = mp.tasks.vision.FaceLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=_FACE_MODEL_PATH),
                running_mode=mp.tasks.vision.RunningMode.IMAGE,
                num_faces=1,
            )
            self._face_landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(face_opts)
        else:
            self.face_mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=True,
                min_detection_confidence=0.5,
                min_tracking_confidence=0.5,
            )

    def _load_phone_model(self):
        logger.info(f"Loading YOLO model from: {self.weights}")
        self.model = YOLO(str(self.weights))
        self.model.to(self.device)
        names = self.model.names
        self.phone_class_ids = [
            int(idx) for idx, name in names.items() if name in PHONE_LABELS
        ]
        if not self.phone_class_ids:
            logger.warning("YOLO model has no phone class, phone signal will stay off")

    # ──────────────────────────────────────────────────────
    # Per-frame inference
    # ──────────────────────────────────────────────────────

    def detect_face(self, frame_rgb: np.ndarray) -> Optional[Sequence[Any]]:
        """First face's landmark list, or None"""
        if _USE_TASKS_API:
            mp_image = mp.Image(
                image_format=mp.ImageFormat.SRGB,
                data=np.ascontiguousarray(frame_rgb),
            )
            result = self._face_landmarker.detect(mp_image)
            return result.face_landmarks[0] if result.face_landmarks else None

        result = self.face_mesh.process(frame_rgb)
        if not result.multi_face_landmarks:
            return None
        return result.multi_face_landmarks[0].landmark

    def detect_phones(self, frame: np.ndarray) -> List[Detection]:
        if not self.phone_class_ids:
            return []
        results = self.model(
            frame,
            stream=False,
            conf=self.confidence,
            classes=self.phone_class_ids,
            device=self.device,
            half=self.use_half,
            imgsz=self.imgsz,
            verbose=False,
        )
        detections = []
        for r in results:
            for box in r.boxes:
                cls = int(box.cls[0])
                detections.append(Detection(label=r.names[cls], score=float(box.conf[0])))
        return detections

    def process_frame(self, frame: np.ndarray, tracker: FocusTracker) -> TrackingState:
        """Run face landmarks every frame and phone detection on the tracker's sampled frames."""
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        landmarks = self.detect_face(frame_rgb)
        return tracker.update(landmarks, lambda: self.detect_phones(frame))

    def cleanup(self):
        """Release resources"""
        if _USE_TASKS_API:
            obj = getattr(self, '_face_landmarker', None)
            if obj is not None:
                try:
                    obj.close()
                except Exception as e:
                    logger.warning(f"FaceLandmarker close failed: {e}")
        else:
            try:
                if hasattr(self, 'face_mesh') and hasattr(self.face_mesh, 'close'):
                    self.face_mesh.close()
            except Exception as e:
                logger.warning(f"FaceMesh close failed: {e}")
        self.model = None


def decode_frame(data: bytes) -> Optional[np.ndarray]:
    """JPEG/PNG bytes -> BGR frame, or None if undecodable"""
    nparr = np.frombuffer(data, np.uint8)
    return cv2.imdecode(nparr, cv2.IMREAD_COLOR)
