"""
IntelliStudy Focus Service
Wraps focus_model.vision_backend.VisionBackend into an async service.
Loads MediaPipe + YOLO ONCE and reuses them across sessions; each session
brings its own FocusTracker so smoothing state never leaks between sessions.
"""

import asyncio
import base64
import binascii
import logging
from typing import Any, Optional

from focus_model import FocusTracker, TrackingState
from app.core.config import settings

logger = logging.getLogger("intellistudy.focus.service")


class FocusService:
    """
    Singleton holder of the vision backend.

    - Initialises the models exactly once, lazily, so an import-time or
      download failure does not take the API down.
    - Runs CPU-bound inference in a thread-pool executor.
    """

    _instance: Optional["FocusService"] = None
    _backend = None   # VisionBackend instance
    _ready: bool = False

    @classmethod
    def get_instance(cls) -> "FocusService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        if FocusService._backend is not None:
            self._ready = True
            return
        self._initialise_backend()

    # ──────────────────────────────────────────────────────
    # Initialisation
    # ──────────────────────────────────────────────────────

    def _initialise_backend(self):
        try:
            from focus_model.vision_backend import VisionBackend
            FocusService._backend = VisionBackend(settings.focus_config())
            FocusService._ready = True
            logger.info("Vision backend initialised (MediaPipe FaceLandmarker + YOLO)")
        except Exception as e:
            logger.error(f"Failed to initialise vision backend: {e}")
            FocusService._ready = False

    @property
    def is_ready(self) -> bool:
        return FocusService._ready and FocusService._backend is not None

    # ──────────────────────────────────────────────────────
    # Frame processing
    # ──────────────────────────────────────────────────────

    def decode_frame(self, frame_b64: str) -> Optional[Any]:
        """base64 JPEG -> BGR frame, or None when the payload is unusable"""
        if not self.is_ready or not frame_b64:
            return None
        try:
            from focus_model.vision_backend import decode_frame
            return decode_frame(base64.b64decode(frame_b64))
        except (binascii.Error, ValueError) as e:
            logger.debug(f"Dropping undecodable frame: {e}")
            return None

    def process_frame_sync(self, frame: Any, tracker: FocusTracker) -> Optional[TrackingState]:
        """
        Run one inference tick. A failed tick keeps the tracker's previous
        state (buffers untouched) instead of raising.
        """
        if not self.is_ready:
            return None
        try:
            return FocusService._backend.process_frame(frame, tracker)
        except Exception as e:
            logger.error(f"Frame processing error: {e}")
            return tracker.last_state

    async def process_frame(self, frame: Any, tracker: FocusTracker) -> Optional[TrackingState]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.process_frame_sync, frame, tracker)

    # ──────────────────────────────────────────────────────
    # Cleanup
    # ──────────────────────────────────────────────────────

    def cleanup(self):
        if FocusService._backend is not None:
            try:
                FocusService._backend.cleanup()
            except Exception as e:
                logger.warning(f"Vision backend cleanup failed: {e}")
            FocusService._backend = None
            FocusService._ready = False
            logger.info("Vision backend cleaned up")


# ── Singleton accessor ───────────────────────────────────

def get_focus_service() -> FocusService:
    return FocusService.get_instance()
