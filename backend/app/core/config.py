"""
IntelliStudy Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from typing import Any, Dict, List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "IntelliStudy"
    INTELLISTUDY_ENV: str = "development"
    DEBUG: bool = True
    LOG_FILE: str = ""                      # Empty = stdout only

    # Vision models
    PRELOAD_MODELS: bool = True
    YOLO_WEIGHTS_PATH: str = "yolov8n.pt"   # COCO weights, class 67 = "cell phone"
    YOLO_CONFIDENCE: float = 0.5
    YOLO_IMGSZ: int = 320
    PHONE_FRAME_SKIP: int = 5               # Run phone detection every Nth frame

    # Focus thresholds
    HEAD_DOWN_PITCH_THRESHOLD: float = 25.0
    LOOKING_AWAY_YAW_THRESHOLD: float = 25.0
    POSE_BUFFER_SIZE: int = 15
    PHONE_DETECTION_CONFIDENCE: int = 3

    # Sampler
    SAMPLE_INTERVAL_SECONDS: float = 1.0

    # Browser context before the extension reports anything
    DEFAULT_BROWSER_URL: str = "https://canvas.school.edu/courses/101"
    DEFAULT_BROWSER_TITLE: str = "LMS - Calculus 101"

    # Database
    DATABASE_URL: str = "sqlite:///./intellistudy.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8000"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    @property
    def weights_path(self) -> str:
        p = Path(self.YOLO_WEIGHTS_PATH)
        if not p.is_absolute() and (self.base_dir / p).exists():
            return str(self.base_dir / p)
        # Bare names like "yolov8n.pt" are fetched by ultralytics
        return self.YOLO_WEIGHTS_PATH

    def focus_config(self) -> Dict[str, Any]:
        """Nested config dict accepted by focus_model trackers and backends"""
        return {
            "detection": {
                "HEAD_DOWN_PITCH_THRESHOLD": self.HEAD_DOWN_PITCH_THRESHOLD,
                "LOOKING_AWAY_YAW_THRESHOLD": self.LOOKING_AWAY_YAW_THRESHOLD,
                "POSE_BUFFER_SIZE": self.POSE_BUFFER_SIZE,
                "PHONE_DETECTION_CONFIDENCE": self.PHONE_DETECTION_CONFIDENCE,
                "PHONE_FRAME_SKIP": self.PHONE_FRAME_SKIP,
                "PHONE_MIN_SCORE": self.YOLO_CONFIDENCE,
                "YOLO_WEIGHTS_PATH": self.weights_path,
                "YOLO_IMGSZ": self.YOLO_IMGSZ,
            },
            "timing": {
                "SAMPLE_INTERVAL_SECONDS": self.SAMPLE_INTERVAL_SECONDS,
            },
        }

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        extra = "allow"


settings = Settings()
