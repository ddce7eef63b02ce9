"""
IntelliStudy - FastAPI Application Entry Point
Study focus tracking: webcam head pose + phone presence + browser context.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import init_db
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO", settings.LOG_FILE or None)
logger = logging.getLogger("intellistudy.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  IntelliStudy Focus Engine - Starting")
    logger.info("=" * 60)

    # Ensure session tables exist
    from app.models.study_session import StudySession  # noqa: F401
    init_db()
    logger.info("Database initialized")

    # Pre-load vision models
    if settings.PRELOAD_MODELS:
        from app.services.focus_service import get_focus_service
        if get_focus_service().is_ready:
            logger.info("Vision models loaded successfully")
        else:
            logger.warning("Vision models unavailable, sessions will record ABSENT")

    logger.info(f"Environment: {settings.INTELLISTUDY_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info("IntelliStudy is ready!")
    logger.info("=" * 60)

    yield

    logger.info("IntelliStudy shutting down...")
    from app.services.session_manager import get_session_manager
    await get_session_manager().shutdown_all()
    from app.services.focus_service import FocusService
    if FocusService._instance is not None:
        FocusService._instance.cleanup()


# Create FastAPI app
app = FastAPI(
    title="IntelliStudy - Focus Engine",
    description="Per-second study focus classification and session reports",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from app.routers import focus, sessions

app.include_router(sessions.router)
app.include_router(focus.router)


# Health check endpoint
@app.get("/health")
def health_check():
    import torch
    from app.services.session_manager import get_session_manager
    from app.services.websocket_manager import ws_manager

    gpu_available = torch.cuda.is_available()
    live = [s for s in get_session_manager().sessions.values() if s.report is None]
    return {
        "status": "healthy",
        "service": "IntelliStudy",
        "version": "1.0.0",
        "active_sessions": len(live),
        "websocket_clients": ws_manager.total_connections,
        "device": "cuda" if gpu_available else "cpu",
        "gpu": torch.cuda.get_device_name(0) if gpu_available else None,
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "IntelliStudy API",
        "version": "1.0.0",
        "description": "Study focus tracking engine",
        "endpoints": {
            "sessions": "/api/sessions",
            "focus_health": "/api/focus/health",
            "websocket_focus": "/ws/focus/{session_id}",
            "health": "/health",
        },
    }
