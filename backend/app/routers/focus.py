"""
IntelliStudy Focus Router
=========================
WebSocket endpoint carrying webcam frames and browser reports for one
focus session. Session lifecycle lives in ``session_manager``; this router
is a thin controller.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.focus_service import get_focus_service
from app.services.session_manager import get_session_manager
from app.services.websocket_manager import session_channel, ws_manager

logger = logging.getLogger("intellistudy.focus.router")

router = APIRouter(tags=["Focus"])


@router.get("/api/focus/health")
def focus_health():
    """Check if the vision backend is available"""
    service = get_focus_service()
    return {
        "available": service.is_ready,
        "module": "VisionBackend (MediaPipe + YOLO)",
    }


@router.websocket("/ws/focus/{session_id}")
async def websocket_focus(websocket: WebSocket, session_id: str):
    """
    Real-time focus tracking WebSocket.

    Protocol:
    - Client sends base64-encoded JPEG frames as JSON:
      {"type": "frame", "data": "<base64 jpeg>"}
    - Server responds with:
      {"type": "tracking", "data": {...TrackingState...}, "classification": {...}}
    - Browser extension reports:
      {"type": "browser", "url": "...", "title": "..."}
    - The server also pushes {"type": "slices"} every sampled second and
      {"type": "session_ended"} when the session stops.
    """
    channel = session_channel(session_id)
    await ws_manager.connect(websocket, channel)

    manager = get_session_manager()
    try:
        session = manager.get(session_id)
    except KeyError:
        await websocket.send_json({"type": "error", "message": "Session not found"})
        ws_manager.disconnect(websocket, channel)
        await websocket.close()
        return

    service = get_focus_service()
    if not service.is_ready:
        # Session keeps running; with no frames it records ABSENT
        await websocket.send_json({
            "type": "error",
            "message": "Vision backend not available. Ensure mediapipe and ultralytics are installed.",
        })

    frame_count = 0
    logger.info(f"Focus WebSocket connected (session={session_id})")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue

            msg_type = msg.get("type", "")

            if msg_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if msg_type == "browser":
                try:
                    browser = session.update_browser(msg.get("url", ""), msg.get("title"))
                except ValueError as e:
                    await websocket.send_json({"type": "error", "message": str(e)})
                    continue
                await websocket.send_json({"type": "browser", "data": browser.to_dict()})
                continue

            if msg_type == "frame":
                if not session.accepts_frames or not service.is_ready:
                    continue

                frame = service.decode_frame(msg.get("data", ""))
                if frame is None:
                    continue

                state = await session.track_frame(service, frame)
                if not session.accepts_frames:
                    continue
                frame_count += 1

                status, distraction = session.classification()
                await websocket.send_json({
                    "type": "tracking",
                    "data": state.to_dict() if state else None,
                    "classification": {
                        "status": status.value,
                        "distraction_type": distraction.value,
                    },
                    "frame_number": frame_count,
                })

    except WebSocketDisconnect:
        logger.info(f"Focus client disconnected (session={session_id}, frames={frame_count})")
    except Exception as e:
        logger.error(f"Focus WS error: {e}", exc_info=True)
    finally:
        ws_manager.disconnect(websocket, channel)
