"""聊天 WebSocket 接口

Review note:
- One connection is one session; the key is generated here and sent as `connected`.
- Frames are JSON `{"event": ..., "data": {...}}`.
- Disconnect tears the session down exactly like `sessionEnd`.
"""
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from typing import Any, Dict, Optional
import logging
import uuid

from kbchat.api.deps import get_ws_hub
from kbchat.services.conversation.hub import SessionHub

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def make_emitter(websocket: WebSocket, session_key: str):
    async def emit(event: str, data: Dict[str, Any]) -> None:
        try:
            await websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError) as exc:
            # 连接已关闭时丢弃事件
            logger.debug("ws-send-dropped session=%s event=%s error=%s", session_key, event, exc)

    return emit


async def read_frame(websocket: WebSocket) -> Optional[Dict[str, Any]]:
    """Next frame as a dict; None when it does not decode to a JSON object."""
    try:
        frame = await websocket.receive_json()
    except (ValueError, KeyError):
        return None
    return frame if isinstance(frame, dict) else None


async def dispatch(hub: SessionHub, session_key: str, frame: Dict[str, Any]) -> None:
    event = frame.get("event")
    data = frame.get("data") or {}
    if not isinstance(data, dict):
        data = {}

    if event == "sessionStart":
        await hub.start_session(session_key)
    elif event == "userMessage":
        text = str(data.get("message") or "").strip()
        if text:
            await hub.submit(session_key, text)
    elif event == "typingStart":
        await hub.broadcast_typing(session_key, True)
    elif event == "typingStop":
        await hub.broadcast_typing(session_key, False)
    elif event == "sessionEnd":
        await hub.end_session(str(data.get("sessionId") or session_key))
    else:
        logger.info("ws-event-ignored session=%s event=%s", session_key, event)


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, hub: SessionHub = Depends(get_ws_hub)):
    """Real-time chat transport"""
    await websocket.accept()
    session_key = str(uuid.uuid4())
    emit = make_emitter(websocket, session_key)
    hub.connect(session_key, emit)
    await emit("connected", {"sessionId": session_key})

    try:
        while True:
            frame = await read_frame(websocket)
            if frame is None:
                await emit("turnError", {"reason": "invalid frame"})
                continue
            await dispatch(hub, session_key, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(session_key)
