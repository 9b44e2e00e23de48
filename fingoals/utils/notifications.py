# fingoals/utils/notifications.py
from typing import Any, Dict, List
import uuid
from fastapi import WebSocket
import logging

logger = logging.getLogger(__name__)

# Store active WebSocket connections by user_id
active_connections: Dict[uuid.UUID, List[WebSocket]] = {}

def connect_user(websocket: WebSocket, user_id: uuid.UUID):
    """Register a new WebSocket connection for a user"""
    active_connections.setdefault(user_id, []).append(websocket)
    logger.info(f"User {user_id} connected. Total connections: {len(active_connections[user_id])}")

def disconnect_user(websocket: WebSocket, user_id: uuid.UUID):
    """Remove a WebSocket connection for a user"""
    connections = active_connections.get(user_id, [])
    if websocket in connections:
        connections.remove(websocket)
    if not connections:
        active_connections.pop(user_id, None)

    logger.info(f"User {user_id} disconnected. Remaining connections: {len(active_connections.get(user_id, []))}")

def serialize_notification(notification: Any) -> Dict[str, Any]:
    return {
        "id": str(notification.id),
        "title": notification.title,
        "message": notification.message,
        "severity": notification.severity,
        "action_url": notification.action_url,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }

async def send_realtime_notification(user_id: uuid.UUID, notification: Any):
    """Send a notification to a user via WebSocket if they're connected"""
    if user_id not in active_connections:
        return

    payload = {"type": "notification", "data": serialize_notification(notification)}

    dead_connections = []
    for websocket in active_connections[user_id]:
        try:
            await websocket.send_json(payload)
        except Exception as e:
            logger.error(f"Failed to send to websocket: {str(e)}")
            dead_connections.append(websocket)

    for dead in dead_connections:
        disconnect_user(dead, user_id)
