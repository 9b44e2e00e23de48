# fingoals/api/v1/routes/notification.py
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID
from datetime import datetime, timezone
import logging

from fingoals.api import deps
from fingoals.core.database import get_async_session
from fingoals.crud import notification as crud_notification
from fingoals.models.user import User
from fingoals.schemas.notification import NotificationRead
from fingoals.utils.notifications import connect_user, disconnect_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[NotificationRead])
async def get_notifications(
    unread_only: bool = Query(False, description="Filter to only unread notifications"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of notifications to return"),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(deps.get_current_user),
):
    """Goal notifications for the current user, newest first"""
    return await crud_notification.get_notifications_for_user(
        db,
        user_id=current_user.id,
        unread_only=unread_only,
        limit=limit,
    )


@router.get("/unread-count", response_model=int)
async def get_unread_count(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(deps.get_current_user),
):
    return await crud_notification.get_unread_count(db, current_user.id)


@router.post("/read_all", response_model=int)
async def mark_all_notifications_as_read(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(deps.get_current_user),
):
    """Mark all notifications for the current user as read"""
    return await crud_notification.mark_all_notifications_as_read(db, current_user.id)


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_notification_as_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(deps.get_current_user),
):
    notification = await crud_notification.mark_notification_as_read(db, notification_id, current_user.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Push goal notifications to the user as they are created"""
    try:
        user = await deps.get_user_from_token(token, db)
    except HTTPException:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    await websocket.accept()
    connect_user(websocket, user.id)
    try:
        while True:
            await websocket.receive_text()
            await websocket.send_json({"status": "received", "timestamp": datetime.now(timezone.utc).isoformat()})
    except WebSocketDisconnect:
        pass
    finally:
        disconnect_user(websocket, user.id)
