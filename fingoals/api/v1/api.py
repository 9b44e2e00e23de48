# fingoals/api/v1/api.py
from fastapi import APIRouter

from fingoals.api.v1.routes import goals, notification

api_router = APIRouter()

api_router.include_router(goals.router, prefix="/goals", tags=["Goals"])
api_router.include_router(notification.router, prefix="/notification", tags=["Notifications"])
