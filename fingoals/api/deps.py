# fingoals/api/deps.py
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import jwt
import uuid

from fingoals.core.config import settings
from fingoals.core.database import AsyncSessionLocal, get_async_session
from fingoals.crud.aggregation import SqlAggregationSource
from fingoals.crud.category import SqlCategoryLookup
from fingoals.crud.gamification import SqlGamificationStore
from fingoals.crud.goal import SqlGoalStore
from fingoals.crud.notification import SqlNotificationDispatcher
from fingoals.jobs.scheduler import GoalScheduler
from fingoals.models.user import User
from fingoals.services.gamification import GamificationService
from fingoals.services.goals import GoalService
from fingoals.services.notifications import GoalNotifier

# Security schemes
optional_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then ``?token=``/``?access_token=``, then the access_token cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials

    token = request.query_params.get("token") or request.query_params.get("access_token")
    if token:
        return token

    token = request.cookies.get("access_token")
    if token and token.startswith("Bearer "):
        token = token[7:]
    return token


async def get_user_from_token(token: str, db: AsyncSession) -> User:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise _unauthorized("Invalid token: missing user ID")

    try:
        user_id = uuid.UUID(user_id_str)
    except ValueError:
        raise _unauthorized("Invalid user ID format in token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()

    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Inactive user")
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
) -> User:
    """Resolve the caller from a JWT issued by the auth service."""
    token = _extract_token(request, credentials)
    if not token:
        raise _unauthorized("Not authenticated")
    return await get_user_from_token(token, db)


# ────────────────────────────────────────────────────────────────────────────────
# ENGINE SERVICES
# ────────────────────────────────────────────────────────────────────────────────
def build_goal_service(session_factory=AsyncSessionLocal) -> GoalService:
    """Wire the goal engine onto the SQL adapters."""
    goals = SqlGoalStore(session_factory)
    notifier = GoalNotifier(SqlNotificationDispatcher(session_factory))
    gamification = GamificationService(goals, SqlGamificationStore(session_factory), notifier)
    return GoalService(
        goals,
        SqlAggregationSource(session_factory),
        SqlCategoryLookup(session_factory),
        gamification,
        notifier,
        debt_marker=settings.DEBT_DESCRIPTION_MARKER,
    )


def get_goal_service(request: Request) -> GoalService:
    service = getattr(request.app.state, "goal_service", None)
    if service is None:
        service = build_goal_service()
        request.app.state.goal_service = service
    return service


def get_gamification_service(service: GoalService = Depends(get_goal_service)) -> GamificationService:
    return service.gamification


def get_scheduler(request: Request) -> GoalScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Scheduler is not running")
    return scheduler
