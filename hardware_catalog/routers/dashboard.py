from fastapi import APIRouter, Depends
from loguru import logger
from redis.asyncio.client import Redis
from sqlalchemy.ext.asyncio import async_sessionmaker

from hardware_catalog.core.redis import get_redis
from hardware_catalog.db_depends import get_session_factory
from hardware_catalog.dependencies.depend import CurrentUser, permission_required
from hardware_catalog.schemas.product import DashboardRead
from hardware_catalog.service import catalog

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard", response_model=DashboardRead)
async def get_dashboard(
    user: CurrentUser = Depends(permission_required("can_view_dashboard")),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis: Redis | None = Depends(get_redis),
):
    logger.info("Request to GET admin dashboard by user_id={user_id}", user_id=user.id)
    return await catalog.load_dashboard(session_factory, redis)
