import uuid

from fastapi import APIRouter, Depends, status
from loguru import logger
from redis.asyncio.client import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from hardware_catalog.core.redis import get_redis
from hardware_catalog.db_depends import get_db
from hardware_catalog.dependencies.depend import permission_required
from hardware_catalog.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from hardware_catalog.service import catalog

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("/", response_model=list[CategoryRead])
async def get_all_categories(
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    logger.info("Request to GET all categories")

    response = await catalog.list_categories(db, redis)
    logger.info(
        "Successfully retrieved categories list, count={count}",
        count=len(response),
    )
    return response


@router.post(
    "/",
    dependencies=[Depends(permission_required("can_create_category"))],
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    category: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    logger.info(
        "Request to CREATE category with name='{name}'",
        name=category.name,
    )

    response = await catalog.save_category(category.name, db, redis)
    logger.info(
        "Category successfully created: id={id}, name='{name}'",
        id=response.id,
        name=response.name,
    )
    return response


@router.put(
    "/{id}",
    dependencies=[Depends(permission_required("can_update_category"))],
    response_model=CategoryRead,
)
async def update_category(
    id: uuid.UUID,
    data: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    logger.info(
        "Request to UPDATE category with id={id}",
        id=id,
    )

    response = await catalog.save_category(data.name, db, redis, existing_id=id)
    logger.info(
        "Category successfully updated: id={id}, name='{name}'",
        id=response.id,
        name=response.name,
    )
    return response


@router.delete(
    "/{id}",
    dependencies=[Depends(permission_required("can_delete_category"))],
)
async def delete_category(
    id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    logger.info(
        "Request to DELETE category with id={id}",
        id=id,
    )

    products = await catalog.list_products(db)
    await catalog.delete_category(id, products, db, redis)
    logger.info(
        "Category with id={id} successfully deleted",
        id=id,
    )
    return {"detail": "Category deleted"}
