import uuid

from loguru import logger
from redis.asyncio.client import Redis
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hardware_catalog.core.config import settings
from hardware_catalog.core.exceptions import CategoryNotFoundError, DuplicateNameError
from hardware_catalog.core.redis import cache_delete, cache_get_json, cache_set_json
from hardware_catalog.models.category import Category
from hardware_catalog.models.product import Product
from hardware_catalog.schemas.category import CategoryRead

CATEGORIES_CACHE_KEY = settings.CATEGORIES_CACHE_KEY


async def _invalidate_categories_cache(redis: Redis | None, reason: str):
    if redis is None:
        return
    # строка уже закоммичена; устаревший кэш живёт не дольше TTL
    try:
        deleted = await cache_delete(redis, CATEGORIES_CACHE_KEY)
    except Exception:
        logger.warning(
            "Categories cache not invalidated after {reason}, stale for up to {ttl}s",
            reason=reason,
            ttl=settings.CATEGORIES_CACHE_TTL_SECONDS,
        )
        return
    logger.debug("Categories cache invalidated after {reason}, deleted={deleted}", reason=reason, deleted=deleted)


def _is_unique_violation(exc: IntegrityError) -> bool:
    text = str(exc.orig).lower()
    return "unique" in text or "duplicate" in text


async def _commit_name(db: AsyncSession, name: str):
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if _is_unique_violation(e):
            logger.warning("Category name '{name}' is already taken", name=name)
            raise DuplicateNameError() from e
        raise


async def get_all_categories_from_db(db: AsyncSession, redis: Redis | None = None) -> list[CategoryRead]:
    if redis is not None:
        cached = await cache_get_json(redis, CATEGORIES_CACHE_KEY)
        if cached is not None:
            logger.debug("Categories served from cache, count={count}", count=len(cached))
            return [CategoryRead.model_validate(c) for c in cached]

    result = await db.execute(select(Category).order_by(Category.name.asc()))
    categories = [CategoryRead.model_validate(c) for c in result.scalars().all()]
    logger.info("Categories loaded from DB, count={count}", count=len(categories))

    if redis is not None:
        await cache_set_json(
            redis,
            CATEGORIES_CACHE_KEY,
            [c.model_dump(mode="json") for c in categories],
            settings.CATEGORIES_CACHE_TTL_SECONDS,
        )

    return categories


async def create_category_in_db(name: str, db: AsyncSession, redis: Redis | None = None) -> CategoryRead:
    category = Category(name=name)
    db.add(category)
    await _commit_name(db, name)
    await db.refresh(category)

    logger.info("Category created: id={id}, name='{name}'", id=category.id, name=category.name)
    await _invalidate_categories_cache(redis, "create")
    return CategoryRead.model_validate(category)


async def update_category_in_db(
    id: uuid.UUID, name: str, db: AsyncSession, redis: Redis | None = None
) -> CategoryRead:
    category = await db.get(Category, id)
    if category is None:
        logger.warning("Category id={id} not found for update", id=id)
        raise CategoryNotFoundError()

    category.name = name
    await _commit_name(db, name)
    await db.refresh(category)

    logger.info("Category renamed: id={id}, name='{name}'", id=id, name=name)
    await _invalidate_categories_cache(redis, "update")
    return CategoryRead.model_validate(category)


async def count_products_in_category(id: uuid.UUID, db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Product).where(Product.category_id == id)
    )
    return result.scalar_one()


async def delete_category_from_db(id: uuid.UUID, db: AsyncSession, redis: Redis | None = None) -> None:
    """Deletes the row only; a category still referenced by products is refused by the FK."""
    try:
        result = await db.execute(delete(Category).where(Category.id == id))
        if result.rowcount == 0:
            await db.rollback()
            logger.warning("Category id={id} not found for delete", id=id)
            raise CategoryNotFoundError()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Category id={id} is still referenced, delete refused by DB", id=id)
        raise

    logger.info("Category id={id} deleted", id=id)
    await _invalidate_categories_cache(redis, "delete")
