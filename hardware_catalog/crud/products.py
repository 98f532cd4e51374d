import uuid
from datetime import datetime, timezone
from decimal import Decimal

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hardware_catalog.core.exceptions import ProductNotFoundError
from hardware_catalog.models.product import Product
from hardware_catalog.schemas.product import ProductCreate, ProductFilter, ProductRead, ProductUpdate

SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "created_at": Product.created_at,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _select_products():
    return (
        select(Product)
        .options(selectinload(Product.category))
        .execution_options(populate_existing=True)
    )


async def _load_product(id: uuid.UUID, db: AsyncSession) -> Product | None:
    result = await db.execute(_select_products().where(Product.id == id))
    return result.scalar_one_or_none()


async def get_all_products_from_db(db: AsyncSession, filters: ProductFilter | None = None) -> list[ProductRead]:
    filters = filters or ProductFilter()
    logger.info(
        "Request to get products from DB: category_id={category_id}, search='{search}', sort={field} {direction}",
        category_id=filters.category_id,
        search=filters.search or "",
        field=filters.sort_field,
        direction=filters.sort_direction,
    )

    query = _select_products()
    if filters.category_id is not None:
        query = query.where(Product.category_id == filters.category_id)
    if filters.search:
        query = query.where(Product.name.ilike(f"%{filters.search}%"))

    column = SORT_COLUMNS[filters.sort_field]
    query = query.order_by(column.asc() if filters.sort_direction == "asc" else column.desc())

    result = await db.execute(query)
    products = result.scalars().all()

    logger.info(
        "Products list retrieved from DB, count={count}",
        count=len(products),
    )

    return [ProductRead.model_validate(p) for p in products]


async def get_product_from_db(id: uuid.UUID, db: AsyncSession) -> ProductRead:
    logger.info(
        "Request to get product from DB with id={id}",
        id=id,
    )

    product = await _load_product(id, db)
    if not product:
        logger.warning(
            "Product not found in DB with id={id}",
            id=id,
        )
        raise ProductNotFoundError()

    return ProductRead.model_validate(product)


async def create_product_in_db(data: ProductCreate, db: AsyncSession) -> ProductRead:
    logger.info(
        "Attempt to create a new product with data={data}",
        data=data.model_dump(mode="json"),
    )

    now = _now()
    new_product = Product(
        name=data.name,
        category_id=data.category_id,
        price=Decimal(str(data.price)),
        images=list(data.images),
        created_at=now,
        updated_at=now,
    )
    db.add(new_product)
    await db.commit()

    logger.info(
        "Product successfully created in DB: id={id}",
        id=new_product.id,
    )

    return ProductRead.model_validate(await _load_product(new_product.id, db))


async def update_product_in_db(id: uuid.UUID, data: ProductUpdate, db: AsyncSession) -> ProductRead:
    logger.info(
        "Attempt to update product with id={id}",
        id=id,
    )

    product = await _load_product(id, db)
    if not product:
        logger.warning(
            "Attempt to update non-existent product with id={id}",
            id=id,
        )
        raise ProductNotFoundError()

    product.name = data.name
    product.category_id = data.category_id
    product.price = Decimal(str(data.price))
    product.images = list(data.images)
    # updated_at обновляется всегда, даже если поля не изменились
    product.updated_at = _now()

    await db.commit()

    logger.info(
        "Product successfully updated in DB: id={id}",
        id=id,
    )

    return ProductRead.model_validate(await _load_product(id, db))


async def set_product_images_in_db(id: uuid.UUID, images: list[str], db: AsyncSession) -> ProductRead:
    logger.info(
        "Attempt to set images of product id={id}, count={count}",
        id=id,
        count=len(images),
    )

    product = await _load_product(id, db)
    if not product:
        raise ProductNotFoundError()

    product.images = list(images)
    product.updated_at = _now()
    await db.commit()

    return ProductRead.model_validate(await _load_product(id, db))


async def delete_product_from_db(id: uuid.UUID, db: AsyncSession) -> None:
    logger.info(
        "Attempt to delete product with id={id}",
        id=id,
    )

    result = await db.execute(delete(Product).where(Product.id == id))
    if result.rowcount == 0:
        await db.rollback()
        logger.warning(
            "Attempt to delete non-existent product with id={id}",
            id=id,
        )
        raise ProductNotFoundError()

    await db.commit()

    logger.info(
        "Product with id={id} successfully deleted from DB",
        id=id,
    )
