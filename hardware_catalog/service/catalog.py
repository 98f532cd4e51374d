"""Catalog consistency rules spanning the database and the image storage.

Routers call these functions and never talk to `crud` or the storage gateway
directly. Every failure leaving this module is a `CatalogError`.
"""
import asyncio
import uuid
from typing import Iterable, Sequence

from loguru import logger
from redis.asyncio.client import Redis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hardware_catalog.core import kafka
from hardware_catalog.core.config import settings
from hardware_catalog.core.exceptions import (
    CategoryInUseError,
    CategoryNotFoundError,
    DeleteFailedError,
    DuplicateNameError,
    FieldValidationError,
    ImageCleanupError,
    ImageLimitExceededError,
    InvalidImageError,
    ProductNotFoundError,
    ProductPartiallyDeletedError,
    SaveFailedError,
    StorageError,
    StorageNotFoundError,
    TransientServiceError,
)
from hardware_catalog.core.metrics import CATEGORIES_OPERATIONS_TOTAL, PRODUCTS_OPERATIONS_TOTAL
from hardware_catalog.core.storage import StorageGateway
from hardware_catalog.crud import categories as categories_crud
from hardware_catalog.crud import products as products_crud
from hardware_catalog.schemas.category import CategoryRead
from hardware_catalog.schemas.product import (
    DashboardRead,
    DashboardStats,
    ImageBatchResult,
    ImageFile,
    ImageUploadResult,
    ProductCreate,
    ProductFilter,
    ProductForm,
    ProductRead,
)
from hardware_catalog.service.validation import (
    MAX_PRODUCT_IMAGES,
    validate_category_name,
    validate_image_file,
    validate_product,
)
from hardware_catalog.utils import format_price, generate_file_name, get_file_name_from_url

SERVICE_NAME = settings.SERVICE_NAME


def _category_op(operation: str, status: str):
    CATEGORIES_OPERATIONS_TOTAL.labels(service=SERVICE_NAME, operation=operation, status=status).inc()


def _product_op(operation: str, status: str):
    PRODUCTS_OPERATIONS_TOTAL.labels(service=SERVICE_NAME, operation=operation, status=status).inc()


async def _publish(event: dict):
    # событие уходит после коммита, его ошибка не откатывает операцию
    try:
        await kafka.send_kafka_event(event)
    except Exception:
        logger.exception("Failed to publish catalog event {event}", event=event.get("event"))


# --- reads ---

async def list_categories(db: AsyncSession, redis: Redis | None = None) -> list[CategoryRead]:
    try:
        categories = await categories_crud.get_all_categories_from_db(db, redis)
    except Exception as e:
        _category_op("list", "error")
        logger.exception("Error while loading categories")
        raise TransientServiceError("Could not load categories. Please try again.") from e
    _category_op("list", "success")
    return categories


async def list_products(db: AsyncSession, filters: ProductFilter | None = None) -> list[ProductRead]:
    try:
        products = await products_crud.get_all_products_from_db(db, filters)
    except Exception as e:
        _product_op("list", "error")
        logger.exception("Error while loading products")
        raise TransientServiceError("Could not load products. Please try again.") from e
    _product_op("list", "success")
    return products


async def get_product(product_id: uuid.UUID, db: AsyncSession) -> ProductRead:
    try:
        return await products_crud.get_product_from_db(product_id, db)
    except ProductNotFoundError:
        raise
    except Exception as e:
        logger.exception("Error while loading product id={id}", id=product_id)
        raise TransientServiceError("Could not load product. Please try again.") from e


def build_dashboard_stats(categories: Sequence[CategoryRead], products: Sequence[ProductRead]) -> DashboardStats:
    total = len(products)
    average = sum(p.price for p in products) / total if total else 0.0
    per_category = {str(c.id): 0 for c in categories}
    for p in products:
        key = str(p.category_id)
        per_category[key] = per_category.get(key, 0) + 1

    return DashboardStats(
        total_products=total,
        total_categories=len(categories),
        average_price=round(average, 2),
        products_with_images=sum(1 for p in products if p.images),
        products_per_category=per_category,
    )


async def load_dashboard(session_factory: async_sessionmaker, redis: Redis | None = None) -> DashboardRead:
    """Loads categories and products concurrently; both must finish before the view is built.

    Each read gets its own session since an `AsyncSession` cannot be shared
    between concurrent tasks.
    """
    async def _categories():
        async with session_factory() as db:
            return await categories_crud.get_all_categories_from_db(db, redis)

    async def _products():
        async with session_factory() as db:
            return await products_crud.get_all_products_from_db(db)

    try:
        categories, products = await asyncio.gather(_categories(), _products())
    except Exception as e:
        logger.exception("Error while loading dashboard data")
        raise TransientServiceError("Could not load dashboard. Please try again.") from e

    logger.info(
        "Dashboard loaded: categories={categories}, products={products}",
        categories=len(categories),
        products=len(products),
    )
    return DashboardRead(
        categories=categories,
        products=products,
        stats=build_dashboard_stats(categories, products),
    )


# --- categories ---

async def save_category(
    name: str,
    db: AsyncSession,
    redis: Redis | None = None,
    existing_id: uuid.UUID | None = None,
) -> CategoryRead:
    operation = "create" if existing_id is None else "update"
    check = validate_category_name(name)
    if not check.valid:
        _category_op(operation, "invalid")
        logger.info("Category form rejected: {error}", error=check.error)
        raise FieldValidationError({"name": check.error})

    try:
        if existing_id is None:
            category = await categories_crud.create_category_in_db(check.trimmed, db, redis)
        else:
            category = await categories_crud.update_category_in_db(existing_id, check.trimmed, db, redis)
    except DuplicateNameError:
        _category_op(operation, "duplicate")
        raise
    except CategoryNotFoundError:
        _category_op(operation, "not_found")
        raise
    except Exception as e:
        _category_op(operation, "error")
        logger.exception("Error saving category name='{name}'", name=check.trimmed)
        raise SaveFailedError("Error saving category. Please try again.") from e

    _category_op(operation, "success")
    return category


async def delete_category(
    category_id: uuid.UUID,
    products: Iterable[ProductRead],
    db: AsyncSession,
    redis: Redis | None = None,
) -> None:
    """Deletes a category nobody references.

    `products` is the caller's current product list. The in-memory count runs
    first; when it is zero the database is asked again right before the delete.
    """
    product_count = sum(1 for p in products if str(p.category_id) == str(category_id))
    if product_count > 0:
        _category_op("delete", "in_use")
        logger.info(
            "Category id={id} not deleted, used by {count} product(s)",
            id=category_id,
            count=product_count,
        )
        raise CategoryInUseError(product_count)

    try:
        server_count = await categories_crud.count_products_in_category(category_id, db)
        if server_count > 0:
            _category_op("delete", "in_use")
            logger.warning(
                "Category id={id} gained {count} product(s) since the list was loaded",
                id=category_id,
                count=server_count,
            )
            raise CategoryInUseError(server_count)

        await categories_crud.delete_category_from_db(category_id, db, redis)
    except (CategoryInUseError, CategoryNotFoundError):
        raise
    except IntegrityError as e:
        _category_op("delete", "in_use")
        try:
            count = await categories_crud.count_products_in_category(category_id, db)
        except Exception:
            logger.exception("Could not count products of category id={id}", id=category_id)
            count = 1
        raise CategoryInUseError(max(count, 1)) from e
    except Exception as e:
        _category_op("delete", "error")
        logger.exception("Error deleting category id={id}", id=category_id)
        raise DeleteFailedError("Error deleting category. Please try again.") from e

    _category_op("delete", "success")
    await _publish({"event": "CATEGORY_DELETED", "category_id": str(category_id)})


# --- products ---

async def save_product(
    form: ProductForm,
    db: AsyncSession,
    categories: Iterable[CategoryRead] | None = None,
    existing_id: uuid.UUID | None = None,
) -> ProductRead:
    operation = "create" if existing_id is None else "update"
    check = validate_product(form, categories)
    if not check.valid:
        _product_op(operation, "invalid")
        logger.info("Product form rejected: {errors}", errors=check.errors)
        raise FieldValidationError(check.errors)

    payload = ProductCreate(
        name=form.name.strip(),
        category_id=uuid.UUID(form.category_id.strip()),
        price=float(check.price),
        images=list(form.images),
    )

    try:
        if existing_id is None:
            product = await products_crud.create_product_in_db(payload, db)
        else:
            product = await products_crud.update_product_in_db(existing_id, payload, db)
    except ProductNotFoundError:
        _product_op(operation, "not_found")
        raise
    except Exception as e:
        _product_op(operation, "error")
        logger.exception("Error saving product name='{name}'", name=payload.name)
        raise SaveFailedError("Error saving product. Please try again.") from e

    _product_op(operation, "success")
    logger.info(
        "Product {operation}d: id={id}, price={price}",
        operation=operation,
        id=product.id,
        price=format_price(product.price),
    )
    await _publish({
        "event": "PRODUCT_CREATED" if existing_id is None else "PRODUCT_UPDATED",
        "product_id": str(product.id),
        "price": str(product.price),
    })
    return product


async def delete_product(product: ProductRead, db: AsyncSession, storage: StorageGateway) -> None:
    """Two-phase delete: every image blob first, then the row.

    All image deletions are attempted. A blob that is already gone counts as
    deleted. If any deletion fails the row is kept, its `images` list is cut
    down to the blobs that still exist and `ImageCleanupError` is raised.
    """
    removed: list[str] = []
    failed: list[str] = []
    remaining: list[str] = []

    for url in product.images:
        name = get_file_name_from_url(url)
        try:
            await storage.delete(name)
        except StorageNotFoundError:
            logger.info("Image {name} already absent from storage", name=name)
            removed.append(name)
        except StorageError as e:
            logger.warning("Could not delete image {name}: {error}", name=name, error=e.message)
            failed.append(name)
            remaining.append(url)
        else:
            removed.append(name)

    if failed:
        _product_op("delete", "image_cleanup_failed")
        if removed:
            try:
                await products_crud.set_product_images_in_db(product.id, remaining, db)
            except Exception:
                logger.exception(
                    "Could not drop deleted images from product id={id}, removed={removed}",
                    id=product.id,
                    removed=removed,
                )
        raise ImageCleanupError(failed)

    try:
        await products_crud.delete_product_from_db(product.id, db)
    except ProductNotFoundError:
        _product_op("delete", "not_found")
        raise
    except Exception as e:
        logger.exception("Error deleting product row id={id}", id=product.id)
        if removed:
            _product_op("delete", "partial")
            await _publish({
                "event": "PRODUCT_PARTIALLY_DELETED",
                "product_id": str(product.id),
                "removed_images": removed,
            })
            raise ProductPartiallyDeletedError(product.id, removed) from e
        _product_op("delete", "error")
        raise DeleteFailedError("Error deleting product. Please try again.") from e

    _product_op("delete", "success")
    await _publish({"event": "PRODUCT_DELETED", "product_id": str(product.id)})


def check_image_slots(current_count: int, requested: int) -> None:
    if current_count + requested > MAX_PRODUCT_IMAGES:
        _product_op("upload_images", "limit_exceeded")
        raise ImageLimitExceededError(MAX_PRODUCT_IMAGES, current_count, requested)


async def add_product_images(
    files: Sequence[ImageFile],
    current_images: Sequence[str],
    storage: StorageGateway,
) -> ImageBatchResult:
    check_image_slots(len(current_images), len(files))

    images = list(current_images)
    results: list[ImageUploadResult] = []

    for file in files:
        try:
            validate_image_file(file)
            name = generate_file_name(file.filename)
            url = await storage.upload(file.content, name, file.content_type)
        except (InvalidImageError, StorageError) as e:
            logger.info("Image {file} not added: {error}", file=file.filename, error=e.message)
            results.append(ImageUploadResult(file=file.filename, ok=False, error=e.message))
            continue
        images.append(url)
        results.append(ImageUploadResult(file=file.filename, ok=True, url=url))

    uploaded = sum(1 for r in results if r.ok)
    _product_op("upload_images", "success" if uploaded == len(files) else "partial")
    logger.info(
        "Image batch processed: uploaded={uploaded}, failed={failed}",
        uploaded=uploaded,
        failed=len(files) - uploaded,
    )
    return ImageBatchResult(images=images, results=results)


async def remove_product_image(image_url: str, current_images: Sequence[str], storage: StorageGateway) -> list[str]:
    # сначала удаляем blob, список меняем только после успеха
    await storage.delete(get_file_name_from_url(image_url))

    images = list(current_images)
    if image_url in images:
        images.remove(image_url)
    _product_op("remove_image", "success")
    return images
