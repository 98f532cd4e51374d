import uuid
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from loguru import logger
from redis.asyncio.client import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from hardware_catalog.core.redis import get_redis
from hardware_catalog.core.storage import StorageGateway, get_storage
from hardware_catalog.db_depends import get_db
from hardware_catalog.dependencies.depend import permission_required
from hardware_catalog.schemas.product import (
    ImageBatchResult,
    ImageFile,
    ImageRemove,
    ProductFilter,
    ProductForm,
    ProductImages,
    ProductRead,
)
from hardware_catalog.service import catalog
from hardware_catalog.service.validation import MAX_IMAGE_SIZE

router = APIRouter(prefix="/products", tags=["Products"])


async def _read_upload(file: UploadFile) -> ImageFile:
    """Buffers at most one byte over the image size limit."""
    if file.size is not None and file.size > MAX_IMAGE_SIZE:
        content = b""
        size = file.size
    else:
        content = await file.read(MAX_IMAGE_SIZE + 1)
        size = len(content)

    return ImageFile(
        filename=file.filename or "",
        content_type=file.content_type or "",
        size=size,
        content=content,
    )


@router.get("/", response_model=list[ProductRead])
async def get_all_products(
    category_id: uuid.UUID | None = Query(None),
    search: str | None = Query(None),
    sort_field: Literal["name", "price", "created_at"] = Query("name"),
    sort_direction: Literal["asc", "desc"] = Query("asc"),
    db: AsyncSession = Depends(get_db),
):
    logger.info(
        "Request to GET products: category_id={category_id}, search='{search}', sort={field} {direction}",
        category_id=category_id,
        search=search,
        field=sort_field,
        direction=sort_direction,
    )

    filters = ProductFilter(
        category_id=category_id,
        search=search,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    response = await catalog.list_products(db, filters)
    logger.info(
        "Successfully retrieved products list, count={count}",
        count=len(response),
    )
    return response


# маршруты /images объявлены до /{id}
@router.post(
    "/images",
    dependencies=[Depends(permission_required("can_manage_product_images"))],
    response_model=ImageBatchResult,
)
async def upload_product_images(
    files: list[UploadFile] = File(...),
    current_images: list[str] = Form(default=[]),
    storage: StorageGateway = Depends(get_storage),
):
    logger.info(
        "Request to UPLOAD {count} image(s), product already has {current}",
        count=len(files),
        current=len(current_images),
    )

    catalog.check_image_slots(len(current_images), len(files))
    images = [await _read_upload(file) for file in files]

    return await catalog.add_product_images(images, current_images, storage)


@router.delete(
    "/images",
    dependencies=[Depends(permission_required("can_manage_product_images"))],
    response_model=ProductImages,
)
async def remove_product_image(
    data: ImageRemove,
    storage: StorageGateway = Depends(get_storage),
):
    logger.info("Request to REMOVE image url={url}", url=data.image_url)

    images = await catalog.remove_product_image(data.image_url, data.current_images, storage)
    logger.info("Image removed, {count} image(s) left", count=len(images))
    return ProductImages(images=images)


@router.get("/{id}", response_model=ProductRead)
async def get_product(id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    logger.info("Request to GET product with id={id}", id=id)
    return await catalog.get_product(id, db)


@router.post(
    "/",
    dependencies=[Depends(permission_required("can_create_product"))],
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    product: ProductForm,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    logger.info(
        "Request to CREATE product with name='{name}', category_id={category_id}",
        name=product.name,
        category_id=product.category_id,
    )

    categories = await catalog.list_categories(db, redis)
    response = await catalog.save_product(product, db, categories)
    logger.info(
        "Product successfully created: id={id}, name='{name}'",
        id=response.id,
        name=response.name,
    )
    return response


@router.put(
    "/{id}",
    dependencies=[Depends(permission_required("can_update_product"))],
    response_model=ProductRead,
)
async def update_product(
    id: uuid.UUID,
    product: ProductForm,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    logger.info("Request to UPDATE product with id={id}", id=id)

    categories = await catalog.list_categories(db, redis)
    response = await catalog.save_product(product, db, categories, existing_id=id)
    logger.info(
        "Product successfully updated: id={id}, name='{name}'",
        id=response.id,
        name=response.name,
    )
    return response


@router.delete(
    "/{id}",
    dependencies=[Depends(permission_required("can_delete_product"))],
)
async def delete_product(
    id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    storage: StorageGateway = Depends(get_storage),
):
    logger.info("Request to DELETE product with id={id}", id=id)

    product = await catalog.get_product(id, db)
    await catalog.delete_product(product, db, storage)
    logger.info(
        "Product with id={id} successfully deleted together with {count} image(s)",
        id=id,
        count=len(product.images),
    )
    return {"detail": "Product deleted"}
