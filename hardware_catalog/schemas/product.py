import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from hardware_catalog.schemas.category import CategoryRead, CategoryRef


class ProductForm(BaseModel):
    """Raw product form input, validated by `validate_product` before saving."""

    name: str = ""
    category_id: str | None = None
    price: str | float | None = None
    images: list[str] = Field(default_factory=list)


class ProductCreate(BaseModel):
    name: str
    category_id: uuid.UUID
    price: float
    images: list[str] = Field(default_factory=list)


class ProductUpdate(ProductCreate):
    pass


class ProductRead(BaseModel):
    id: uuid.UUID
    name: str
    category_id: uuid.UUID
    price: float
    images: list[str]
    created_at: datetime
    updated_at: datetime
    category: CategoryRef | None = None

    model_config = ConfigDict(from_attributes=True)


class ProductFilter(BaseModel):
    category_id: uuid.UUID | None = None
    search: str | None = None
    sort_field: Literal["name", "price", "created_at"] = "name"
    sort_direction: Literal["asc", "desc"] = "asc"


class ImageFile(BaseModel):
    filename: str
    content_type: str
    size: int
    content: bytes = b""


class ImageUploadResult(BaseModel):
    file: str
    ok: bool
    url: str | None = None
    error: str | None = None


class ImageBatchResult(BaseModel):
    images: list[str]
    results: list[ImageUploadResult]

    @property
    def failed(self) -> list[ImageUploadResult]:
        return [r for r in self.results if not r.ok]


class ImageRemove(BaseModel):
    image_url: str
    current_images: list[str] = Field(default_factory=list)


class ProductImages(BaseModel):
    images: list[str]


class DashboardStats(BaseModel):
    total_products: int
    total_categories: int
    average_price: float
    products_with_images: int
    products_per_category: dict[str, int]


class DashboardRead(BaseModel):
    categories: list[CategoryRead]
    products: list[ProductRead]
    stats: DashboardStats
