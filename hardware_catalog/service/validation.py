"""Input validation for the admin forms.

Everything here is pure and synchronous: nothing touches the database or the
object storage, so a failed check never reaches the repository.
"""
import uuid
from decimal import Decimal, InvalidOperation
from typing import Iterable

from pydantic import BaseModel, Field

from hardware_catalog.core.exceptions import InvalidImageError
from hardware_catalog.schemas.category import CategoryRead
from hardware_catalog.schemas.product import ImageFile, ProductForm

CATEGORY_NAME_MIN = 2
CATEGORY_NAME_MAX = 50
PRODUCT_NAME_MIN = 2
PRODUCT_NAME_MAX = 100
PRICE_MAX = Decimal("1000000")
PRICE_STEP = Decimal("0.01")
MAX_PRODUCT_IMAGES = 10

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5 MiB


class CategoryNameCheck(BaseModel):
    valid: bool
    trimmed: str
    error: str | None = None


class ProductCheck(BaseModel):
    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)
    price: Decimal | None = None


def validate_category_name(raw: str | None) -> CategoryNameCheck:
    trimmed = (raw or "").strip()

    if not trimmed:
        error = "Category name is required"
    elif len(trimmed) < CATEGORY_NAME_MIN:
        error = f"Category name must be at least {CATEGORY_NAME_MIN} characters"
    elif len(trimmed) > CATEGORY_NAME_MAX:
        error = f"Category name must be at most {CATEGORY_NAME_MAX} characters"
    else:
        return CategoryNameCheck(valid=True, trimmed=trimmed)

    return CategoryNameCheck(valid=False, trimmed=trimmed, error=error)


def parse_price(raw: str | float | int | Decimal | None) -> Decimal | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        price = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not price.is_finite():
        return None
    return price


def parse_uuid(raw: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(raw)
    except ValueError:
        return None


def validate_product(form: ProductForm, categories: Iterable[CategoryRead] | None = None) -> ProductCheck:
    """Field-level checks of a product form.

    When `categories` is given, `category_id` must belong to one of them; the
    caller passes the category list it has loaded.
    """
    errors: dict[str, str] = {}

    name = form.name.strip()
    if not name:
        errors["name"] = "Product name is required"
    elif len(name) < PRODUCT_NAME_MIN:
        errors["name"] = f"Product name must be at least {PRODUCT_NAME_MIN} characters"
    elif len(name) > PRODUCT_NAME_MAX:
        errors["name"] = f"Product name must be at most {PRODUCT_NAME_MAX} characters"

    category_id = (form.category_id or "").strip()
    if not category_id:
        errors["category_id"] = "Category is required"
    elif parse_uuid(category_id) is None:
        errors["category_id"] = "Selected category does not exist"
    elif categories is not None and parse_uuid(category_id) not in {c.id for c in categories}:
        errors["category_id"] = "Selected category does not exist"

    if len(form.images) > MAX_PRODUCT_IMAGES:
        errors["images"] = f"A product can have at most {MAX_PRODUCT_IMAGES} images"

    price = parse_price(form.price)
    if price is None or price <= 0:
        errors["price"] = "Valid price is required"
    elif price > PRICE_MAX:
        errors["price"] = "Price must not exceed 1,000,000"
    elif price != price.quantize(PRICE_STEP):
        # колонка Numeric(10, 2), лишние знаки округлились бы
        errors["price"] = "Price can have at most 2 decimal places"

    return ProductCheck(valid=not errors, errors=errors, price=None if errors else price)


def validate_image_file(image: ImageFile) -> None:
    if image.content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidImageError(
            "Invalid file type. Please upload JPEG, JPG, PNG, or WebP images."
        )

    if image.size > MAX_IMAGE_SIZE:
        raise InvalidImageError(
            "File size too large. Please upload images smaller than 5MB."
        )
