from typing import Any


class CatalogError(Exception):
    """Base for every error the catalog core hands to the HTTP layer."""

    status_code = 500
    message = "Catalog operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message}


class FieldValidationError(CatalogError):
    status_code = 422
    message = "Validation failed"

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {error}" for field, error in errors.items()))

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "errors": self.errors}


class InvalidImageError(CatalogError):
    status_code = 422
    message = "Invalid image file"


class ImageLimitExceededError(CatalogError):
    status_code = 422

    def __init__(self, limit: int, current: int, requested: int):
        self.limit = limit
        self.current = current
        self.requested = requested
        super().__init__(
            f"You can only upload up to {limit} images total. "
            f"You currently have {current} images and tried to add {requested}."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "limit": self.limit,
            "current": self.current,
            "requested": self.requested,
        }


class DuplicateNameError(CatalogError):
    status_code = 409
    message = "A category with this name already exists"


class CategoryInUseError(CatalogError):
    status_code = 409

    def __init__(self, product_count: int):
        self.product_count = product_count
        plural = "" if product_count == 1 else "s"
        super().__init__(
            f"Cannot delete category because it has {product_count} product{plural} "
            "assigned to it. Please remove all products from this category first."
        )

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "product_count": self.product_count}


class NotFoundError(CatalogError):
    status_code = 404
    message = "Not found"


class CategoryNotFoundError(NotFoundError):
    message = "Category not found"


class ProductNotFoundError(NotFoundError):
    message = "Product not found"


class StorageError(CatalogError):
    status_code = 502
    message = "Storage operation failed"


class StorageNotFoundError(StorageError):
    status_code = 404
    message = "Image not found in storage"


class UploadError(StorageError):
    message = "Image upload failed"


class ImageCleanupError(StorageError):
    def __init__(self, failed: list[str]):
        self.failed = failed
        super().__init__(
            f"Could not delete {len(failed)} image(s) from storage; the product was kept"
        )

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "failed_images": self.failed}


class ProductPartiallyDeletedError(CatalogError):
    status_code = 500

    def __init__(self, product_id: Any, removed_images: list[str]):
        self.product_id = product_id
        self.removed_images = removed_images
        super().__init__(
            f"Product {product_id} images were removed from storage "
            "but the product row could not be deleted"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "product_id": str(self.product_id),
            "removed_images": self.removed_images,
        }


class SaveFailedError(CatalogError):
    status_code = 500
    message = "Error saving. Please try again."


class DeleteFailedError(CatalogError):
    status_code = 500
    message = "Error deleting. Please try again."


class TransientServiceError(CatalogError):
    status_code = 503
    message = "Catalog data is temporarily unavailable"
