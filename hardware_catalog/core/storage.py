from urllib.parse import quote

import httpx
from loguru import logger

from hardware_catalog.core.config import settings
from hardware_catalog.core.exceptions import StorageError, StorageNotFoundError, UploadError
from hardware_catalog.core.metrics import STORAGE_OPS

SERVICE_NAME = settings.SERVICE_NAME


class StorageGateway:
    """Object storage for product images, spoken to over the storage REST API.

    Blob names are chosen by the caller; the gateway never generates them.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, bucket: str):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket

    def _object_path(self, name: str) -> str:
        return f"/storage/v1/object/{self.bucket}/{quote(name)}"

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(name)}"

    async def upload(self, content: bytes, name: str, content_type: str) -> str:
        logger.info(
            "Uploading image to storage: bucket={bucket}, name={name}, size={size}",
            bucket=self.bucket,
            name=name,
            size=len(content),
        )
        try:
            resp = await self.client.post(
                self._object_path(name),
                content=content,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
        except httpx.RequestError as e:
            STORAGE_OPS.labels(service=SERVICE_NAME, operation="upload", status="connection_error").inc()
            logger.error("Storage connection error during upload of {name}: {error}", name=name, error=str(e))
            raise UploadError(f"Connection error to storage: {e}") from e

        if resp.status_code >= 400:
            STORAGE_OPS.labels(service=SERVICE_NAME, operation="upload", status="error").inc()
            logger.error(
                "Storage rejected upload of {name}: status={status}, body={body}",
                name=name,
                status=resp.status_code,
                body=resp.text,
            )
            raise UploadError(f"Storage error {resp.status_code} while uploading {name}")

        STORAGE_OPS.labels(service=SERVICE_NAME, operation="upload", status="success").inc()
        logger.info("Image uploaded to storage: name={name}", name=name)
        return self.url_for(name)

    async def delete(self, name: str) -> None:
        logger.info("Deleting image from storage: bucket={bucket}, name={name}", bucket=self.bucket, name=name)
        try:
            resp = await self.client.delete(self._object_path(name))
        except httpx.RequestError as e:
            STORAGE_OPS.labels(service=SERVICE_NAME, operation="delete", status="connection_error").inc()
            logger.error("Storage connection error during delete of {name}: {error}", name=name, error=str(e))
            raise StorageError(f"Connection error to storage: {e}") from e

        if _is_not_found(resp):
            STORAGE_OPS.labels(service=SERVICE_NAME, operation="delete", status="not_found").inc()
            logger.warning("Image not found in storage: name={name}", name=name)
            raise StorageNotFoundError(f"Image {name} not found in storage")

        if resp.status_code >= 400:
            STORAGE_OPS.labels(service=SERVICE_NAME, operation="delete", status="error").inc()
            logger.error(
                "Storage rejected delete of {name}: status={status}, body={body}",
                name=name,
                status=resp.status_code,
                body=resp.text,
            )
            raise StorageError(f"Storage error {resp.status_code} while deleting {name}")

        STORAGE_OPS.labels(service=SERVICE_NAME, operation="delete", status="success").inc()
        logger.info("Image deleted from storage: name={name}", name=name)


def _is_not_found(resp: httpx.Response) -> bool:
    if resp.status_code == 404:
        return True
    # storage API отвечает 400 с statusCode "404" в теле
    if resp.status_code == 400:
        try:
            body = resp.json()
        except ValueError:
            return False
        return isinstance(body, dict) and str(body.get("statusCode")) == "404"
    return False


storage_gateway: StorageGateway | None = None


async def init_storage():
    global storage_gateway
    client = httpx.AsyncClient(
        base_url=settings.STORAGE_URL,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
        headers={
            "Authorization": f"Bearer {settings.STORAGE_KEY}",
            "apikey": settings.STORAGE_KEY,
        },
    )
    storage_gateway = StorageGateway(client, settings.STORAGE_URL, settings.STORAGE_BUCKET)
    logger.info(
        "Storage gateway initialized for service={service}, bucket={bucket}",
        service=SERVICE_NAME,
        bucket=settings.STORAGE_BUCKET,
    )


async def close_storage():
    global storage_gateway
    if storage_gateway:
        await storage_gateway.client.aclose()
        storage_gateway = None
        logger.info("Storage gateway closed for service={service}", service=SERVICE_NAME)


async def get_storage() -> StorageGateway:
    if storage_gateway is None:
        logger.error("Attempt to get storage gateway before initialization for service={service}", service=SERVICE_NAME)
        raise RuntimeError("Storage gateway is not initialized")
    return storage_gateway
