from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from hardware_catalog.core.exceptions import CatalogError
from hardware_catalog.core.kafka import init_kafka, close_kafka
from hardware_catalog.core.logging import setup_logging
from hardware_catalog.core.redis import init_redis, close_redis
from hardware_catalog.core.storage import init_storage, close_storage
from hardware_catalog.middleware.logging import LoggingMiddleware
from hardware_catalog.routers import categories, dashboard, products


setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup: initializing Redis, Kafka and storage")
    await init_redis(app)
    await init_kafka()
    await init_storage()
    logger.info("Application startup completed")
    yield
    logger.info("Application shutdown: closing Redis, Kafka and storage")
    await close_storage()
    await close_kafka()
    await close_redis()
    logger.info("Application shutdown completed")


app = FastAPI(title="Hardware Catalog Service", lifespan=lifespan)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "{error} on {method} {path}: {message}",
        error=type(exc).__name__,
        method=request.method,
        path=request.url.path,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.add_middleware(LoggingMiddleware)

app.include_router(categories.router)
app.include_router(products.router)
app.include_router(dashboard.router)


if __name__ == "__main__":
    uvicorn.run("hardware_catalog.main:app", host="0.0.0.0", port=8000)
